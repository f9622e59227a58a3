"""Batch runner: load users and commands, replay them, collect the output."""

import json
import logging
from pathlib import Path

from ticket_workflow.commands import Command, dispatch
from ticket_workflow.config import Config, config_exists, load_config
from ticket_workflow.context import WorkflowContext
from ticket_workflow.exceptions import ConfigNotFoundError, InvalidConfigError
from ticket_workflow.models import ExpertiseArea, Role, Seniority, User, parse_date

logger = logging.getLogger(__name__)


def resolve_config(path: Path | None = None) -> Config:
    """Load the configuration, falling back to defaults.

    An explicitly given path must exist. Without one, the default
    location is used when present.

    Raises:
        ConfigNotFoundError: If ``path`` was given and does not exist
        InvalidConfigError: If the file is malformed or fails validation
    """
    if not config_exists(path):
        if path is not None:
            raise ConfigNotFoundError(f"Configuration not found at {path}.")
        logger.debug("No configuration file, using defaults")
        return Config()

    try:
        return load_config(path)
    except ValueError as e:
        raise InvalidConfigError(f"Invalid configuration: {e}")


def user_from_dict(raw: dict) -> User:
    """Build a user from its entry in the user database."""
    expertise = raw.get("expertiseArea")
    seniority = raw.get("seniority")
    hire_date = raw.get("hireDate")
    return User(
        username=raw["username"],
        email=raw.get("email", ""),
        role=Role(raw["role"]),
        hire_date=parse_date(hire_date) if hire_date else None,
        expertise_area=ExpertiseArea(expertise) if expertise else None,
        seniority=Seniority(seniority) if seniority else None,
        subordinates=list(raw.get("subordinates") or []),
    )


def _read_json_list(path: Path, key: str) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a list of {key}")
    return data


def load_users(path: Path) -> list[User]:
    """Read the user database.

    The file holds either a list of user objects or ``{"users": [...]}``.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the JSON or a user entry is invalid
    """
    users = []
    for raw in _read_json_list(path, "users"):
        try:
            users.append(user_from_dict(raw))
        except KeyError as e:
            raise ValueError(f"User entry missing field {e}: {raw!r}") from e
    logger.info("Loaded %d users from %s", len(users), path)
    return users


def load_commands(path: Path) -> list[dict]:
    """Read the raw command list, a list or ``{"commands": [...]}``."""
    commands = _read_json_list(path, "commands")
    logger.info("Loaded %d commands from %s", len(commands), path)
    return commands


def run_batch(
    commands: list[dict], users: list[User], config: Config | None = None
) -> list[dict]:
    """Replay ``commands`` in order against a fresh organisation.

    Returns:
        The output objects produced by views and rejected commands
    """
    ctx = WorkflowContext(users, config)
    outputs: list[dict] = []

    for index, raw in enumerate(commands):
        try:
            command = Command.from_dict(raw)
        except (KeyError, ValueError) as e:
            logger.warning("Skipping malformed command #%d: %s", index, e)
            continue

        try:
            result = dispatch(ctx, command)
        except (KeyError, ValueError) as e:
            logger.warning("Skipping %s with invalid parameters: %s", command.command, e)
            continue

        if result is not None:
            outputs.append(result)

    logger.info("Processed %d commands, %d outputs", len(commands), len(outputs))
    return outputs


def write_outputs(outputs: list[dict], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2)
        f.write("\n")
