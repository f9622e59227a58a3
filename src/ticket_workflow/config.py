"""Configuration management for the ticket workflow engine."""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomli_w

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Tunable workflow rules and logging settings."""

    escalation_interval_days: int = 3
    phase_length_days: int = 12
    min_comment_length: int = 10
    log_level: str = "INFO"

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if self.escalation_interval_days < 1:
            errors.append("Escalation interval must be at least 1 day")

        if self.phase_length_days < 1:
            errors.append("Phase length must be at least 1 day")

        if self.min_comment_length < 0:
            errors.append("Minimum comment length cannot be negative")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"Log level must be one of {', '.join(LOG_LEVELS)}")

        return errors

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".ticket-workflow"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists(path: Path | None = None) -> bool:
    """Check if configuration file exists."""
    return (path or get_config_path()).exists()


def load_config(path: Path | None = None) -> Config:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create ~/.ticket-workflow/config.toml to set up."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Malformed TOML: {e}") from e

    workflow_section = data.get("workflow", {})
    logging_section = data.get("logging", {})
    defaults = Config()

    config = Config(
        escalation_interval_days=workflow_section.get(
            "escalation_interval_days", defaults.escalation_interval_days
        ),
        phase_length_days=workflow_section.get("phase_length_days", defaults.phase_length_days),
        min_comment_length=workflow_section.get(
            "min_comment_length", defaults.min_comment_length
        ),
        log_level=logging_section.get("level", defaults.log_level),
    )

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to TOML file."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data: dict = {
        "workflow": {
            "escalation_interval_days": config.escalation_interval_days,
            "phase_length_days": config.phase_length_days,
            "min_comment_length": config.min_comment_length,
        },
        "logging": {
            "level": config.log_level,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
