"""Command line entry point."""

import argparse
import json
import logging
import sys
from pathlib import Path

from ticket_workflow import __version__
from ticket_workflow.batch import (
    load_commands,
    load_users,
    resolve_config,
    run_batch,
    write_outputs,
)
from ticket_workflow.config import Config, config_exists, get_config_path, save_config
from ticket_workflow.exceptions import WorkflowError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticket-workflow",
        description="Replay a batch of ticket workflow commands",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="action", required=True)

    run = subparsers.add_parser("run", help="Process a command file")
    run.add_argument("commands", type=Path, help="JSON file with the ordered commands")
    run.add_argument("--users", type=Path, required=True, help="JSON user database")
    run.add_argument("--output", type=Path, help="Write the output here instead of stdout")
    run.add_argument("--config", type=Path, help="Configuration file to use")
    run.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    init = subparsers.add_parser("init-config", help="Write a default configuration file")
    init.add_argument("--config", type=Path, help="Where to write the file")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def _configure_logging(config: Config, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _run(args: argparse.Namespace) -> int:
    config = resolve_config(args.config)
    _configure_logging(config, args.verbose)

    try:
        users = load_users(args.users)
        commands = load_commands(args.commands)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    outputs = run_batch(commands, users, config)

    if args.output:
        write_outputs(outputs, args.output)
        logger.info("Wrote %d outputs to %s", len(outputs), args.output)
    else:
        print(json.dumps(outputs, indent=2))
    return 0


def _init_config(args: argparse.Namespace) -> int:
    path = args.config or get_config_path()
    if config_exists(path) and not args.force:
        print(f"Configuration already exists at {path}", file=sys.stderr)
        return 1

    save_config(Config(), path)
    print(f"Wrote default configuration to {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.action == "init-config":
            return _init_config(args)
        return _run(args)
    except WorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
