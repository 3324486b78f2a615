"""Console-script entry point for mediashelf."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..database import configure_database, create_schema
from .args import build_cli_parser
from .commands import COMMANDS, CommandContext


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the mediashelf CLI."""

    args = build_cli_parser().parse_args(argv)
    log_mgr.configure_logging_level(debug_enabled=args.debug)

    settings = cfg.load_configuration(args.config_file)
    if args.database_url:
        configure_database(args.database_url)
    create_schema()

    handler = COMMANDS[args.command]
    return handler(args, CommandContext(settings))


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
