import argparse
import logging
import sys
from typing import List, Optional

import structlog

from config import Settings, get_settings, get_settings_for_environment
from exceptions import EngineError
from record_io import open_transactions, write_accounts
from services import get_transaction_service


def configure_logging(settings: Settings) -> None:
    """Configure structured logging on stderr, leaving stdout for the report."""

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-engine",
        description="Replay a CSV file of transactions and print the final state of every client account.",
    )
    parser.add_argument("input_file", help="Path to the input CSV file")
    parser.add_argument(
        "--env",
        choices=["development", "production", "testing"],
        help="Settings profile to use instead of the environment defaults",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")
    return parser


def run(input_file: str, settings: Settings) -> int:
    """Process ``input_file`` and print the account report on stdout."""

    logger = structlog.get_logger()
    service = get_transaction_service()

    try:
        service.process_stream(open_transactions(input_file, settings))
        accounts = service.list_accounts(ordered=settings.sort_output)
    except EngineError as e:
        logger.error(
            "Processing aborted",
            input_file=input_file,
            error_code=e.error_code,
            error=e.detail,
        )
        return 1

    write_accounts(accounts, sys.stdout)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser(get_settings()).parse_args(argv)
    settings = get_settings_for_environment(args.env) if args.env else get_settings()

    configure_logging(settings)
    structlog.get_logger().info("Starting", app=settings.app_name, version=settings.app_version)

    return run(args.input_file, settings)


if __name__ == "__main__":
    sys.exit(main())
