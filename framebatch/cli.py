"""Command-line entry point: ``framebatch -c config/job.yaml [ARG ...]``."""

import argparse
import logging
import sys
from typing import Optional, Sequence

from framebatch.config import load_config
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError
from framebatch.core.registry import load_builtin_components
from framebatch.job import EXIT_CONFIG_ERROR, EXIT_SUCCESS, Job
from framebatch.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="framebatch",
        description="Run a configured batch transformation job",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to the job file (default: $FRAMEBATCH_CONFIG or ./config/job.yaml)"
    )
    parser.add_argument(
        "--work-dir",
        type=str,
        default=None,
        help="Work directory (default: $FRAMEBATCH_WORK or ./wrk)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: the job's log_level)"
    )
    parser.add_argument(
        "--list-components",
        action="store_true",
        help="List the registered component types and exit"
    )
    parser.add_argument(
        "args",
        nargs="*",
        help="Job arguments, posted to the symbol table as Arg0, Arg1, ..."
    )
    return parser


def list_components() -> None:
    registry = load_builtin_components()
    for kind in ComponentKind:
        print(f"{kind}: {', '.join(registry.list_components(kind))}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.list_components:
        setup_logging(args.log_level or "WARNING")
        list_components()
        return EXIT_SUCCESS

    setup_logging(args.log_level or "INFO")

    try:
        config = load_config(args.config)
        if args.log_level is None:
            setup_logging(config.log_level)
        job = Job(config, work_directory=args.work_dir)
        job.engine.symbols.put_arguments(args.args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    return job.run()


if __name__ == "__main__":
    sys.exit(main())
