#!/usr/bin/env python
"""Admin command line for the notebook store."""
import argparse
import atexit
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from notebook_store import __version__
from notebook_store.config import NotebookConfig
from notebook_store.exceptions import NotebookError
from notebook_store.observability import configure_logging, metrics
from notebook_store.services.notebook_service import NotebookService

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="notebook-store", description="Notebook store administration"
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--database-path",
        help="SQLite database file path (overrides NOTEBOOK_DATABASE_PATH)",
        type=str,
        default=None,
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
    )
    parser.add_argument(
        "--env-file", help="Load NOTEBOOK_* variables from this .env file", default=None
    )

    commands = parser.add_subparsers(dest="command", required=True)

    export_cmd = commands.add_parser("export", help="Export the whole store as JSON")
    export_cmd.add_argument("path", help="Output file")

    import_cmd = commands.add_parser("import", help="Import a JSON export")
    import_cmd.add_argument("path", help="File written by 'export'")
    import_cmd.add_argument(
        "--replace",
        action="store_true",
        help="Delete everything in the store before importing",
    )

    commands.add_parser("stats", help="Print note, folder and version counts")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> NotebookConfig:
    """Environment configuration with command line overrides applied."""
    config = NotebookConfig.from_env(args.env_file)
    if args.database_path:
        config.database_path = Path(args.database_path)
        config.in_memory_db = False
    return config


def _save_metrics_on_exit():
    """Save metrics to disk on shutdown."""
    if metrics.save_metrics():
        logger.info("Metrics saved to disk on shutdown")


def main(argv: Optional[List[str]] = None) -> int:
    """Run one admin command. Returns the process exit code."""
    args = parse_args(argv)

    try:
        config = build_config(args)
    except NotebookError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    log_level = getattr(logging, args.log_level.upper(), logging.WARNING)
    log_dir = configure_logging(config.log_dir, level=log_level, console=True)
    if log_dir:
        metrics.set_metrics_file(log_dir / "metrics.json")
        atexit.register(_save_metrics_on_exit)

    service = NotebookService(config)
    try:
        if args.command == "export":
            path = service.export_to_file(args.path)
            stats = service.get_stats()
            print(f"Exported {stats['notes']} notes and {stats['folders']} folders to {path}")
        elif args.command == "import":
            result = service.import_from_file(args.path, replace=args.replace)
            print(json.dumps(result.model_dump(), indent=2))
        elif args.command == "stats":
            print(json.dumps(service.get_stats(), indent=2))
    except NotebookError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        problems = getattr(e, "problems", None)
        for problem in problems or []:
            print(f"  - {problem}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        service.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
