"""webprobe - Lightweight HTTP uptime probing with rolling metrics."""

import argparse
import json
import logging
import sys

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _load_config_or_exit(path: str):
    from .config import ConfigError, load_config

    try:
        return load_config(path)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)


def _open_store_or_exit(db_path: str):
    from .database import DatabaseError, ResultStore

    try:
        return ResultStore.open(db_path)
    except DatabaseError as e:
        logger.error("Database error: %s", e)
        sys.exit(1)


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - one probe cycle over all configured targets."""
    from .alerter import Alerter
    from .database import DatabaseError
    from .metrics import format_summary
    from .monitor import Monitor

    config = _load_config_or_exit(args.config)
    logger.info("Configuration loaded from %s (%d targets)", args.config, len(config.targets))

    store = _open_store_or_exit(config.database.path)
    try:
        report = Monitor(config, store, Alerter(config.notifications)).run_once()
    except DatabaseError as e:
        logger.error("Run aborted: %s", e)
        sys.exit(1)
    finally:
        store.close()

    logger.info(
        "Run complete: %d checked, %d failed, %d pruned",
        len(report.records),
        report.failures,
        report.pruned,
    )

    if args.json:
        print(json.dumps(report.summary.to_dict(), indent=2))
    else:
        print(format_summary(report.summary))


def _cmd_summary(args: argparse.Namespace) -> None:
    """Execute the summary command - print metrics without probing."""
    from datetime import datetime

    from .database import DatabaseError
    from .metrics import compute_summary, format_summary

    config = _load_config_or_exit(args.config)
    store = _open_store_or_exit(config.database.path)
    try:
        summary = compute_summary(store.read_all(), datetime.now().astimezone())
    except DatabaseError as e:
        logger.error("Database error: %s", e)
        sys.exit(1)
    finally:
        store.close()

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        print(format_summary(summary))


def _cmd_clean(args: argparse.Namespace) -> None:
    """Execute the clean command - remove old check records from the store."""
    from datetime import datetime
    from pathlib import Path

    from .database import DatabaseError
    from .retention import prune

    config = _load_config_or_exit(args.config)

    if not Path(config.database.path).exists():
        print(f"Error: Database not found at {config.database.path}")
        sys.exit(1)

    if args.retention_days is not None and args.retention_days < 0:
        print("Error: retention-days must be a non-negative integer")
        sys.exit(1)

    store = _open_store_or_exit(config.database.path)
    try:
        if args.all:
            deleted = store.delete_all()
            print(f"Deleted all {deleted} check records from database.")
        else:
            retention_days = args.retention_days if args.retention_days is not None else config.retention_days
            deleted = prune(store, retention_days, datetime.now().astimezone())
            print(f"Deleted {deleted} check records older than {retention_days} days.")
    except DatabaseError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        store.close()


def _cmd_check(args: argparse.Namespace) -> None:
    """Execute the check command - probe one URL and print the record."""
    from .monitor import check_url
    from .records import record_to_dict

    record = check_url(args.url, keyword=args.keyword, timeout=args.timeout)
    print(json.dumps(record_to_dict(record), indent=2))
    if not record.ok:
        sys.exit(1)


def _cmd_init(args: argparse.Namespace) -> None:
    """Execute the init command - provision config file and database."""
    from .config import ConfigError, write_default_config

    try:
        if write_default_config(args.config):
            print(f"Wrote default configuration to {args.config}")
        else:
            print(f"Configuration already exists at {args.config}")
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    config = _load_config_or_exit(args.config)
    store = _open_store_or_exit(config.database.path)
    store.close()
    print(f"Result store ready at {config.database.path}")


def _cmd_test_alert(args: argparse.Namespace) -> None:
    """Execute the test-alert command - send a sample digest."""
    from datetime import datetime

    from .alerter import Alerter
    from .digest import build_failure_digest, resolve_recipients
    from .monitor import failed_result

    config = _load_config_or_exit(args.config)
    alerter = Alerter(config.notifications)
    if not alerter.enabled:
        print("Error: No notifiers configured in notifications section")
        sys.exit(1)

    sample = failed_result("https://example.com/", None, datetime.now().astimezone(), "Test alert from webprobe")
    digest = build_failure_digest([sample])
    recipients = resolve_recipients(config.recipients, config.notifications.owner)

    print(f"Sending test digest to {', '.join(recipients) or '(webhooks only)'}...")
    if alerter.send(digest, recipients):
        print("Result: delivered")
    else:
        print("Result: delivery failed")
        sys.exit(1)


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )


def main() -> None:
    """Main entry point for the webprobe package."""
    parser = argparse.ArgumentParser(
        description="webprobe - Lightweight HTTP uptime probing with rolling metrics"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"webprobe {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run",
        help="Probe all configured targets once (default)",
    )
    _add_config_argument(run_parser)
    run_parser.add_argument("--json", action="store_true", help="Print the metrics summary as JSON")
    run_parser.set_defaults(func=_cmd_run)

    summary_parser = subparsers.add_parser(
        "summary",
        help="Print metrics computed from stored results",
    )
    _add_config_argument(summary_parser)
    summary_parser.add_argument("--json", action="store_true", help="Print the metrics summary as JSON")
    summary_parser.set_defaults(func=_cmd_summary)

    clean_parser = subparsers.add_parser(
        "clean",
        help="Remove old check records from the database",
    )
    _add_config_argument(clean_parser)
    clean_parser.add_argument(
        "--retention-days",
        type=int,
        help="Delete records older than this many days (overrides config)",
    )
    clean_parser.add_argument(
        "--all",
        action="store_true",
        help="Delete all check records (ignores retention_days)",
    )
    clean_parser.set_defaults(func=_cmd_clean)

    check_parser = subparsers.add_parser(
        "check",
        help="Probe a single URL and print the result",
    )
    check_parser.add_argument("url", help="Absolute URL to probe")
    check_parser.add_argument("--keyword", help="Keyword to look for in the HTML body")
    check_parser.add_argument("--timeout", type=int, default=10, help="Request timeout in seconds (default: 10)")
    check_parser.set_defaults(func=_cmd_check)

    init_parser = subparsers.add_parser(
        "init",
        help="Write a default configuration and create the database",
    )
    _add_config_argument(init_parser)
    init_parser.set_defaults(func=_cmd_init)

    test_alert_parser = subparsers.add_parser(
        "test-alert",
        help="Send a sample failure digest through configured notifiers",
    )
    _add_config_argument(test_alert_parser)
    test_alert_parser.set_defaults(func=_cmd_test_alert)

    args = parser.parse_args()

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = "config.yaml"
        args.json = False
        args.func = _cmd_run

    _setup_logging(args.verbose)
    args.func(args)
