"""
Command-line interface for dispense synchronization.

Usage:
    dispense-sync run [--date YYYYMMDD] [options]
    dispense-sync poll [--interval SECONDS] [options]
    dispense-sync check [options]
"""

import argparse
import sys

from dispense_sync.batch import PollingRunner, SyncOrchestrator
from dispense_sync.cli.common import load_settings, settings_parent_parser
from dispense_sync.config import SyncSettings
from dispense_sync.core.errors import ConfigurationError, ConnectivityError
from dispense_sync.core.models import RunResult
from dispense_sync.delivery import BatchSender
from dispense_sync.observability.logger import get_logger
from dispense_sync.observability.metrics import start_metrics_server
from dispense_sync.store import DatabaseConnectionPool
from dispense_sync.utils.validation import validate_target_date

logger = get_logger(__name__)

PIPELINE_ARGUMENTS = {
    "api_url": "api_url",
    "api_key": "api_key",
    "http_timeout": "http_timeout",
    "batch_size": "max_batch_size",
    "window_size": "window_size",
    "failure_policy": "failure_policy",
    "interval": "poll_interval_seconds",
}


def resolve_settings(args: argparse.Namespace) -> SyncSettings:
    """Settings for this invocation, honouring --no-run-lock."""
    settings = load_settings(args, extra=PIPELINE_ARGUMENTS)
    if getattr(args, "no_run_lock", False):
        settings = settings.model_copy(update={"use_run_lock": False})
    return settings


def log_run_result(result: RunResult) -> None:
    """Log the caller-visible summary of one run."""
    logger.info("=" * 60)
    logger.info(f"SYNC RUN COMPLETE ({result.target_date})")
    logger.info("=" * 60)
    logger.info(f"Delivered: {result.success_count}")
    logger.info(f"Failed: {result.failed_count}")
    logger.info(f"Batches sent: {result.batches_sent}")
    logger.info(f"Duration: {result.duration_seconds:.2f}s")
    for error in result.errors:
        logger.warning(f"Error: {error}")
    logger.info("=" * 60)


def run_command(args: argparse.Namespace) -> int:
    """
    Execute a single sync run.

    Returns:
        0 when the run completed without run-level errors, 1 otherwise
    """
    settings = resolve_settings(args)
    target_date = validate_target_date(args.date) if args.date else None
    logger.info(settings.summary())

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    pool = DatabaseConnectionPool.from_settings(settings)
    pool.open()

    try:
        with BatchSender.from_settings(settings) as sender:
            orchestrator = SyncOrchestrator.from_settings(settings, pool, sender=sender)
            result = orchestrator.run(target_date)
        log_run_result(result)
        return 1 if result.errors else 0
    finally:
        pool.close()


def poll_command(args: argparse.Namespace) -> int:
    """
    Run the sync repeatedly until interrupted.

    Returns:
        0 after a graceful stop
    """
    settings = resolve_settings(args)
    target_date = validate_target_date(args.date) if args.date else None
    logger.info(settings.summary())

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    pool = DatabaseConnectionPool.from_settings(settings)
    pool.open()

    try:
        if not pool.ping():
            logger.error("Database is not reachable")
            return 1

        with BatchSender.from_settings(settings) as sender:
            orchestrator = SyncOrchestrator.from_settings(settings, pool, sender=sender)
            runner = PollingRunner(
                orchestrator.run,
                interval_seconds=settings.poll_interval_seconds,
                backoff_seconds=settings.error_backoff_seconds,
                target_date=target_date,
            )
            runner.install_signal_handlers()
            runner.run_forever(max_runs=args.max_runs)
        return 0
    finally:
        pool.close()


def check_command(args: argparse.Namespace) -> int:
    """
    Print the resolved configuration and test the database connection.

    Returns:
        0 if the database answers, 1 otherwise
    """
    settings = resolve_settings(args)
    print(settings.summary())

    pool = DatabaseConnectionPool.from_settings(settings)
    try:
        pool.open(max_retries=1)
    except ConnectivityError as e:
        print(f"\nDatabase: UNREACHABLE ({e})")
        return 1

    try:
        reachable = pool.ping()
    finally:
        pool.close()

    print(f"\nDatabase: {'OK' if reachable else 'UNREACHABLE'}")
    return 0 if reachable else 1


def add_pipeline_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--date",
        help="Target date YYYYMMDD or YYYY-MM-DD (default: today)"
    )
    parser.add_argument(
        "--api-url",
        help="Downstream endpoint URL"
    )
    parser.add_argument(
        "--api-key",
        help="API key sent as X-API-Key (optional)"
    )
    parser.add_argument(
        "--http-timeout",
        type=float,
        help="Seconds allowed for one POST (default: 30)"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Records per POST (default: 100)"
    )
    parser.add_argument(
        "--window-size",
        type=int,
        help="Maximum rows selected per run (default: 1000)"
    )
    parser.add_argument(
        "--failure-policy",
        choices=["terminal", "retry_transient"],
        help="Status for undelivered batches (default: terminal)"
    )
    parser.add_argument(
        "--no-run-lock",
        action="store_true",
        help="Do not take the advisory run lock"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        help="Expose Prometheus metrics on this port (optional)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Synchronize pending dispense records to the downstream endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One run for today
  dispense-sync run --config config/settings.yaml

  # One run for a given day, retrying transient failures on later runs
  dispense-sync run --date 2025-01-02 --failure-policy retry_transient

  # Poll every 10 seconds with metrics on :8000
  dispense-sync poll --interval 10 --metrics-port 8000

  # Show configuration and test the database
  dispense-sync check --env-file .env
        """
    )
    settings_parent = settings_parent_parser()

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", parents=[settings_parent], help="Execute one sync run")
    add_pipeline_arguments(run_parser)

    poll_parser = subparsers.add_parser("poll", parents=[settings_parent], help="Run continuously on an interval")
    add_pipeline_arguments(poll_parser)
    poll_parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between runs (default: 5)"
    )
    poll_parser.add_argument(
        "--max-runs",
        type=int,
        help="Stop after this many runs (optional)"
    )

    subparsers.add_parser("check", parents=[settings_parent], help="Show configuration and test the database")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "run":
            return run_command(args)
        elif args.command == "poll":
            return poll_command(args)
        elif args.command == "check":
            return check_command(args)
        parser.print_help()
        return 1

    except (ConfigurationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except ConnectivityError as e:
        logger.error(f"Database unavailable: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
