"""
Admin CLI for inspecting and repairing dispense delivery status.

Usage:
    dispense-admin status-breakdown [--date YYYYMMDD]
    dispense-admin list [--date YYYYMMDD] [--search TEXT] [--limit N]
    dispense-admin requeue --date YYYYMMDD [--from-status failed|retry_eligible]
"""

import argparse
import json
import sys

import psycopg

from dispense_sync.cli.common import load_settings, settings_parent_parser
from dispense_sync.core.errors import ConfigurationError, ConnectivityError
from dispense_sync.core.models import DeliveryStatus
from dispense_sync.observability.logger import get_logger
from dispense_sync.store import DatabaseConnectionPool, StatusQueries
from dispense_sync.utils.validation import today_target_date, validate_target_date

logger = get_logger(__name__)


def _open_queries(args: argparse.Namespace) -> tuple[DatabaseConnectionPool, StatusQueries]:
    settings = load_settings(args)
    pool = DatabaseConnectionPool.from_settings(settings)
    pool.open()
    return pool, StatusQueries(pool, table_name=settings.table_name)


def status_breakdown_command(args: argparse.Namespace) -> int:
    """
    Display row counts per delivery status for a date.

    Args:
        args: Command line arguments
    """
    target_date = validate_target_date(args.date) if args.date else today_target_date()
    pool, queries = _open_queries(args)

    try:
        breakdown = queries.status_breakdown(target_date)
    finally:
        pool.close()

    if args.json:
        print(json.dumps({"target_date": target_date, "statuses": breakdown}, indent=2))
        return 0

    print(f"\n{'=' * 60}")
    print(f"DELIVERY STATUS FOR {target_date}")
    print(f"{'=' * 60}\n")
    for status, count in breakdown.items():
        print(f"  {status:<30} {count:>8}")
    print(f"  {'-' * 39}")
    print(f"  {'total':<30} {sum(breakdown.values()):>8}")
    print(f"\n{'=' * 60}\n")
    return 0


def list_command(args: argparse.Namespace) -> int:
    """
    List rows for a date, optionally filtered by search text.

    Args:
        args: Command line arguments
    """
    target_date = validate_target_date(args.date) if args.date else today_target_date()
    pool, queries = _open_queries(args)

    try:
        rows = queries.list_records(target_date, search=args.search, limit=args.limit)
    finally:
        pool.close()

    if args.json:
        print(json.dumps(rows, indent=2, default=str))
        return 0

    if not rows:
        print(f"\nNo records found for {target_date}")
        return 0

    print(f"\n{'Prescription':<16} {'Seq':>4} {'HN':<12} {'Item':<28} {'Date':<20} {'Status'}")
    print(f"{'-' * 100}")
    for row in rows:
        item = (row["f_orderitemname"] or "-")[:28]
        print(
            f"{row['f_prescriptionnohis'] or '-':<16} {row['f_seq'] if row['f_seq'] is not None else '-':>4} "
            f"{row['f_hn'] or '-':<12} {item:<28} {row['prescription_date_display']:<20} {row['status']}"
        )
    print(f"\n{len(rows)} record(s)\n")
    return 0


def requeue_command(args: argparse.Namespace) -> int:
    """
    Return failed rows for a date to pending so the next run resends them.

    Args:
        args: Command line arguments
    """
    target_date = validate_target_date(args.date)
    from_status = DeliveryStatus(args.from_status)
    pool, queries = _open_queries(args)

    try:
        affected = queries.requeue(target_date, from_status=from_status)
    finally:
        pool.close()

    print(f"Requeued {affected} row(s) from {from_status.value} for {target_date}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for admin CLI."""
    parser = argparse.ArgumentParser(
        description="Admin CLI for dispense delivery status",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    settings_parent = settings_parent_parser()

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # status-breakdown command
    breakdown_parser = subparsers.add_parser(
        "status-breakdown",
        parents=[settings_parent],
        help="Count rows per delivery status for a date"
    )
    breakdown_parser.add_argument(
        "--date",
        help="Target date YYYYMMDD or YYYY-MM-DD (default: today)"
    )
    breakdown_parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a table"
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        parents=[settings_parent],
        help="List rows for a date"
    )
    list_parser.add_argument(
        "--date",
        help="Target date YYYYMMDD or YYYY-MM-DD (default: today)"
    )
    list_parser.add_argument(
        "--search",
        help="Match prescription number, HN or patient name"
    )
    list_parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of rows to display (default: 100)"
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a table"
    )

    # requeue command
    requeue_parser = subparsers.add_parser(
        "requeue",
        parents=[settings_parent],
        help="Move failed rows back to pending"
    )
    requeue_parser.add_argument(
        "--date",
        required=True,
        help="Target date YYYYMMDD or YYYY-MM-DD"
    )
    requeue_parser.add_argument(
        "--from-status",
        default=DeliveryStatus.FAILED.value,
        choices=[DeliveryStatus.FAILED.value, DeliveryStatus.RETRY_ELIGIBLE.value],
        help="Status to requeue (default: failed)"
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "status-breakdown":
            return status_breakdown_command(args)
        elif args.command == "list":
            return list_command(args)
        elif args.command == "requeue":
            return requeue_command(args)
        parser.print_help()
        return 1

    except (ConfigurationError, ValueError) as e:
        print(f"\nError: {e}")
        return 2
    except (ConnectivityError, psycopg.Error) as e:
        logger.error(f"Database unavailable: {e}", exc_info=True)
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
