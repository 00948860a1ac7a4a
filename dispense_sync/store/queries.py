"""
Operator queries over the dispense middle table.

Read-mostly helpers behind the admin CLI: per-status counts, record listing
with search, and requeueing failed rows for another delivery attempt.
"""

import re
from typing import Any

from psycopg import sql

from dispense_sync.core.models import DeliveryStatus
from dispense_sync.observability.logger import get_logger
from dispense_sync.store.connection import DatabaseConnectionPool
from dispense_sync.store.extractor import DATE_COLUMN, IDENTIFIER_COLUMN, STATUS_COLUMN
from dispense_sync.utils.validation import (
    ValidationError,
    validate_limit,
    validate_search_text,
    validate_target_date,
)

logger = get_logger(__name__)

LISTING_COLUMNS = (
    "f_prescriptionnohis",
    "f_seq",
    "f_hn",
    "f_patientname",
    "f_orderitemname",
    "f_orderqty",
    "f_orderunitcode",
    "f_prescriptiondate",
    "f_dispensestatus_conhis",
    "f_dispense_datetime",
)
SEARCH_COLUMNS = ("f_prescriptionnohis", "f_hn", "f_patientname")


def format_prescription_date(value: str | None) -> str:
    """
    Render a compact prescription timestamp for display.

    Examples:
        >>> format_prescription_date("20250102143015")
        '2025-01-02 14:30:15'
        >>> format_prescription_date("202501021430")
        '2025-01-02 14:30'
        >>> format_prescription_date("20250102")
        '2025-01-02'
        >>> format_prescription_date("02/01/2025")
        '02/01/2025'
    """
    if not value:
        return ""

    text = value.strip()
    if not re.fullmatch(r"[0-9]+", text):
        return text

    if len(text) == 14:
        return f"{text[0:4]}-{text[4:6]}-{text[6:8]} {text[8:10]}:{text[10:12]}:{text[12:14]}"
    if len(text) == 12:
        return f"{text[0:4]}-{text[4:6]}-{text[6:8]} {text[8:10]}:{text[10:12]}"
    if len(text) == 8:
        return f"{text[0:4]}-{text[4:6]}-{text[6:8]}"
    return text


def display_status(code: str | None) -> str:
    """Status value for a stored code; unknown codes are shown raw."""
    try:
        return DeliveryStatus.from_code(code).value
    except ValueError:
        return f"unknown:{code}"


class StatusQueries:
    """Status inspection and requeue operations for one table."""

    def __init__(self, pool: DatabaseConnectionPool, table_name: str = "tb_dispense_middle"):
        self.pool = pool
        self.table_name = table_name

    def status_breakdown(self, target_date: str) -> dict[str, int]:
        """
        Count rows per delivery status for a date.

        Args:
            target_date: YYYYMMDD or YYYY-MM-DD

        Returns:
            Mapping of status value to row count; every known status is present
        """
        target_date = validate_target_date(target_date)
        query = sql.SQL(
            "SELECT {status} AS code, count(*) AS total FROM {table} "
            "WHERE left({date}, 8) = %s GROUP BY {status}"
        ).format(
            status=sql.Identifier(STATUS_COLUMN),
            table=sql.Identifier(self.table_name),
            date=sql.Identifier(DATE_COLUMN),
        )

        breakdown = {status.value: 0 for status in DeliveryStatus}
        for row in self.pool.execute_query(query, (target_date,)):
            label = display_status(row["code"])
            breakdown[label] = breakdown.get(label, 0) + row["total"]

        logger.debug("Status breakdown", extra={"target_date": target_date, **breakdown})
        return breakdown

    def list_records(
        self,
        target_date: str,
        search: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """
        List rows for a date, optionally filtered by free text.

        The search matches prescription number, HN or patient name,
        case-insensitively.

        Returns:
            Rows as dictionaries with ``status`` and ``prescription_date_display`` added
        """
        target_date = validate_target_date(target_date)
        limit = validate_limit(limit, max_limit=1000)
        pattern = validate_search_text(search)

        conditions = [sql.SQL("left({}, 8) = %(target_date)s").format(sql.Identifier(DATE_COLUMN))]
        params: dict[str, Any] = {"target_date": target_date, "limit": limit}

        if pattern is not None:
            conditions.append(
                sql.SQL("({})").format(
                    sql.SQL(" OR ").join(
                        sql.SQL("{} ILIKE %(pattern)s").format(sql.Identifier(c)) for c in SEARCH_COLUMNS
                    )
                )
            )
            params["pattern"] = f"%{pattern}%"

        query = sql.SQL(
            "SELECT {columns} FROM {table} WHERE {where} "
            "ORDER BY {date} DESC, {identifier}, f_seq LIMIT %(limit)s"
        ).format(
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in LISTING_COLUMNS),
            table=sql.Identifier(self.table_name),
            where=sql.SQL(" AND ").join(conditions),
            date=sql.Identifier(DATE_COLUMN),
            identifier=sql.Identifier(IDENTIFIER_COLUMN),
        )

        rows = self.pool.execute_query(query, params)
        return [
            {
                **row,
                "status": display_status(row["f_dispensestatus_conhis"]),
                "prescription_date_display": format_prescription_date(row["f_prescriptiondate"]),
            }
            for row in rows
        ]

    def requeue(self, target_date: str, from_status: DeliveryStatus = DeliveryStatus.FAILED) -> int:
        """
        Move rows in ``from_status`` back to pending for a date.

        Args:
            target_date: YYYYMMDD or YYYY-MM-DD
            from_status: FAILED or RETRY_ELIGIBLE

        Returns:
            Number of rows requeued

        Raises:
            ValidationError: If ``from_status`` cannot be requeued
        """
        if from_status not in (DeliveryStatus.FAILED, DeliveryStatus.RETRY_ELIGIBLE):
            raise ValidationError(f"Cannot requeue rows in status {from_status.value}")

        target_date = validate_target_date(target_date)
        command = sql.SQL(
            "UPDATE {table} SET {status} = NULL "
            "WHERE btrim({status}) = %s AND left({date}, 8) = %s"
        ).format(
            table=sql.Identifier(self.table_name),
            status=sql.Identifier(STATUS_COLUMN),
            date=sql.Identifier(DATE_COLUMN),
        )

        affected = self.pool.execute_command(command, (from_status.to_code(), target_date))
        logger.info(
            f"Requeued {affected} rows from {from_status.value}",
            extra={"target_date": target_date, "from_status": from_status.value, "affected_rows": affected},
        )
        return affected
