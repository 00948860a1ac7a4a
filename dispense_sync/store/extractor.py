"""
Pending-row extraction from the dispense middle table.

Rows are streamed through a server-side cursor so that a large poll window
never has to be materialized in memory.
"""

from collections.abc import Iterator
from logging import Logger

import psycopg
from psycopg import sql
from psycopg_pool import PoolTimeout

from dispense_sync.core.errors import ConnectivityError
from dispense_sync.core.models import DeliveryStatus, SourceRow
from dispense_sync.core.models.delivery_status import PENDING_CODES
from dispense_sync.observability.logger import get_logger
from dispense_sync.store.connection import DatabaseConnectionPool

STATUS_COLUMN = "f_dispensestatus_conhis"
DATE_COLUMN = "f_prescriptiondate"
IDENTIFIER_COLUMN = "f_prescriptionnohis"

# Deterministic selection order; the last column breaks ties between
# duplicate (timestamp, identifier, sequence) triples.
ORDER_COLUMNS = ("f_lastmodified", IDENTIFIER_COLUMN, "f_seq", "f_referencecode")


def selectable_codes(include_retry_eligible: bool = False) -> list[str]:
    """
    Status codes (besides NULL) the extractor treats as "to be sent".

    Examples:
        >>> selectable_codes()
        ['', '0']
        >>> selectable_codes(include_retry_eligible=True)
        ['', '0', '2']
    """
    codes = list(PENDING_CODES)
    if include_retry_eligible:
        codes.append(DeliveryStatus.RETRY_ELIGIBLE.to_code())
    return codes


class PendingRowExtractor:
    """
    Streams pending rows for one target date in a stable order.

    Each call to ``iter_rows`` issues a fresh selection, so the sequence is
    restartable per call. A failure to reach the store or to run the query
    is raised as ConnectivityError.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        table_name: str = "tb_dispense_middle",
        include_retry_eligible: bool = False,
        fetch_size: int = 200,
        logger: Logger | None = None,
    ):
        self.pool = pool
        self.table_name = table_name
        self.include_retry_eligible = include_retry_eligible
        self.fetch_size = fetch_size
        self.logger = logger or get_logger(__name__)

    def build_query(self) -> sql.Composed:
        """Compose the selection statement for the configured table."""
        return sql.SQL(
            "SELECT {columns} FROM {table} "
            "WHERE ({status} IS NULL OR btrim({status}) = ANY(%(codes)s)) "
            "AND left({date}, 8) = %(target_date)s "
            "ORDER BY {order} "
            "LIMIT %(limit)s"
        ).format(
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in SourceRow.column_names()),
            table=sql.Identifier(self.table_name),
            status=sql.Identifier(STATUS_COLUMN),
            date=sql.Identifier(DATE_COLUMN),
            order=sql.SQL(", ").join(
                sql.SQL("{} ASC NULLS FIRST").format(sql.Identifier(c)) for c in ORDER_COLUMNS
            ),
        )

    def iter_rows(self, target_date: str, max_rows: int) -> Iterator[SourceRow]:
        """
        Yield pending rows for ``target_date``, at most ``max_rows`` of them.

        Args:
            target_date: Record date as YYYYMMDD
            max_rows: Poll window size

        Yields:
            SourceRow per selected row, in selection order

        Raises:
            ConnectivityError: If the pool or the query fails
        """
        if max_rows <= 0:
            return

        params = {
            "codes": selectable_codes(self.include_retry_eligible),
            "target_date": target_date,
            "limit": max_rows,
        }
        query = self.build_query()
        yielded = 0

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(name="dispense_pending_rows") as cur:
                    cur.itersize = self.fetch_size
                    cur.execute(query, params)
                    for record in cur:
                        yielded += 1
                        yield SourceRow.model_validate(record)
                conn.commit()
        except (psycopg.Error, PoolTimeout) as e:
            self.logger.error(
                f"Extraction failed after {yielded} rows: {e}",
                extra={"target_date": target_date, "rows_yielded": yielded, "error_type": type(e).__name__},
            )
            raise ConnectivityError(f"Extraction failed for {target_date}: {e}") from e

        self.logger.debug(
            f"Extracted {yielded} pending rows",
            extra={"target_date": target_date, "rows_yielded": yielded},
        )
