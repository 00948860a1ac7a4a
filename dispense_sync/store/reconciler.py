"""
Bulk delivery-status reconciliation.

Writes the outcome of one batch back to the dispense middle table with a
single set-based UPDATE.
"""

from collections.abc import Iterable
from logging import Logger

import psycopg
from psycopg import sql
from psycopg_pool import PoolTimeout

from dispense_sync.core.errors import ReconciliationError
from dispense_sync.core.models import BatchKey, DeliveryStatus
from dispense_sync.core.models.batch import unique_identifiers
from dispense_sync.observability.logger import get_logger
from dispense_sync.observability.metrics import MetricsCollector
from dispense_sync.store.connection import DatabaseConnectionPool
from dispense_sync.store.extractor import DATE_COLUMN, IDENTIFIER_COLUMN, STATUS_COLUMN

DISPENSED_AT_COLUMN = "f_dispense_datetime"


class StatusReconciler:
    """
    Applies one DeliveryStatus to every row addressed by a set of keys.

    Rows are matched on identifier and on the run's target date; rows already
    carrying the target status are left untouched, which makes repeated calls
    idempotent.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        table_name: str = "tb_dispense_middle",
        metrics: MetricsCollector | None = None,
        logger: Logger | None = None,
    ):
        self.pool = pool
        self.table_name = table_name
        self.metrics = metrics or MetricsCollector()
        self.logger = logger or get_logger(__name__)

    def build_update(self) -> sql.Composed:
        """Compose the bulk UPDATE statement for the configured table."""
        return sql.SQL(
            "UPDATE {table} "
            "SET {status} = %(code)s, {dispensed_at} = now() "
            "WHERE {identifier} = ANY(%(identifiers)s) "
            "AND left({date}, 8) = %(target_date)s "
            "AND {status} IS DISTINCT FROM %(code)s"
        ).format(
            table=sql.Identifier(self.table_name),
            status=sql.Identifier(STATUS_COLUMN),
            dispensed_at=sql.Identifier(DISPENSED_AT_COLUMN),
            identifier=sql.Identifier(IDENTIFIER_COLUMN),
            date=sql.Identifier(DATE_COLUMN),
        )

    def reconcile(self, keys: Iterable[BatchKey], status: DeliveryStatus, target_date: str) -> int:
        """
        Set ``status`` on all rows addressed by ``keys`` for ``target_date``.

        Args:
            keys: Batch keys; duplicates are collapsed
            status: Status to persist
            target_date: Run's target date (YYYYMMDD)

        Returns:
            Number of rows whose status changed

        Raises:
            ReconciliationError: If the update could not be applied
        """
        identifiers = unique_identifiers(keys)
        if not identifiers:
            return 0

        params = {
            "code": status.to_code(),
            "identifiers": identifiers,
            "target_date": target_date,
        }

        try:
            affected = self.pool.execute_command(self.build_update(), params)
        except (psycopg.Error, PoolTimeout, RuntimeError) as e:
            self.metrics.record_reconciliation(status.value, 0, success=False)
            raise ReconciliationError(
                f"Failed to mark {len(identifiers)} records as {status.value}: {e}",
                affected_keys=len(identifiers),
            ) from e

        self.metrics.record_reconciliation(status.value, affected)
        self.logger.info(
            f"Marked {affected} rows as {status.value}",
            extra={
                "target_date": target_date,
                "status": status.value,
                "identifiers": len(identifiers),
                "affected_rows": affected,
            },
        )
        return affected
