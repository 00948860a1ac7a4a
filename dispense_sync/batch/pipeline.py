"""
Sync run orchestration.

Coordinates the flow: extract → map → accumulate → send → reconcile
"""

from contextlib import closing
from datetime import datetime, timezone
from enum import Enum
from logging import Logger

from dispense_sync.batch.accumulator import BatchAccumulator
from dispense_sync.core.errors import ConnectivityError, ReconciliationError
from dispense_sync.core.mapping import FieldMapper
from dispense_sync.core.models import Batch, BatchKey, DeliveryStatus, MappingResult, RunResult
from dispense_sync.delivery import BatchSender, SendOutcome
from dispense_sync.observability.logger import bind_run_context, get_logger, log_operation
from dispense_sync.observability.metrics import MetricsCollector
from dispense_sync.store import AdvisoryRunLock, PendingRowExtractor, StatusReconciler
from dispense_sync.store.connection import DatabaseConnectionPool
from dispense_sync.utils.validation import today_target_date, validate_target_date

RUN_SKIPPED_MESSAGE = "run skipped: another sync run holds the lock"

FAILURE_POLICIES = ("terminal", "retry_transient")


class RunState(str, Enum):
    """Orchestrator states within one run."""

    START = "start"
    EXTRACTING = "extracting"
    MAPPING = "mapping"
    SENDING = "sending"
    RECONCILING = "reconciling"
    FINALIZING = "finalizing"
    DONE = "done"


class _RunTally:
    """Mutable counters for the run in progress."""

    def __init__(self) -> None:
        self.success_count = 0
        self.failed_count = 0
        self.batches_sent = 0
        self.reconciliation_failures = 0
        self.unmapped_keys: list[BatchKey] = []
        self.errors: list[str] = []
        self.status = "completed"


class SyncOrchestrator:
    """
    Drives one sync run end to end and returns a RunResult.

    Flow:
    1. Optionally take the run lock
    2. Stream pending rows for the target date
    3. Map each row; failures are counted and marked Failed when addressable
    4. Accumulate records and send each full batch
    5. Reconcile every batch to the status its outcome implies
    6. Send the final partial batch

    Only an extraction connectivity failure ends a run early. Every other
    failure is folded into the counters, and the caller always gets a result.
    """

    def __init__(
        self,
        extractor: PendingRowExtractor,
        sender: BatchSender,
        reconciler: StatusReconciler,
        mapper: FieldMapper | None = None,
        max_batch_size: int = 100,
        window_size: int = 1000,
        failure_policy: str = "terminal",
        run_lock: AdvisoryRunLock | None = None,
        metrics: MetricsCollector | None = None,
        logger: Logger | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            extractor: Pending row source
            sender: Downstream batch sender
            reconciler: Status writer
            mapper: Row mapper (default FieldMapper)
            max_batch_size: Records per batch
            window_size: Maximum rows selected per run
            failure_policy: "terminal" or "retry_transient"
            run_lock: Optional guard against concurrent runs
            metrics: Metrics collector
            logger: Logger instance
        """
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unknown failure policy: {failure_policy}")

        self.extractor = extractor
        self.sender = sender
        self.reconciler = reconciler
        self.mapper = mapper or FieldMapper()
        self.max_batch_size = max_batch_size
        self.window_size = window_size
        self.failure_policy = failure_policy
        self.run_lock = run_lock
        self.metrics = metrics or MetricsCollector()
        self.logger = logger or get_logger(__name__)
        self.state = RunState.START

    @classmethod
    def from_settings(
        cls,
        settings,
        pool: DatabaseConnectionPool,
        sender: BatchSender | None = None,
    ) -> "SyncOrchestrator":
        """Wire the default components from SyncSettings and an open pool."""
        metrics = MetricsCollector()
        return cls(
            extractor=PendingRowExtractor(
                pool,
                table_name=settings.table_name,
                include_retry_eligible=settings.failure_policy == "retry_transient",
                fetch_size=settings.fetch_size,
            ),
            sender=sender or BatchSender.from_settings(settings, metrics=metrics),
            reconciler=StatusReconciler(pool, table_name=settings.table_name, metrics=metrics),
            max_batch_size=settings.max_batch_size,
            window_size=settings.window_size,
            failure_policy=settings.failure_policy,
            run_lock=AdvisoryRunLock(pool, settings.run_lock_key) if settings.use_run_lock else None,
            metrics=metrics,
        )

    def run(self, target_date: str | None = None) -> RunResult:
        """
        Execute one sync run.

        Args:
            target_date: YYYYMMDD or YYYY-MM-DD; defaults to today

        Returns:
            RunResult with delivered/failed counters and run-level errors
        """
        target_date = validate_target_date(target_date) if target_date else today_target_date()
        started_at = datetime.now(timezone.utc)
        tally = _RunTally()
        self.state = RunState.START

        with bind_run_context(target_date), log_operation("Sync run", logger=self.logger, target_date=target_date) as op:
            try:
                if self.run_lock is None:
                    self._execute(target_date, tally)
                else:
                    with self.run_lock.hold() as acquired:
                        if acquired:
                            self._execute(target_date, tally)
                        else:
                            tally.status = "skipped"
                            tally.errors.append(RUN_SKIPPED_MESSAGE)
            except ConnectivityError as e:
                self.logger.error(
                    f"Run aborted: {e}",
                    extra={"target_date": target_date, "error_type": "ConnectivityError"},
                )
                tally.status = "aborted"
                tally.errors.append(str(e))
            except Exception as e:  # the caller always receives a RunResult
                self.logger.exception(
                    f"Run failed unexpectedly: {e}",
                    extra={"target_date": target_date, "error_type": type(e).__name__},
                )
                tally.status = "aborted"
                tally.errors.append(f"{type(e).__name__}: {e}")

            self.state = RunState.DONE
            duration = op.elapsed

        self.metrics.record_run(tally.status, tally.success_count, tally.failed_count, duration)

        result = RunResult(
            target_date=target_date,
            success_count=tally.success_count,
            failed_count=tally.failed_count,
            errors=tuple(tally.errors),
            batches_sent=tally.batches_sent,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        self.logger.info(
            f"Run finished: {result.success_count} delivered, {result.failed_count} failed",
            extra={
                "target_date": target_date,
                "run_status": tally.status,
                "success_count": result.success_count,
                "failed_count": result.failed_count,
                "batches_sent": result.batches_sent,
                "reconciliation_failures": tally.reconciliation_failures,
                "errors": list(result.errors),
            },
        )
        return result

    def _execute(self, target_date: str, tally: _RunTally) -> None:
        """
        Stream, map, batch, send and reconcile.

        Raises:
            ConnectivityError: If extraction fails; rows accumulated but not
                yet sent stay pending for the next run
        """
        accumulator = BatchAccumulator(self.max_batch_size)

        try:
            self.state = RunState.EXTRACTING
            with closing(self.extractor.iter_rows(target_date, self.window_size)) as rows:
                for row in rows:
                    self.state = RunState.MAPPING
                    result = self.mapper.map_row(row)

                    if not result.ok:
                        self._handle_mapping_failure(result, target_date, tally)
                    else:
                        accumulator.add(result.record, result.key)
                        if accumulator.is_full():
                            self._dispatch(accumulator.drain(), target_date, tally)

                    self.state = RunState.EXTRACTING

            self.state = RunState.FINALIZING
            final_batch = accumulator.drain()
            if final_batch is not None:
                self._dispatch(final_batch, target_date, tally)
        finally:
            # Updates are per identifier and the last write wins: unmapped rows
            # go last so a sibling line's batch cannot overwrite their Failed mark.
            if tally.unmapped_keys:
                self.state = RunState.RECONCILING
                self._reconcile(tally.unmapped_keys, DeliveryStatus.FAILED, target_date, tally)

    def _handle_mapping_failure(self, result: MappingResult, target_date: str, tally: _RunTally) -> None:
        tally.failed_count += 1
        self.metrics.record_mapping_failure(result.field_name)
        identifier = result.key.record_identifier if result.key else None
        self.logger.warning(
            f"Row skipped: {result.error}",
            extra={
                "target_date": target_date,
                "record_identifier": identifier,
                "field_name": result.field_name,
                "error_type": "MappingError",
            },
        )

        if result.key is not None:
            tally.unmapped_keys.append(result.key)

    def _dispatch(self, batch: Batch, target_date: str, tally: _RunTally) -> None:
        self.state = RunState.SENDING
        outcome = self.sender.send(batch)
        tally.batches_sent += 1

        status = self.status_for(outcome)
        if status is DeliveryStatus.DELIVERED:
            tally.success_count += len(batch)
        else:
            tally.failed_count += len(batch)
            self.logger.warning(
                f"Batch {batch.number} not delivered: {outcome.describe()}",
                extra={
                    "target_date": target_date,
                    "batch_number": batch.number,
                    "batch_size": len(batch),
                    "status_code": getattr(outcome, "status_code", None),
                    "status": status.value,
                    "error_type": outcome.kind,
                },
            )

        self.state = RunState.RECONCILING
        self._reconcile(batch.keys, status, target_date, tally)

    def status_for(self, outcome: SendOutcome) -> DeliveryStatus:
        """
        Status a batch is reconciled to for a given send outcome.

        Under ``retry_transient`` transport failures and 5xx rejections are
        left selectable for the next run; everything else not delivered is
        Failed.
        """
        if outcome.ok:
            return DeliveryStatus.DELIVERED
        if self.failure_policy == "retry_transient" and outcome.is_transient:
            return DeliveryStatus.RETRY_ELIGIBLE
        return DeliveryStatus.FAILED

    def _reconcile(
        self,
        keys: list[BatchKey],
        status: DeliveryStatus,
        target_date: str,
        tally: _RunTally,
    ) -> None:
        try:
            self.reconciler.reconcile(keys, status, target_date)
        except ReconciliationError as e:
            tally.reconciliation_failures += 1
            self.logger.error(
                f"Status reconciliation failed: {e}",
                extra={
                    "target_date": target_date,
                    "status": status.value,
                    "affected_keys": e.affected_keys,
                    "error_type": "ReconciliationError",
                },
            )
