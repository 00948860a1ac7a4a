"""
Polling runner: repeats sync runs on a fixed interval until stopped.
"""

import signal
import threading
from logging import Logger
from typing import Callable

from dispense_sync.core.models import RunResult
from dispense_sync.observability.logger import get_logger


class PollingRunner:
    """
    Calls ``run_once`` every ``interval_seconds``.

    Cancellation only takes effect between runs: ``stop()`` (or SIGINT /
    SIGTERM once ``install_signal_handlers`` was called) interrupts the wait,
    never a run in progress. An unexpected exception from a run is logged and
    followed by ``backoff_seconds`` of waiting before the next attempt.
    """

    def __init__(
        self,
        run_once: Callable[[str | None], RunResult],
        interval_seconds: float = 5.0,
        backoff_seconds: float = 5.0,
        target_date: str | None = None,
        logger: Logger | None = None,
    ):
        """
        Initialize runner.

        Args:
            run_once: Callable performing one run (usually SyncOrchestrator.run)
            interval_seconds: Wait between runs
            backoff_seconds: Wait after a run raised
            target_date: Fixed target date; None means today on every run
            logger: Logger instance
        """
        self.run_once = run_once
        self.interval_seconds = interval_seconds
        self.backoff_seconds = backoff_seconds
        self.target_date = target_date
        self.logger = logger or get_logger(__name__)
        self.runs_completed = 0
        self._stop = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Request the loop to end after the current run."""
        self._stop.set()

    def install_signal_handlers(self) -> None:
        """Stop gracefully on SIGINT and SIGTERM."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:  # type: ignore[no-untyped-def]
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name} signal, stopping after the current run...")
        self.stop()

    def run_forever(self, max_runs: int | None = None) -> int:
        """
        Loop until stopped (or until ``max_runs`` runs were attempted).

        Returns:
            Number of runs attempted
        """
        attempts = 0
        self.logger.info(
            "Polling started",
            extra={"interval_seconds": self.interval_seconds, "target_date": self.target_date},
        )

        while not self._stop.is_set():
            attempts += 1
            wait = self.interval_seconds
            try:
                result = self.run_once(self.target_date)
                self.runs_completed += 1
                self.logger.info(
                    f"Poll {attempts}: {result.success_count} delivered, {result.failed_count} failed",
                    extra={
                        "target_date": result.target_date,
                        "success_count": result.success_count,
                        "failed_count": result.failed_count,
                        "errors": list(result.errors),
                    },
                )
            except Exception as e:  # keep polling after an unexpected failure
                self.logger.exception(
                    f"Poll {attempts} failed: {e}",
                    extra={"error_type": type(e).__name__, "backoff_seconds": self.backoff_seconds},
                )
                wait = self.backoff_seconds

            if max_runs is not None and attempts >= max_runs:
                break
            self._stop.wait(wait)

        self.logger.info("Polling stopped", extra={"runs_attempted": attempts})
        return attempts
