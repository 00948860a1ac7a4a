"""
Single-run guard built on a PostgreSQL session-level advisory lock.
"""

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from logging import Logger

import psycopg
from psycopg_pool import PoolTimeout

from dispense_sync.core.errors import ConnectivityError
from dispense_sync.observability.logger import get_logger
from dispense_sync.store.connection import DatabaseConnectionPool


class AdvisoryRunLock:
    """
    Holds ``pg_try_advisory_lock(key)`` on a dedicated pooled connection.

    The lock is session-level, so the connection stays checked out for as
    long as the lock is held and is unlocked before it returns to the pool.

    Usage:
        with AdvisoryRunLock(pool, key).hold() as acquired:
            if acquired:
                ...  # run the pipeline
    """

    def __init__(self, pool: DatabaseConnectionPool, key: int, logger: Logger | None = None):
        self.pool = pool
        self.key = key
        self.logger = logger or get_logger(__name__)

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """
        Try to take the lock without waiting.

        Yields:
            True if this session now holds the lock, False if another does

        Raises:
            ConnectivityError: If no connection is available or the lock query fails
        """
        with ExitStack() as stack:
            try:
                conn = stack.enter_context(self.pool.get_connection())
                conn.autocommit = True
                stack.callback(setattr, conn, "autocommit", False)
                row = conn.execute("SELECT pg_try_advisory_lock(%s) AS locked", (self.key,)).fetchone()
            except (psycopg.Error, PoolTimeout) as e:
                raise ConnectivityError(f"Run lock unavailable: {e}") from e

            acquired = bool(row and row["locked"])
            if acquired:
                stack.callback(self._release, conn)
            else:
                self.logger.info("Run lock is held by another session", extra={"lock_key": self.key})

            yield acquired

    def _release(self, conn: psycopg.Connection) -> None:
        try:
            conn.execute("SELECT pg_advisory_unlock(%s)", (self.key,))
        except psycopg.Error as e:
            # The pool discards broken connections, which ends the session and its lock
            self.logger.warning(f"Failed to release run lock: {e}", extra={"lock_key": self.key})
