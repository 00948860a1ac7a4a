"""
PostgreSQL connection pool management using psycopg3

This module provides a connection pool for the dispense middle store
with automatic connection lifecycle management and bounded statement time.
"""
import time
from contextlib import contextmanager
from typing import Any, Iterator

import psycopg
from psycopg import OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from dispense_sync.core.errors import ConfigurationError, ConnectivityError
from dispense_sync.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3

    Every connection carries a server-side ``statement_timeout`` so that no
    store operation can stay pending indefinitely.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "pharmacy",
        user: str = "dispense_sync",
        password: str | None = None,
        min_size: int = 2,
        max_size: int = 5,
        timeout: float = 10.0,
        statement_timeout: float = 30.0,
    ) -> None:
        """
        Initialize database connection pool

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password (required)
            min_size: Minimum pool size
            max_size: Maximum pool size
            timeout: Seconds to wait for a connection
            statement_timeout: Seconds any single statement may run

        Raises:
            ConfigurationError: If no password is given
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password

        if not self.password:
            raise ConfigurationError(
                "Database password must be provided. "
                "Set DISPENSE_DB_PASSWORD or pass --db-password."
            )

        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.statement_timeout = statement_timeout

        self.conninfo = make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=self.password,
            connect_timeout=max(int(self.timeout), 1),
            options=f"-c statement_timeout={int(self.statement_timeout * 1000)}",
        )

        self._pool: ConnectionPool | None = None

    @classmethod
    def from_settings(cls, settings) -> "DatabaseConnectionPool":
        """Build a pool from SyncSettings."""
        return cls(
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
            user=settings.db_user,
            password=settings.db_password,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            timeout=settings.connect_timeout,
            statement_timeout=settings.statement_timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            ConnectivityError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},  # Return rows as dictionaries
                open=False,
            )
            try:
                pool.open(wait=True, timeout=self.timeout)
                self._pool = pool
                return
            except (OperationalError, PoolTimeout) as e:
                pool.close()
                logger.warning(
                    f"Database connection attempt {attempt}/{max_retries} failed: {e}",
                    extra={"host": self.host, "database": self.database},
                )
                if attempt < max_retries:
                    time.sleep(retry_delay)
                else:
                    raise ConnectivityError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e

    def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self) -> Iterator[psycopg.Connection]:
        """
        Get a connection from the pool

        Yields:
            psycopg.Connection: Database connection

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def get_cursor(self) -> Iterator[psycopg.Cursor]:
        """
        Get a cursor from a pooled connection

        Yields:
            psycopg.Cursor: Database cursor
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                yield cur

    def execute_query(self, query: Any, params: tuple | dict | None = None) -> list[dict]:
        """
        Execute a SELECT query and return results

        Args:
            query: SQL SELECT query (string or psycopg.sql composable)
            params: Query parameters (optional)

        Returns:
            List of dictionaries (one per row)
        """
        with self.get_cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def execute_command(self, command: Any, params: tuple | dict | None = None) -> int:
        """
        Execute an INSERT/UPDATE/DELETE command in its own transaction

        Args:
            command: SQL command (string or psycopg.sql composable)
            params: Command parameters (optional)

        Returns:
            Number of rows affected
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(command, params)
                rowcount = cur.rowcount
            conn.commit()
            return rowcount

    def ping(self) -> bool:
        """
        Check that the store answers a trivial query.

        Returns:
            True if reachable, False otherwise
        """
        try:
            result = self.execute_query("SELECT 1 AS ok")
            return bool(result and result[0]["ok"] == 1)
        except (psycopg.Error, PoolTimeout, RuntimeError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    def __enter__(self):
        """Context manager entry"""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()
        return False
