"""
Pytest configuration and fixtures for dispense-sync tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
from typing import Any, Callable, Generator

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

from dispense_sync.core.models import SourceRow
from dispense_sync.store import DatabaseConnectionPool

TEST_DB_USER = "test_sync"
TEST_DB_PASSWORD = "test_password"
TEST_DB_NAME = "test_pharmacy"
TEST_TABLE = "tb_dispense_middle"
TARGET_DATE = "20250102"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# ROW FIXTURES
# =======================

def build_source_row(**overrides: Any) -> SourceRow:
    """A complete, mappable source row; keyword arguments replace columns."""
    values: dict[str, Any] = {
        "f_referencecode": "REF-0001",
        "f_prescriptionnohis": "RX0001",
        "f_seq": "1",
        "f_seqmax": "2",
        "f_prescriptiondate": f"{TARGET_DATE}093000",
        "f_ordercreatedate": TARGET_DATE,
        "f_ordercreatetime": "091500",
        "f_orderacceptdate": TARGET_DATE,
        "f_orderaccepttime": "092000",
        "f_doctorcode": "D001",
        "f_doctorname": "Dr. Somchai",
        "f_hn": "HN000123",
        "f_en": "EN000456",
        "f_patientname": "Somsri Jaidee",
        "f_sex": "1",
        "f_wardcode": "W01",
        "f_warddesc": "Medicine Ward 1",
        "f_bedcode": "B12",
        "f_orderitemname": "Paracetamol 500 mg",
        "f_orderqty": "20",
        "f_orderunitcode": "TAB",
        "f_dosage": "1.5",
        "f_prn": "0",
        "f_freetext2": "PARA500^A-12^^take after meals",
        "f_dispensestatus_conhis": None,
        "f_lastmodified": "2025-01-02T09:30:00",
    }
    values.update(overrides)
    return SourceRow(**values)


@pytest.fixture
def make_row() -> Callable[..., SourceRow]:
    """Factory fixture for source rows."""
    return build_source_row


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Skips dependent tests when Docker is not available.

    Yields:
        PostgresContainer instance with initialized database
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username=TEST_DB_USER,
        password=TEST_DB_PASSWORD,
        dbname=TEST_DB_NAME,
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )
        with open(init_sql_path, 'r') as f:
            init_sql = f.read()

        with psycopg.connect(container.get_connection_url(driver=None)) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield container
    finally:
        container.stop()


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open a connection pool against the test container

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database=TEST_DB_NAME,
        user=TEST_DB_USER,
        password=TEST_DB_PASSWORD,
        min_size=1,
        max_size=4,
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(db_pool) -> DatabaseConnectionPool:
    """
    Provide a clean dispense table before each test

    Returns:
        Open DatabaseConnectionPool over an empty table
    """
    db_pool.execute_command(f"TRUNCATE TABLE {TEST_TABLE} RESTART IDENTITY")
    return db_pool


@pytest.fixture
def seed_rows(clean_db) -> Callable[[list[dict[str, Any]]], int]:
    """
    Insert rows into the dispense table.

    Each dict maps column names to values; columns may differ between rows.
    """
    def _seed(rows: list[dict[str, Any]]) -> int:
        with clean_db.get_connection() as conn:
            with conn.cursor() as cur:
                for row in rows:
                    columns = ", ".join(row)
                    placeholders = ", ".join(["%s"] * len(row))
                    cur.execute(
                        f"INSERT INTO {TEST_TABLE} ({columns}) VALUES ({placeholders})",
                        tuple(row.values()),
                    )
            conn.commit()
        return len(rows)

    return _seed


def build_pending_row(rx: str, seq: int = 1, minute: int = 0, **overrides: Any) -> dict[str, Any]:
    """Column values for one pending row on the test target date."""
    row: dict[str, Any] = {
        "f_referencecode": f"REF-{rx}-{seq}",
        "f_prescriptionnohis": rx,
        "f_seq": seq,
        "f_seqmax": seq,
        "f_prescriptiondate": f"{TARGET_DATE}0930{minute % 60:02d}",
        "f_hn": f"HN-{rx}",
        "f_patientname": f"Patient {rx}",
        "f_sex": "0",
        "f_orderitemname": "Amoxicillin 500 mg",
        "f_orderqty": "21",
        "f_prn": "1",
        "f_freetext2": f"AMOX500^S-{seq}",
        "f_lastmodified": f"2025-01-02 10:{minute // 60 % 60:02d}:{minute % 60:02d}",
    }
    row.update(overrides)
    return row


@pytest.fixture
def pending_row() -> Callable[..., dict[str, Any]]:
    """Factory fixture for pending row column values."""
    return build_pending_row


@pytest.fixture
def fetch_statuses(clean_db) -> Callable[[], dict[tuple[str, int], str | None]]:
    """Current status code per (prescription, seq)."""
    def _fetch() -> dict[tuple[str, int], str | None]:
        rows = clean_db.execute_query(
            f"SELECT f_prescriptionnohis, f_seq, f_dispensestatus_conhis FROM {TEST_TABLE}"
        )
        return {(r["f_prescriptionnohis"], r["f_seq"]): r["f_dispensestatus_conhis"] for r in rows}

    return _fetch
