"""
Integration tests for the connection pool, run lock and operator queries.
"""

import pytest

from dispense_sync.core.models import DeliveryStatus
from dispense_sync.store import AdvisoryRunLock, StatusQueries

TARGET_DATE = "20250102"
TEST_TABLE = "tb_dispense_middle"

LOCK_KEY = 424242


@pytest.mark.integration
class TestConnectionPool:

    def test_ping(self, db_pool):
        assert db_pool.ping()

    def test_execute_query_returns_dicts(self, db_pool):
        assert db_pool.execute_query("SELECT 1 AS one, 'a' AS letter") == [{"one": 1, "letter": "a"}]


@pytest.mark.integration
class TestAdvisoryRunLock:

    def test_second_holder_is_refused(self, db_pool):
        lock = AdvisoryRunLock(db_pool, LOCK_KEY)

        with lock.hold() as first:
            with AdvisoryRunLock(db_pool, LOCK_KEY).hold() as second:
                assert first is True
                assert second is False

    def test_released_after_exit(self, db_pool):
        lock = AdvisoryRunLock(db_pool, LOCK_KEY)

        with lock.hold() as first:
            assert first
        with lock.hold() as again:
            assert again

    def test_different_keys_do_not_conflict(self, db_pool):
        with AdvisoryRunLock(db_pool, LOCK_KEY).hold() as first:
            with AdvisoryRunLock(db_pool, LOCK_KEY + 1).hold() as second:
                assert first and second


@pytest.mark.integration
class TestStatusQueries:

    @pytest.fixture
    def seeded(self, clean_db, seed_rows, pending_row):
        seed_rows([
            pending_row("RX1"),
            pending_row("RX2", f_dispensestatus_conhis="0"),
            pending_row("RX3", f_dispensestatus_conhis="1"),
            pending_row("RX4", f_dispensestatus_conhis="3", f_patientname="Malee Srisuk"),
            pending_row("RX5", f_dispensestatus_conhis="3"),
            pending_row("RX6", f_dispensestatus_conhis="2"),
            pending_row("RX7", f_dispensestatus_conhis="3", f_prescriptiondate="20250103080000"),
        ])
        return StatusQueries(clean_db, table_name=TEST_TABLE)

    def test_status_breakdown(self, seeded):
        assert seeded.status_breakdown(TARGET_DATE) == {
            "pending": 2,
            "delivered": 1,
            "retry_eligible": 1,
            "failed": 2,
        }

    def test_list_records_search(self, seeded):
        rows = seeded.list_records(TARGET_DATE, search="malee")

        assert [r["f_prescriptionnohis"] for r in rows] == ["RX4"]
        assert rows[0]["status"] == "failed"
        assert rows[0]["prescription_date_display"] == "2025-01-02 09:30:00"

    def test_list_records_limit(self, seeded):
        assert len(seeded.list_records(TARGET_DATE, limit=3)) == 3

    def test_requeue_failed(self, seeded, fetch_statuses):
        assert seeded.requeue(TARGET_DATE) == 2

        statuses = fetch_statuses()
        assert statuses[("RX4", 1)] is None
        assert statuses[("RX5", 1)] is None
        assert statuses[("RX7", 1)] == "3"
        assert statuses[("RX6", 1)] == "2"

    def test_requeue_retry_eligible(self, seeded, fetch_statuses):
        assert seeded.requeue(TARGET_DATE, DeliveryStatus.RETRY_ELIGIBLE) == 1
        assert fetch_statuses()[("RX6", 1)] is None
