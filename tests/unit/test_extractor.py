"""
Unit tests for PendingRowExtractor failure handling and query composition.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, Mock

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from dispense_sync.core.errors import ConnectivityError
from dispense_sync.store import PendingRowExtractor
from dispense_sync.store.extractor import selectable_codes


def _pool_raising(error):
    pool = Mock()

    @contextmanager
    def get_connection():
        raise error
        yield  # pragma: no cover

    pool.get_connection = get_connection
    return pool


def _pool_with_cursor(cursor):
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    pool = Mock()

    @contextmanager
    def get_connection():
        yield conn

    pool.get_connection = get_connection
    return pool, conn


@pytest.mark.unit
class TestPendingRowExtractor:

    def test_selectable_codes(self):
        assert selectable_codes() == ["", "0"]
        assert selectable_codes(include_retry_eligible=True) == ["", "0", "2"]

    def test_non_positive_window_yields_nothing(self):
        pool = Mock()
        extractor = PendingRowExtractor(pool)

        assert list(extractor.iter_rows("20250102", 0)) == []
        pool.get_connection.assert_not_called()

    @pytest.mark.parametrize("error", [
        PoolTimeout("couldn't get a connection after 10.00 sec"),
        psycopg.OperationalError("connection refused"),
    ])
    def test_store_unreachable(self, error):
        extractor = PendingRowExtractor(_pool_raising(error))

        with pytest.raises(ConnectivityError):
            list(extractor.iter_rows("20250102", 100))

    def test_rows_streamed_with_parameters(self):
        cursor = MagicMock()
        cursor.__iter__.return_value = iter([
            {"f_prescriptionnohis": "RX1", "f_seq": 1, "f_prescriptiondate": "20250102093000"},
            {"f_prescriptionnohis": "RX2", "f_seq": 1, "f_prescriptiondate": "20250102093100"},
        ])
        pool, conn = _pool_with_cursor(cursor)
        extractor = PendingRowExtractor(pool, include_retry_eligible=True, fetch_size=50)

        rows = list(extractor.iter_rows("20250102", 10))

        assert [r.f_prescriptionnohis for r in rows] == ["RX1", "RX2"]
        assert rows[0].f_seq == "1"
        assert cursor.itersize == 50
        params = cursor.execute.call_args[0][1]
        assert params == {"codes": ["", "0", "2"], "target_date": "20250102", "limit": 10}
        conn.cursor.assert_called_once_with(name="dispense_pending_rows")

    def test_failure_mid_stream(self):
        def rows():
            yield {"f_prescriptionnohis": "RX1", "f_prescriptiondate": "20250102"}
            raise psycopg.OperationalError("server closed the connection unexpectedly")

        cursor = MagicMock()
        cursor.__iter__.return_value = rows()
        pool, _ = _pool_with_cursor(cursor)
        iterator = PendingRowExtractor(pool).iter_rows("20250102", 10)

        assert next(iterator).f_prescriptionnohis == "RX1"
        with pytest.raises(ConnectivityError):
            next(iterator)

    def test_query_uses_configured_table(self):
        query = PendingRowExtractor(Mock(), table_name="tb_custom").build_query()
        assert "tb_custom" in repr(query)
