"""
Unit tests for operator queries with a mocked connection pool.
"""

from unittest.mock import Mock

import pytest

from dispense_sync.core.models import DeliveryStatus
from dispense_sync.store import StatusQueries, format_prescription_date
from dispense_sync.store.queries import display_status
from dispense_sync.utils.validation import ValidationError


@pytest.fixture
def mock_pool():
    return Mock()


@pytest.mark.unit
class TestFormatting:

    @pytest.mark.parametrize("value, expected", [
        ("20250102143015", "2025-01-02 14:30:15"),
        ("202501021430", "2025-01-02 14:30"),
        ("20250102", "2025-01-02"),
        (" 20250102 ", "2025-01-02"),
        ("2025010", "2025010"),
        ("02/01/2025", "02/01/2025"),
        ("", ""),
        (None, ""),
    ])
    def test_format_prescription_date(self, value, expected):
        assert format_prescription_date(value) == expected

    @pytest.mark.parametrize("code, expected", [
        (None, "pending"),
        ("", "pending"),
        ("0", "pending"),
        ("1", "delivered"),
        ("2 ", "retry_eligible"),
        ("3", "failed"),
        ("9", "unknown:9"),
    ])
    def test_display_status(self, code, expected):
        assert display_status(code) == expected


@pytest.mark.unit
class TestStatusQueries:

    def test_breakdown_merges_pending_codes(self, mock_pool):
        mock_pool.execute_query.return_value = [
            {"code": None, "total": 4},
            {"code": "0", "total": 1},
            {"code": "1", "total": 10},
            {"code": "7", "total": 2},
        ]

        breakdown = StatusQueries(mock_pool).status_breakdown("2025-01-02")

        assert breakdown == {
            "pending": 5,
            "delivered": 10,
            "retry_eligible": 0,
            "failed": 0,
            "unknown:7": 2,
        }
        assert mock_pool.execute_query.call_args[0][1] == ("20250102",)

    def test_list_records_adds_display_fields(self, mock_pool):
        mock_pool.execute_query.return_value = [
            {"f_prescriptionnohis": "RX1", "f_dispensestatus_conhis": "3", "f_prescriptiondate": "20250102093000"},
        ]

        rows = StatusQueries(mock_pool).list_records("20250102", search="HN_1", limit=10)

        assert rows[0]["status"] == "failed"
        assert rows[0]["prescription_date_display"] == "2025-01-02 09:30:00"
        params = mock_pool.execute_query.call_args[0][1]
        assert params == {"target_date": "20250102", "limit": 10, "pattern": "%HN\\_1%"}

    def test_list_records_without_search(self, mock_pool):
        mock_pool.execute_query.return_value = []

        StatusQueries(mock_pool).list_records("20250102")

        assert "pattern" not in mock_pool.execute_query.call_args[0][1]

    def test_list_records_rejects_large_limit(self, mock_pool):
        with pytest.raises(ValidationError):
            StatusQueries(mock_pool).list_records("20250102", limit=5000)
        mock_pool.execute_query.assert_not_called()

    @pytest.mark.parametrize("status, code", [
        (DeliveryStatus.FAILED, "3"),
        (DeliveryStatus.RETRY_ELIGIBLE, "2"),
    ])
    def test_requeue(self, mock_pool, status, code):
        mock_pool.execute_command.return_value = 4

        assert StatusQueries(mock_pool).requeue("20250102", status) == 4
        assert mock_pool.execute_command.call_args[0][1] == (code, "20250102")

    @pytest.mark.parametrize("status", [DeliveryStatus.DELIVERED, DeliveryStatus.PENDING])
    def test_requeue_rejects_other_statuses(self, mock_pool, status):
        with pytest.raises(ValidationError):
            StatusQueries(mock_pool).requeue("20250102", status)
        mock_pool.execute_command.assert_not_called()
