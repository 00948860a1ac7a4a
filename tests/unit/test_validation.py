"""
Unit tests for input validation utilities.
"""

from datetime import date, datetime

import pytest

from dispense_sync.utils.validation import (
    ValidationError,
    sanitize_sql_identifier,
    today_target_date,
    validate_api_url,
    validate_limit,
    validate_search_text,
    validate_target_date,
)


@pytest.mark.unit
class TestTargetDate:

    @pytest.mark.parametrize("value", ["20250102", "2025-01-02", " 20250102 ", date(2025, 1, 2), datetime(2025, 1, 2, 23, 59)])
    def test_normalized(self, value):
        assert validate_target_date(value) == "20250102"

    @pytest.mark.parametrize("value", ["", "2025010", "2025-13-01", "20250230", "yesterday", None])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_target_date(value)

    def test_today(self):
        assert today_target_date() == date.today().strftime("%Y%m%d")


@pytest.mark.unit
class TestLimit:

    def test_valid(self):
        assert validate_limit(100) == 100

    @pytest.mark.parametrize("value", [0, -1, 10001, True, "10"])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_limit(value)


@pytest.mark.unit
class TestSearchText:

    def test_trimmed(self):
        assert validate_search_text("  HN00 ") == "HN00"

    def test_blank_is_none(self):
        assert validate_search_text("   ") is None
        assert validate_search_text(None) is None

    def test_like_wildcards_escaped(self):
        assert validate_search_text("50%_a\\b") == "50\\%\\_a\\\\b"

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_search_text("x" * 101)


@pytest.mark.unit
class TestApiUrl:

    def test_valid(self):
        assert validate_api_url(" https://middleware.local/api ") == "https://middleware.local/api"

    @pytest.mark.parametrize("url", ["", "middleware.local/api", "ftp://middleware.local", "http://"])
    def test_rejected(self, url):
        with pytest.raises(ValidationError):
            validate_api_url(url)


@pytest.mark.unit
class TestSqlIdentifier:

    def test_valid(self):
        assert sanitize_sql_identifier("tb_dispense_middle") == "tb_dispense_middle"

    @pytest.mark.parametrize("name", ["tb; DROP TABLE x", "1table", "select", "a" * 64, ""])
    def test_rejected(self, name):
        with pytest.raises(ValidationError):
            sanitize_sql_identifier(name)
