"""
Unit tests for value normalizers.
"""

import pytest

from dispense_sync.core.mapping.normalizers import (
    clean_text,
    combine_date_time,
    date_prefix,
    decode_flag,
    decode_sex,
    parse_float,
    parse_int,
    split_carrier,
)


@pytest.mark.unit
class TestCleanText:

    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
    def test_blank_is_none(self, value):
        assert clean_text(value) is None

    def test_non_string_values(self):
        assert clean_text(12) == "12"
        assert clean_text(" a b ") == "a b"


@pytest.mark.unit
class TestCombineDateTime:

    def test_both_parts(self):
        assert combine_date_time("20250102", "0930") == "202501020930"

    def test_time_absent(self):
        assert combine_date_time(" 20250102 ", "") == "20250102"

    def test_date_absent(self):
        assert combine_date_time("  ", "0930") is None


@pytest.mark.unit
class TestSplitCarrier:

    def test_exact_positions(self):
        assert split_carrier("a^b^c", 3) == ["a", "b", "c"]

    def test_extra_parts_ignored(self):
        assert split_carrier("a^b^c^d^e", 2) == ["a", "b"]

    def test_missing_positions(self):
        assert split_carrier("a", 3) == ["a", None, None]

    def test_absent_value(self):
        assert split_carrier(None, 2) == [None, None]


@pytest.mark.unit
class TestDecoders:

    def test_sex(self):
        assert decode_sex(None) == "U"
        assert decode_sex(" 0 ") == "M"
        assert decode_sex("1") == "F"

    def test_flag(self):
        assert decode_flag("1", 1) == "1"
        assert decode_flag("1.0", 1) == "1"
        assert decode_flag("2", 1) == "0"
        assert decode_flag(None, 2) == "0"

    def test_date_prefix(self):
        assert date_prefix("20250102093000") == "20250102"
        assert date_prefix("2025") == "2025"
        assert date_prefix(" ") is None


@pytest.mark.unit
class TestNumbers:

    @pytest.mark.parametrize("value, expected", [
        ("3", 3),
        (" 42 ", 42),
        ("2.0", 2),
        ("1,200", 1200),
        ("2.5", None),
        ("abc", None),
        ("Infinity", None),
        ("1e999999999", None),
        ("9999999999999999999", 9999999999999999999),
        (None, None),
    ])
    def test_parse_int(self, value, expected):
        assert parse_int(value) == expected

    @pytest.mark.parametrize("value, expected", [
        ("1.25", 1.25),
        ("10", 10.0),
        ("-0.5", -0.5),
        ("1e400", None),
        ("NaN", None),
        ("", None),
    ])
    def test_parse_float(self, value, expected):
        assert parse_float(value) == expected
