"""
Value normalizers used by the field mapper.

Each helper is total: bad input produces None (absent), never an exception.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any

CARRIER_DELIMITER = "^"

# Combined PRN/STAT flag values
PRN_FLAG = 1
STAT_FLAG = 2

# Integers with more than 19 digits are treated as unparseable
MAX_INT_DIGITS = 18


def clean_text(value: Any) -> str | None:
    """
    Normalize a raw value to trimmed text.

    Examples:
        >>> clean_text("  HN001 ")
        'HN001'
        >>> clean_text("   ") is None
        True
    """
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def combine_date_time(date_part: Any, time_part: Any) -> str | None:
    """
    Join a date column and a time column into one string.

    Absent date -> absent pair; absent time -> date only.

    Examples:
        >>> combine_date_time("20250102", "093000")
        '20250102093000'
        >>> combine_date_time("20250102", None)
        '20250102'
        >>> combine_date_time(None, "093000") is None
        True
    """
    date_text = clean_text(date_part)
    if date_text is None:
        return None
    time_text = clean_text(time_part)
    if time_text is None:
        return date_text
    return f"{date_text}{time_text}"


def split_carrier(value: Any, positions: int, delimiter: str = CARRIER_DELIMITER) -> list[str | None]:
    """
    Split a carrier field into a fixed number of positional sub-values.

    Positions beyond the split length, and blank sub-values, are None.

    Examples:
        >>> split_carrier("PARA500^A-12^^note", 4)
        ['PARA500', 'A-12', None, 'note']
        >>> split_carrier("PARA500", 3)
        ['PARA500', None, None]
    """
    text = clean_text(value)
    parts = text.split(delimiter) if text is not None else []
    return [clean_text(parts[i]) if i < len(parts) else None for i in range(positions)]


def decode_sex(value: Any) -> str:
    """Absent -> 'U', '0' -> 'M', anything else -> 'F'."""
    code = clean_text(value)
    if code is None:
        return "U"
    if code == "0":
        return "M"
    return "F"


def parse_int(value: Any) -> int | None:
    """Parse an integral number; non-integral or unparseable input is None."""
    number = _parse_decimal(value)
    if number is None or number.adjusted() > MAX_INT_DIGITS:
        return None
    if number != number.to_integral_value():
        return None
    return int(number)


def parse_float(value: Any) -> float | None:
    """Parse a decimal number; unparseable or non-finite input is None."""
    number = _parse_decimal(value)
    if number is None:
        return None
    result = float(number)
    if math.isinf(result):
        return None
    return result


def decode_flag(value: Any, reserved: int) -> str:
    """'1' when the combined flag equals the reserved value, else '0'."""
    return "1" if parse_int(value) == reserved else "0"


def date_prefix(value: Any, length: int = 8) -> str | None:
    """Leading YYYYMMDD part of a stored date/datetime string."""
    text = clean_text(value)
    if text is None:
        return None
    return text[:length]


def _parse_decimal(value: Any) -> Decimal | None:
    text = clean_text(value)
    if text is None:
        return None
    try:
        number = Decimal(text.replace(",", ""))
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number
