"""
Input validation utilities for the dispense sync pipeline.

Provides reusable validation functions for target dates, query limits,
search text, endpoint URLs and SQL identifiers taken from configuration.
"""

import re
from datetime import date, datetime
from urllib.parse import urlparse


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_target_date(value: str | date, field_name: str = "target_date") -> str:
    """
    Validate a target date and normalize it to YYYYMMDD.

    Accepts ``YYYYMMDD``, ``YYYY-MM-DD`` or a ``date``/``datetime``.

    Args:
        value: The date to validate
        field_name: Name of the field (for error messages)

    Returns:
        The date as an 8-digit string

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_target_date("2025-01-02")
        '20250102'
        >>> validate_target_date("20250102")
        '20250102'
        >>> validate_target_date("2025-13-01")  # doctest: +SKIP
        ValidationError: target_date is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.strftime("%Y%m%d")
    if isinstance(value, date):
        return value.strftime("%Y%m%d")

    if not value or not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    text = value.strip().replace("-", "")
    if not re.match(r'^[0-9]{8}$', text):
        raise ValidationError(f"{field_name} must be formatted as YYYYMMDD or YYYY-MM-DD")

    try:
        datetime.strptime(text, "%Y%m%d")
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid calendar date")

    return text


def today_target_date() -> str:
    """Today's local date as YYYYMMDD."""
    return date.today().strftime("%Y%m%d")


def validate_limit(limit: int, field_name: str = "limit", max_limit: int = 10000) -> int:
    """
    Validate a limit parameter for queries.

    Args:
        limit: The limit value to validate
        field_name: Name of the field (for error messages)
        max_limit: Maximum allowed limit value

    Returns:
        The validated limit value

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_limit(100)
        100
        >>> validate_limit(0)  # doctest: +SKIP
        ValidationError: limit must be a positive integer
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(limit).__name__}")

    if limit <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {limit}")

    if limit > max_limit:
        raise ValidationError(f"{field_name} exceeds maximum of {max_limit}")

    return limit


def validate_search_text(text: str | None, field_name: str = "search", max_length: int = 100) -> str | None:
    """
    Validate free-text search input.

    Returns None for empty input. LIKE wildcards are escaped so the text
    matches literally.

    Examples:
        >>> validate_search_text("  HN00 ")
        'HN00'
        >>> validate_search_text("50%")
        '50\\\\%'
        >>> validate_search_text("   ") is None
        True
    """
    if text is None:
        return None
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} must be a string")

    text = text.strip()
    if not text:
        return None

    if len(text) > max_length:
        raise ValidationError(f"{field_name} exceeds maximum length of {max_length} characters")

    if "\x00" in text:
        raise ValidationError(f"{field_name} contains null bytes")

    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def validate_api_url(url: str, field_name: str = "api_url") -> str:
    """
    Validate the downstream endpoint URL.

    Examples:
        >>> validate_api_url("https://middleware.local/api/dispense")
        'https://middleware.local/api/dispense'
        >>> validate_api_url("ftp://host/x")  # doctest: +SKIP
        ValidationError: api_url must use http or https
    """
    if not url or not isinstance(url, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValidationError(f"{field_name} must use http or https")
    if not parsed.netloc:
        raise ValidationError(f"{field_name} must include a host")

    return url


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Sanitize an SQL identifier (table name, column name, etc.).

    This is a strict validation that only allows safe SQL identifiers.
    Use this for configured table names before they reach a query.

    Args:
        identifier: The identifier to sanitize
        field_name: Name of the field (for error messages)

    Returns:
        The validated identifier

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> sanitize_sql_identifier("tb_dispense_middle")
        'tb_dispense_middle'
        >>> sanitize_sql_identifier("table; DROP TABLE users;")  # doctest: +SKIP
        ValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    # SQL identifiers: alphanumeric and underscores only, must start with letter or underscore
    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    # Prevent excessively long identifiers
    if len(identifier) > 63:  # PostgreSQL limit
        raise ValidationError(f"{field_name} exceeds PostgreSQL maximum length of 63 characters")

    reserved_keywords = {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "database", "index", "view", "user", "grant", "revoke"
    }
    if identifier.lower() in reserved_keywords:
        raise ValidationError(
            f"{field_name} '{identifier}' is a reserved SQL keyword. "
            "Please use a different name."
        )

    return identifier
