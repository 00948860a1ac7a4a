"""
DeliveryStatus enumeration and its mapping to the legacy status codes.
"""

from enum import Enum


class DeliveryStatus(str, Enum):
    """
    Delivery state of one source row.

    Stored in the legacy ``f_dispensestatus_conhis`` column as a short code:
    NULL / "" / "0" = pending, "1" = delivered, "2" = retry eligible,
    "3" = failed.
    """

    PENDING = "pending"
    DELIVERED = "delivered"
    RETRY_ELIGIBLE = "retry_eligible"
    FAILED = "failed"

    def to_code(self) -> str | None:
        """Return the code persisted for this status (None for pending)."""
        return _STATUS_TO_CODE[self]

    @classmethod
    def from_code(cls, code: str | None) -> "DeliveryStatus":
        """
        Decode a persisted status code.

        Raises:
            ValueError: If the code is not a known status code
        """
        normalized = (code or "").strip()
        if normalized in PENDING_CODES:
            return cls.PENDING
        for status, status_code in _STATUS_TO_CODE.items():
            if status_code == normalized:
                return status
        raise ValueError(f"Unknown delivery status code: {code!r}")

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryStatus.DELIVERED, DeliveryStatus.FAILED)


# Codes that mean "not yet sent"; NULL is handled separately in SQL
PENDING_CODES = ("", "0")

_STATUS_TO_CODE = {
    DeliveryStatus.PENDING: None,
    DeliveryStatus.DELIVERED: "1",
    DeliveryStatus.RETRY_ELIGIBLE: "2",
    DeliveryStatus.FAILED: "3",
}
