"""
BatchKey and Batch models used between the accumulator, sender and reconciler.
"""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .dispense_record import DispenseRecord


class BatchKey(BaseModel):
    """
    Addresses source rows for status reconciliation.

    Not part of the payload sent downstream.

    Attributes:
        record_identifier: Prescription (Rx) number
        record_date: Record date (YYYYMMDD)
    """

    record_identifier: str = Field(..., min_length=1)
    record_date: str = Field(..., min_length=1)

    class Config:
        frozen = True


def unique_identifiers(keys: Iterable[BatchKey]) -> list[str]:
    """
    Distinct record identifiers in first-seen order.

    Examples:
        >>> keys = [BatchKey(record_identifier=i, record_date="20250102") for i in ("RX1", "RX1", "RX2")]
        >>> unique_identifiers(keys)
        ['RX1', 'RX2']
    """
    return list(dict.fromkeys(key.record_identifier for key in keys))


class Batch(BaseModel):
    """
    Ordered records plus the parallel key list, sent as one atomic payload.

    Attributes:
        number: 1-based position of this batch within its run
        records: Normalized records in extraction order
        keys: Reconciliation keys, same length and order as records
    """

    number: int = Field(..., ge=1)
    records: list[DispenseRecord] = Field(..., min_length=1)
    keys: list[BatchKey] = Field(..., min_length=1)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_parallel_lists(self) -> "Batch":
        """Records and keys must pair up one to one."""
        if len(self.records) != len(self.keys):
            raise ValueError(
                f"keys length ({len(self.keys)}) must match records length ({len(self.records)})"
            )
        return self

    def __len__(self) -> int:
        return len(self.records)

    def unique_identifiers(self) -> list[str]:
        """Key identifiers with repeats removed, first occurrence order kept."""
        return unique_identifiers(self.keys)

    def to_payload(self, container_field: str = "data") -> dict[str, Any]:
        """Wrap the records (keys excluded) under a single container field."""
        return {container_field: [record.to_payload() for record in self.records]}
