"""
MappingResult model representing the outcome of mapping one source row (ephemeral).
"""

from pydantic import BaseModel, model_validator

from .batch import BatchKey
from .dispense_record import DispenseRecord


class MappingResult(BaseModel):
    """
    Tagged result of the field mapper: either a record or an error.

    Attributes:
        record: Normalized record when mapping succeeded
        key: Reconciliation key; present on success, and on failure when the
             identifier and date survived
        error: Error message when mapping failed
        field_name: Field that caused the failure (optional)
    """

    record: DispenseRecord | None = None
    key: BatchKey | None = None
    error: str | None = None
    field_name: str | None = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_tag_consistency(self) -> "MappingResult":
        """Exactly one of record / error is set; a record always has a key."""
        if (self.record is None) == (self.error is None):
            raise ValueError("MappingResult needs exactly one of record or error")
        if self.record is not None and self.key is None:
            raise ValueError("successful MappingResult requires a key")
        return self

    @property
    def ok(self) -> bool:
        return self.record is not None

    @classmethod
    def success(cls, record: DispenseRecord, key: BatchKey) -> "MappingResult":
        return cls(record=record, key=key)

    @classmethod
    def failure(
        cls, error: str, key: BatchKey | None = None, field_name: str | None = None
    ) -> "MappingResult":
        return cls(error=error, key=key, field_name=field_name)
