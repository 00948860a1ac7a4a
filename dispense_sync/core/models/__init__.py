"""
Core data models for the dispense sync pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .batch import Batch, BatchKey
from .delivery_status import DeliveryStatus
from .dispense_record import DispenseRecord
from .mapping_result import MappingResult
from .run_result import RunResult
from .source_row import SourceRow

__all__ = [
    "SourceRow",
    "DispenseRecord",
    "BatchKey",
    "Batch",
    "DeliveryStatus",
    "MappingResult",
    "RunResult",
]
