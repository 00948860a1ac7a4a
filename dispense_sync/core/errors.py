"""
Error taxonomy for the dispense sync pipeline.

Row- and batch-level failures are recovered inside the pipeline and folded
into counters. Only connectivity failures reach the run's error list.
"""


class SyncError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(SyncError):
    """Raised when settings are missing or invalid."""


class ConnectivityError(SyncError):
    """Raised when the store cannot be reached or the selection query fails."""


class MappingError(SyncError):
    """
    Raised when a source row cannot be turned into a dispense record.

    Attributes:
        key: Reconciliation key that survived the failure, if any
        field_name: Field that caused the failure (optional)
    """

    def __init__(self, message: str, key=None, field_name: str | None = None):
        self.key = key
        self.field_name = field_name
        self.message = message
        super().__init__(message)


class ReconciliationError(SyncError):
    """Raised when the bulk status update fails."""

    def __init__(self, message: str, affected_keys: int = 0):
        self.affected_keys = affected_keys
        super().__init__(message)
