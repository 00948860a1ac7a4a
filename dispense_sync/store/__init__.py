"""
Store access: connection pool, extraction, reconciliation and operator queries.
"""

from .connection import DatabaseConnectionPool
from .extractor import PendingRowExtractor
from .queries import StatusQueries, format_prescription_date
from .reconciler import StatusReconciler
from .run_lock import AdvisoryRunLock

__all__ = [
    "AdvisoryRunLock",
    "DatabaseConnectionPool",
    "PendingRowExtractor",
    "StatusQueries",
    "StatusReconciler",
    "format_prescription_date",
]
