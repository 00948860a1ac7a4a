"""
Batch assembly, run orchestration and polling.
"""

from .accumulator import BatchAccumulator
from .pipeline import RunState, SyncOrchestrator
from .scheduler import PollingRunner

__all__ = ["BatchAccumulator", "PollingRunner", "RunState", "SyncOrchestrator"]
