"""
RunResult model: the aggregate outcome of one sync run.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class RunResult(BaseModel):
    """
    Counters and errors returned to the caller once per run.

    Attributes:
        target_date: Date the run extracted and reconciled (YYYYMMDD)
        success_count: Records delivered downstream
        failed_count: Records that failed mapping or belonged to a failed batch
        errors: Run-level error entries (connectivity, skipped run)
        batches_sent: Number of batches dispatched to the sender
        started_at: Run start (UTC)
        finished_at: Run end (UTC)
    """

    target_date: str
    success_count: int = Field(0, ge=0)
    failed_count: int = Field(0, ge=0)
    errors: tuple[str, ...] = ()
    batches_sent: int = Field(0, ge=0)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "target_date": "20250102",
                "success_count": 150,
                "failed_count": 100,
                "errors": [],
                "batches_sent": 3,
            }
        }

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
