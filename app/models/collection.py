"""
Collection run models.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# History never holds more runs than this
HISTORY_LIMIT = 10


class CollectionStatus(str, Enum):
    """Status of a single collection run."""

    COLLECTING = "collecting"
    COMPLETED = "completed"
    ERROR = "error"


class SchedulerState(str, Enum):
    """State of the collection scheduler."""

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    ERROR = "error"


class CollectionStats(BaseModel):
    """Counts gathered by one collection run."""

    model_config = ConfigDict(frozen=True)

    attendance_record_count: int = 0
    progress_record_count: int = 0
    total_students: int = 0
    data_quality: int = Field(default=100, ge=0, le=100)


class CollectionRun(BaseModel):
    """
    One execution of the collector.

    Runs are frozen: finalizing a run returns a new instance.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    duration_ms: int = 0
    status: CollectionStatus = CollectionStatus.COLLECTING
    stats: CollectionStats = Field(default_factory=CollectionStats)
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_finalized(self) -> bool:
        return self.status != CollectionStatus.COLLECTING

    def finalize(
        self,
        status: CollectionStatus,
        duration_ms: int,
        stats: Optional[CollectionStats] = None,
        error: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ) -> "CollectionRun":
        """
        Return the finalized copy of this run.

        Raises:
            ValueError: if the run is already finalized or status is still collecting
        """
        if self.is_finalized:
            raise ValueError(f"Collection run {self.id} is already finalized")
        if status == CollectionStatus.COLLECTING:
            raise ValueError("A run cannot be finalized with status 'collecting'")
        if stats is None:
            # A failed run has no measured quality; 100 is reserved for "nothing collected"
            stats = self.stats if status == CollectionStatus.COMPLETED else CollectionStats(data_quality=0)

        return self.model_copy(
            update={
                "status": status,
                "duration_ms": max(0, int(duration_ms)),
                "stats": stats,
                "error": error,
                "warnings": list(warnings or []),
            }
        )


class SchedulerStatus(BaseModel):
    """Snapshot of the scheduler exposed to the API."""

    state: SchedulerState
    started: bool
    interval_seconds: Optional[float] = None
    latest_run: Optional[CollectionRun] = None
