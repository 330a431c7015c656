"""
Progress snapshots published by the batch scheduler.
"""
from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, Field


class SlotStatus(str, Enum):
    """waiting -> loading -> completed | error"""
    WAITING = "waiting"
    LOADING = "loading"
    COMPLETED = "completed"
    ERROR = "error"


class BatchState(str, Enum):
    """idle -> loading -> success | error"""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class BatchProgress(BaseModel):
    """Read-only view of a batch after one state transition."""
    completed: int = Field(default=0, ge=0, description="Slots with a final outcome")
    total: int = Field(..., ge=0, description="Slots requested")
    current_index: int = Field(default=0, ge=0, description="Slot currently running")
    statuses: Tuple[SlotStatus, ...] = Field(..., description="One status per slot, index-aligned")
    state: BatchState = Field(default=BatchState.IDLE)
    version: int = Field(default=0, ge=0, description="Incremented on every published transition")

    class Config:
        frozen = True

    @classmethod
    def initial(cls, total: int) -> "BatchProgress":
        return cls(total=total, statuses=tuple(SlotStatus.WAITING for _ in range(total)))

    @property
    def succeeded(self) -> int:
        return sum(1 for status in self.statuses if status == SlotStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for status in self.statuses if status == SlotStatus.ERROR)

    def status_list(self) -> List[str]:
        return [status.value for status in self.statuses]
