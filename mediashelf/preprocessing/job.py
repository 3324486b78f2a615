"""Preprocessing job snapshots and lifecycle errors."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class JobState(str, Enum):
    """Lifecycle of the per-item-type preprocessing worker."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class ItemOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class JobError:
    item_id: int
    title: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.item_id, "title": self.title, "error": self.message}


@dataclass(frozen=True, slots=True)
class PreprocessingJob:
    """Immutable progress snapshot; the worker publishes a new one per step."""

    item_type: str
    job_id: Optional[str] = None
    state: JobState = JobState.IDLE
    item_ids: Tuple[int, ...] = ()
    cursor: int = 0
    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    current_label: Optional[str] = None
    errors: Tuple[JobError, ...] = field(default_factory=tuple)
    force: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self.state is not JobState.IDLE

    def evolve(self, **changes: Any) -> "PreprocessingJob":
        return replace(self, **changes)

    def record(self, outcome: ItemOutcome, error: Optional[JobError] = None) -> "PreprocessingJob":
        changes: Dict[str, Any] = {
            "processed": self.processed + 1,
            "cursor": self.cursor + 1,
        }
        if outcome is ItemOutcome.SUCCESS:
            changes["success"] = self.success + 1
        elif outcome is ItemOutcome.SKIPPED:
            changes["skipped"] = self.skipped + 1
        else:
            changes["failed"] = self.failed + 1
            if error is not None:
                changes["errors"] = self.errors + (error,)
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "item_type": self.item_type,
            "state": self.state.value,
            "running": self.running,
            "total": self.total,
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "current": self.current_label,
            "errors": [error.to_dict() for error in self.errors],
            "force": self.force,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class AlreadyRunning(RuntimeError):
    """Raised when a job is started while another one for the item type is active."""

    def __init__(self, item_type: str, job: Optional[PreprocessingJob] = None) -> None:
        super().__init__(f"Preprocessing for {item_type!r} is already running")
        self.item_type = item_type
        self.job = job


class JobNotActive(RuntimeError):
    """Raised when pausing or resuming an item type with no active job."""

    def __init__(self, item_type: str) -> None:
        super().__init__(f"No preprocessing job is active for {item_type!r}")
        self.item_type = item_type


class SchedulerClosed(RuntimeError):
    """Raised when a job is started on a scheduler that has been shut down."""


__all__ = [
    "AlreadyRunning",
    "ItemOutcome",
    "JobError",
    "JobNotActive",
    "JobState",
    "PreprocessingJob",
    "SchedulerClosed",
]
