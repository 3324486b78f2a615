"""Background preprocessing of catalog items into cache artifacts."""

from .job import (
    AlreadyRunning,
    ItemOutcome,
    JobError,
    JobNotActive,
    JobState,
    PreprocessingJob,
    SchedulerClosed,
)
from .scheduler import PreprocessingScheduler

__all__ = [
    "AlreadyRunning",
    "ItemOutcome",
    "JobError",
    "JobNotActive",
    "JobState",
    "PreprocessingJob",
    "PreprocessingScheduler",
    "SchedulerClosed",
]
