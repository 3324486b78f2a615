"""Schemas for the preprocessing endpoints."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from mediashelf.preprocessing import PreprocessingJob


class PreprocessStartRequest(BaseModel):
    """Payload for starting a preprocessing job."""

    force: bool = False


class PreprocessStartResponse(BaseModel):
    job_id: str = Field(alias="jobId")
    item_type: str = Field(alias="itemType")
    total: int

    class Config:
        populate_by_name = True


class PreprocessErrorEntry(BaseModel):
    id: int
    title: str
    error: str


class PreprocessProgressResponse(BaseModel):
    """Progress snapshot for one item type."""

    job_id: Optional[str] = Field(alias="jobId", default=None)
    item_type: str = Field(alias="itemType")
    state: Literal["idle", "running", "paused"]
    running: bool
    total: int
    processed: int
    success: int
    failed: int
    skipped: int
    current: Optional[str] = None
    errors: List[PreprocessErrorEntry] = Field(default_factory=list)
    force: bool = False
    started_at: Optional[str] = Field(alias="startedAt", default=None)
    finished_at: Optional[str] = Field(alias="finishedAt", default=None)

    class Config:
        populate_by_name = True

    @classmethod
    def from_job(cls, job: PreprocessingJob) -> "PreprocessProgressResponse":
        payload = job.to_payload()
        return cls(
            job_id=payload["job_id"],
            item_type=payload["item_type"],
            state=payload["state"],
            running=payload["running"],
            total=payload["total"],
            processed=payload["processed"],
            success=payload["success"],
            failed=payload["failed"],
            skipped=payload["skipped"],
            current=payload["current"],
            errors=[PreprocessErrorEntry(**entry) for entry in payload["errors"]],
            force=payload["force"],
            started_at=payload["started_at"],
            finished_at=payload["finished_at"],
        )


class PreprocessItemResponse(BaseModel):
    item_id: int = Field(alias="itemId")
    outcome: Literal["success", "skipped", "failed"]

    class Config:
        populate_by_name = True
