"""Routes for starting, pausing and monitoring background preprocessing."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ...catalog import Catalog
from ...preprocessing import AlreadyRunning, JobNotActive, PreprocessingScheduler, SchedulerClosed
from ..dependencies import get_catalog, get_item_types, get_scheduler
from ..responses import error_detail
from ..schemas import (
    PreprocessItemResponse,
    PreprocessProgressResponse,
    PreprocessStartRequest,
    PreprocessStartResponse,
)

router = APIRouter(prefix="/preprocess", tags=["preprocess"])


def _require_item_type(item_type: str) -> str:
    if item_type not in get_item_types():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("unknown_item_type", f"Unknown item type {item_type!r}"),
        )
    return item_type


def _not_active(exc: JobNotActive) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=error_detail("not_running", str(exc)),
    )


@router.post("/{item_type}", response_model=PreprocessStartResponse)
def start_preprocessing(
    item_type: str,
    payload: Optional[PreprocessStartRequest] = Body(default=None),
    scheduler: PreprocessingScheduler = Depends(get_scheduler),
) -> PreprocessStartResponse:
    """Queue every item of the type lacking artifacts; returns before any work is done."""

    _require_item_type(item_type)
    force = payload.force if payload is not None else False
    try:
        job = scheduler.start(item_type, force=force)
    except AlreadyRunning as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_detail("already_running", str(exc)),
        ) from exc
    except SchedulerClosed as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_detail("scheduler_closed", str(exc)),
        ) from exc
    return PreprocessStartResponse(job_id=job.job_id or "", item_type=item_type, total=job.total)


@router.get("/{item_type}/progress", response_model=PreprocessProgressResponse)
def get_progress(
    item_type: str,
    scheduler: PreprocessingScheduler = Depends(get_scheduler),
) -> PreprocessProgressResponse:
    _require_item_type(item_type)
    return PreprocessProgressResponse.from_job(scheduler.status(item_type))


@router.post("/{item_type}/pause", response_model=PreprocessProgressResponse)
def pause_preprocessing(
    item_type: str,
    scheduler: PreprocessingScheduler = Depends(get_scheduler),
) -> PreprocessProgressResponse:
    _require_item_type(item_type)
    try:
        job = scheduler.pause(item_type)
    except JobNotActive as exc:
        raise _not_active(exc) from exc
    return PreprocessProgressResponse.from_job(job)


@router.post("/{item_type}/resume", response_model=PreprocessProgressResponse)
def resume_preprocessing(
    item_type: str,
    scheduler: PreprocessingScheduler = Depends(get_scheduler),
) -> PreprocessProgressResponse:
    _require_item_type(item_type)
    try:
        job = scheduler.resume(item_type)
    except JobNotActive as exc:
        raise _not_active(exc) from exc
    return PreprocessProgressResponse.from_job(job)


@router.post("/{item_type}/items/{item_id}", response_model=PreprocessItemResponse)
def preprocess_single_item(
    item_type: str,
    item_id: int,
    catalog: Catalog = Depends(get_catalog),
    scheduler: PreprocessingScheduler = Depends(get_scheduler),
) -> PreprocessItemResponse:
    """Render the artifacts of one item synchronously."""

    _require_item_type(item_type)
    item = catalog.get_item(item_type, item_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("not_found", f"No {item_type} with id {item_id}"),
        )
    outcome = scheduler.process_item(item)
    return PreprocessItemResponse(item_id=item_id, outcome=outcome.value)


__all__ = ["router"]
