"""Read-only views of the object store."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...storage import ObjectStorageGateway, StorageError, StorageUnavailable
from ..dependencies import get_storage_gateway
from ..responses import error_detail
from ..schemas import StorageObjectEntry, StorageObjectListResponse, StorageStatusResponse

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/status", response_model=StorageStatusResponse)
def storage_status(
    gateway: ObjectStorageGateway = Depends(get_storage_gateway),
) -> StorageStatusResponse:
    return StorageStatusResponse(**gateway.status())


@router.get("/objects", response_model=StorageObjectListResponse)
def list_storage_objects(
    prefix: str = Query(default=""),
    limit: int = Query(default=100, ge=1, le=1000),
    gateway: ObjectStorageGateway = Depends(get_storage_gateway),
) -> StorageObjectListResponse:
    """List up to ``limit`` objects under ``prefix``."""

    try:
        summaries = gateway.list_objects(prefix, max_keys=limit)
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_detail("storage_unavailable", str(exc)),
        ) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=error_detail(exc.reason, str(exc)),
        ) from exc
    objects = [StorageObjectEntry(**summary.to_dict()) for summary in summaries]
    return StorageObjectListResponse(prefix=prefix, count=len(objects), objects=objects)


__all__ = ["router"]
