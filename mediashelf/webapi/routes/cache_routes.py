"""Routes serving derived artifacts straight from the local cache."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from ...cache import ArtifactRole, InvalidCacheName, LocalArtifactCache, parse_unit_filename, unit_filename
from ...streaming import RangeStreamProxy, StreamTarget
from ..dependencies import get_artifact_cache, get_range_proxy
from ..responses import IMMUTABLE_CACHE_CONTROL, error_detail, serve_target

router = APIRouter(prefix="/cache", tags=["cache"])


def _not_found(message: str = "Cache file not found") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=error_detail("not_found", message),
    )


def _resolve_cache_file(
    cache: LocalArtifactCache,
    role: ArtifactRole,
    name: str,
    *,
    item_type: Optional[str],
    unit: Optional[int],
) -> Optional[Path]:
    if unit is not None:
        filename = unit_filename(name, role, unit)
    else:
        parsed = parse_unit_filename(name)
        if parsed is None:
            # Bare cache key: the role's first unit.
            filename = unit_filename(name, role, role.first_unit)
        elif parsed.role is not role:
            return None
        else:
            filename = name
    return cache.locate(filename, item_type=item_type)


@router.get("/{role}/{name}")
def get_cache_file(
    role: str,
    name: str,
    item_type: Optional[str] = Query(default=None),
    unit: Optional[int] = Query(default=None, ge=0),
    cache: LocalArtifactCache = Depends(get_artifact_cache),
    proxy: RangeStreamProxy = Depends(get_range_proxy),
    range_header: Optional[str] = Header(default=None, alias="Range"),
):
    """Serve a cached unit by file name, or by cache key plus ``unit``."""

    try:
        resolved_role = ArtifactRole(role)
    except ValueError as exc:
        raise _not_found(f"Unknown artifact role {role!r}") from exc

    try:
        path = _resolve_cache_file(cache, resolved_role, name, item_type=item_type, unit=unit)
    except (InvalidCacheName, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("invalid_name", str(exc)),
        ) from exc
    if path is None:
        raise _not_found()

    return serve_target(
        proxy,
        StreamTarget(cache_path=path, name=path.name),
        range_header,
        extra_headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
    )


__all__ = ["router"]
