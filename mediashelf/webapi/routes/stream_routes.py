"""Range streaming of catalog sources and on-demand PDF pages."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from ... import logging_manager as log_mgr
from ...catalog import Catalog, SourceItem
from ...rendering import PageOutOfRange, PageRenderer, RenderFailure, SourceUnavailable
from ...streaming import RangeStreamProxy, StreamTarget
from ..dependencies import get_catalog, get_item_types, get_page_renderer, get_range_proxy
from ..responses import IMMUTABLE_CACHE_CONTROL, error_detail, serve_target

router = APIRouter(prefix="/stream", tags=["stream"])

logger = log_mgr.logger


def _lookup_item(catalog: Catalog, item_type: str, item_id: int) -> SourceItem:
    if item_type not in get_item_types():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("unknown_item_type", f"Unknown item type {item_type!r}"),
        )
    item = catalog.get_item(item_type, item_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("not_found", f"No {item_type} with id {item_id}"),
        )
    return item


def _source_target(item: SourceItem) -> StreamTarget:
    local_path = None if item.is_remote_only else Path(item.source_path)
    return StreamTarget(
        remote_key=item.remote_key,
        local_path=local_path,
        name=PurePosixPath(item.source_path).name,
    )


@router.get("/{item_type}/{item_id}")
def stream_item(
    item_type: str,
    item_id: int,
    catalog: Catalog = Depends(get_catalog),
    proxy: RangeStreamProxy = Depends(get_range_proxy),
    range_header: Optional[str] = Header(default=None, alias="Range"),
):
    """Stream a source file from the object store or local disk."""

    item = _lookup_item(catalog, item_type, item_id)
    return serve_target(proxy, _source_target(item), range_header)


@router.get("/{item_type}/{item_id}/pages/{page}")
def stream_page(
    item_type: str,
    item_id: int,
    page: int,
    catalog: Catalog = Depends(get_catalog),
    renderer: PageRenderer = Depends(get_page_renderer),
    proxy: RangeStreamProxy = Depends(get_range_proxy),
    range_header: Optional[str] = Header(default=None, alias="Range"),
):
    """Serve one PDF page image, rendering it into the cache first when missing."""

    item = _lookup_item(catalog, item_type, item_id)
    if item.extension != ".pdf":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("not_paged", f"Item {item_id} has no page images"),
        )

    try:
        path = renderer.render_page(item, page)
    except PageOutOfRange as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("page_out_of_range", str(exc)),
        ) from exc
    except SourceUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("source_unavailable", str(exc)),
        ) from exc
    except RenderFailure as exc:
        logger.error(
            "On-demand render of page %s for item %s failed: %s",
            page,
            item_id,
            exc,
            extra={"event": "stream.page.failed", "item_id": item_id, "item_type": item_type},
        )
        reason = "render_timeout" if exc.timeout else "render_failed"
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail(reason, str(exc)),
        ) from exc

    return serve_target(
        proxy,
        StreamTarget(cache_path=path, name=path.name),
        range_header,
        extra_headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
    )


__all__ = ["router"]
