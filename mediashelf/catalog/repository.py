"""Catalog access used by the preprocessing and streaming layers."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from sqlalchemy import select, update

from mediashelf import logging_manager
from mediashelf.database.engine import get_db_session
from mediashelf.database.models.media import MediaItemModel

from .models import ArtifactState, SourceItem

logger = logging_manager.get_logger().getChild("catalog")


class Catalog(Protocol):
    """Narrow catalog interface consumed by the artifact pipeline."""

    def list_items_needing_artifacts(self, item_type: str, force: bool) -> Sequence[SourceItem]:
        ...

    def mark_artifact_state(self, item_id: int, state: ArtifactState) -> None:
        ...

    def get_item(self, item_type: str, item_id: int) -> Optional[SourceItem]:
        ...

    def list_items(self, item_type: str) -> Sequence[SourceItem]:
        ...

    def set_page_count(self, item_id: int, page_count: int) -> None:
        ...

    def set_cover_missing(self, item_id: int, missing: bool) -> None:
        ...

    def set_storage_key(self, item_id: int, storage_key: str) -> None:
        ...


class CatalogItemNotFound(KeyError):
    """Raised when an update targets an item id the catalog does not know."""


class SqlCatalog:
    """SQLAlchemy-backed catalog over the ``media_items`` table."""

    def list_items(self, item_type: str) -> List[SourceItem]:
        stmt = (
            select(MediaItemModel)
            .where(MediaItemModel.item_type == item_type)
            .order_by(MediaItemModel.id.asc())
        )
        with get_db_session() as session:
            return [SourceItem.from_row(model) for model in session.execute(stmt).scalars()]

    def list_items_needing_artifacts(self, item_type: str, force: bool) -> List[SourceItem]:
        stmt = select(MediaItemModel).where(MediaItemModel.item_type == item_type)
        if not force:
            stmt = stmt.where(MediaItemModel.artifact_state != ArtifactState.COMPLETE.value)
        stmt = stmt.order_by(MediaItemModel.id.asc())
        with get_db_session() as session:
            return [SourceItem.from_row(model) for model in session.execute(stmt).scalars()]

    def get_item(self, item_type: str, item_id: int) -> Optional[SourceItem]:
        with get_db_session() as session:
            model = session.execute(
                select(MediaItemModel).where(
                    MediaItemModel.id == item_id,
                    MediaItemModel.item_type == item_type,
                )
            ).scalar_one_or_none()
            if model is None:
                return None
            return SourceItem.from_row(model)

    def add_item(
        self,
        *,
        item_type: str,
        source_path: str,
        title: str = "",
        storage_key: Optional[str] = None,
        page_count: Optional[int] = None,
    ) -> SourceItem:
        with get_db_session() as session:
            model = MediaItemModel(
                item_type=item_type,
                source_path=source_path,
                title=title,
                artifact_state=ArtifactState.ABSENT.value,
                storage_key=storage_key,
                page_count=page_count,
                cover_missing=False,
            )
            session.add(model)
            session.flush()
            return SourceItem.from_row(model)

    def _update(self, item_id: int, **values: object) -> None:
        with get_db_session() as session:
            result = session.execute(
                update(MediaItemModel).where(MediaItemModel.id == item_id).values(**values)
            )
            if result.rowcount == 0:
                raise CatalogItemNotFound(item_id)

    def mark_artifact_state(self, item_id: int, state: ArtifactState) -> None:
        self._update(item_id, artifact_state=ArtifactState(state).value)
        logger.debug(
            "Artifact state for item %s set to %s",
            item_id,
            ArtifactState(state).value,
            extra={"event": "catalog.artifact_state", "item_id": item_id},
        )

    def set_page_count(self, item_id: int, page_count: int) -> None:
        self._update(item_id, page_count=int(page_count))

    def set_cover_missing(self, item_id: int, missing: bool) -> None:
        self._update(item_id, cover_missing=bool(missing))

    def set_storage_key(self, item_id: int, storage_key: str) -> None:
        self._update(item_id, storage_key=storage_key)


__all__ = ["Catalog", "CatalogItemNotFound", "SqlCatalog"]
