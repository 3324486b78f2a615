"""In-memory catalog used by scheduler and route tests."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional

from mediashelf.catalog import ArtifactState, CatalogItemNotFound, SourceItem


class MemoryCatalog:
    def __init__(self, items: Optional[List[SourceItem]] = None) -> None:
        self._items: Dict[int, SourceItem] = {}
        self._lock = threading.Lock()
        self.state_changes: List[tuple[int, ArtifactState]] = []
        for item in items or []:
            self._items[item.id] = item

    def add(self, item: SourceItem) -> SourceItem:
        self._items[item.id] = item
        return item

    def item(self, item_id: int) -> SourceItem:
        return self._items[item_id]

    def list_items(self, item_type: str) -> List[SourceItem]:
        return [item for _, item in sorted(self._items.items()) if item.item_type == item_type]

    def list_items_needing_artifacts(self, item_type: str, force: bool) -> List[SourceItem]:
        return [
            item
            for item in self.list_items(item_type)
            if force or item.artifact_state is not ArtifactState.COMPLETE
        ]

    def get_item(self, item_type: str, item_id: int) -> Optional[SourceItem]:
        item = self._items.get(item_id)
        if item is None or item.item_type != item_type:
            return None
        return item

    def _update(self, item_id: int, **changes) -> None:
        with self._lock:
            if item_id not in self._items:
                raise CatalogItemNotFound(item_id)
            self._items[item_id] = replace(self._items[item_id], **changes)

    def mark_artifact_state(self, item_id: int, state: ArtifactState) -> None:
        self._update(item_id, artifact_state=ArtifactState(state))
        self.state_changes.append((item_id, ArtifactState(state)))

    def set_page_count(self, item_id: int, page_count: int) -> None:
        self._update(item_id, page_count=page_count)

    def set_cover_missing(self, item_id: int, missing: bool) -> None:
        self._update(item_id, cover_missing=missing)

    def set_storage_key(self, item_id: int, storage_key: str) -> None:
        self._update(item_id, storage_key=storage_key)
