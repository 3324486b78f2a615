"""Schemas for the object storage endpoints."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class StorageStatusResponse(BaseModel):
    configured: bool
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    public_url: Optional[str] = Field(alias="publicUrl", default=None)

    class Config:
        populate_by_name = True


class StorageObjectEntry(BaseModel):
    key: str
    size: int
    last_modified: Optional[str] = Field(alias="lastModified", default=None)

    class Config:
        populate_by_name = True


class StorageObjectListResponse(BaseModel):
    prefix: str
    count: int
    objects: List[StorageObjectEntry] = Field(default_factory=list)
