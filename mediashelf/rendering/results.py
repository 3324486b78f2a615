"""Outcome of a rendering worker run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mediashelf.cache import NamingScheme


class RenderStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class RenderResult:
    status: RenderStatus
    units_written: int
    total_units: int
    scheme: NamingScheme = NamingScheme.CURRENT
    page_count: Optional[int] = None
    cover_found: Optional[bool] = None


__all__ = ["RenderResult", "RenderStatus"]
