"""Cache file naming schemes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class NamingScheme(str, Enum):
    """Which base a cache file name is built from."""

    CURRENT = "current"
    LEGACY_ID = "legacy_id"


class ArtifactRole(str, Enum):
    PAGE = "page"
    COVER = "cover"

    @property
    def extension(self) -> str:
        return ROLE_EXTENSIONS[self]

    @property
    def first_unit(self) -> int:
        return 0 if self is ArtifactRole.COVER else 1


ROLE_EXTENSIONS = {
    ArtifactRole.PAGE: "png",
    ArtifactRole.COVER: "jpg",
}

_UNIT_NAME = re.compile(
    r"^(?P<base>.+)_(?P<role>page|cover)_(?P<unit>\d+)\.(?P<ext>png|jpg)$"
)


@dataclass(frozen=True, slots=True)
class ParsedUnitName:
    base: str
    role: ArtifactRole
    unit_index: int
    extension: str


def unit_filename(base: str, role: ArtifactRole | str, unit_index: int) -> str:
    """Return ``{base}_{role}_{unit}.{ext}``."""

    resolved = ArtifactRole(role)
    if unit_index < 0:
        raise ValueError("unit_index must be non-negative")
    return f"{base}_{resolved.value}_{unit_index}.{resolved.extension}"


def parse_unit_filename(name: str) -> Optional[ParsedUnitName]:
    match = _UNIT_NAME.match(name)
    if not match:
        return None
    role = ArtifactRole(match.group("role"))
    extension = match.group("ext")
    if extension != role.extension:
        return None
    return ParsedUnitName(
        base=match.group("base"),
        role=role,
        unit_index=int(match.group("unit")),
        extension=extension,
    )


def legacy_base(item_id: int | str) -> str:
    return str(item_id)


__all__ = [
    "ArtifactRole",
    "NamingScheme",
    "ParsedUnitName",
    "legacy_base",
    "parse_unit_filename",
    "unit_filename",
]
