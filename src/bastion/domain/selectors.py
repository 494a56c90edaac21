"""Decoding of free-text catapult target selectors.

Players type targets such as ``"warehouse"``, ``"rp"``, ``"wood:3"`` or
``"field:crop"``.  Each string decodes to exactly one :data:`Selection`
variant; anything unrecognised becomes :class:`UnresolvedSelection` so the
caller can report it instead of guessing.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .enums import BuildingType, ResourceKind


@dataclass(frozen=True, slots=True)
class BuildingSelection:
    building_type: BuildingType


@dataclass(frozen=True, slots=True)
class ResourceCategorySelection:
    resource: ResourceKind


@dataclass(frozen=True, slots=True)
class ResourceTileSelection:
    resource: ResourceKind
    slot: int


@dataclass(frozen=True, slots=True)
class WonderSelection:
    building_type: BuildingType = BuildingType.WORLD_WONDER


@dataclass(frozen=True, slots=True)
class UnresolvedSelection:
    raw: str


Selection = (
    BuildingSelection
    | ResourceCategorySelection
    | ResourceTileSelection
    | WonderSelection
    | UnresolvedSelection
)

BUILDING_SYNONYMS: dict[str, BuildingType] = {
    "main_building": BuildingType.HEADQUARTER,
    "main": BuildingType.HEADQUARTER,
    "headquarter": BuildingType.HEADQUARTER,
    "headquarters": BuildingType.HEADQUARTER,
    "hq": BuildingType.HEADQUARTER,
    "stable": BuildingType.STABLES,
    "rp": BuildingType.RALLY_POINT,
    "capitol": BuildingType.PALACE,
    "town_hall": BuildingType.TOWNHALL,
    "market": BuildingType.MARKETPLACE,
    "great_stable": BuildingType.GREAT_STABLES,
    "ww": BuildingType.WORLD_WONDER,
    "wonder": BuildingType.WORLD_WONDER,
}

_RESOURCES = {kind.value: kind for kind in ResourceKind}


def normalize_selector(raw: str) -> str:
    """Trim, lowercase and collapse inner whitespace/dashes to underscores."""

    return "_".join(raw.strip().lower().replace("-", " ").split())


def parse_selection(raw: str) -> Selection:
    """Decode one selector string."""

    text = normalize_selector(raw or "")
    if not text:
        return UnresolvedSelection(raw=raw or "")

    if ":" in text:
        head, _, tail = text.partition(":")
        if head == "field" and tail in _RESOURCES:
            return ResourceCategorySelection(resource=_RESOURCES[tail])
        if head in _RESOURCES and tail.isdigit():
            return ResourceTileSelection(resource=_RESOURCES[head], slot=int(tail))
        return UnresolvedSelection(raw=raw)

    if text in _RESOURCES:
        return ResourceCategorySelection(resource=_RESOURCES[text])

    building = BUILDING_SYNONYMS.get(text) or _canonical_building(text)
    if building is None:
        return UnresolvedSelection(raw=raw)
    if building == BuildingType.WORLD_WONDER:
        return WonderSelection()
    return BuildingSelection(building_type=building)


def parse_selections(raws: Sequence[str]) -> list[Selection]:
    """Decode each selector in order; the result lines up with ``raws``."""
    return [parse_selection(raw) for raw in raws]


def _canonical_building(text: str) -> BuildingType | None:
    try:
        return BuildingType(text.upper())
    except ValueError:
        return None
