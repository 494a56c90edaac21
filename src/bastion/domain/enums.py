"""Enumerations shared by the Bastion combat and siege engines."""

from __future__ import annotations

from enum import StrEnum


class UnitRole(StrEnum):
    """Battlefield role of a unit stack."""

    INFANTRY = "inf"
    CAVALRY = "cav"
    SCOUT = "scout"
    RAM = "ram"
    CATAPULT = "catapult"
    ADMIN = "admin"
    SETTLER = "settler"


class Mission(StrEnum):
    """Kind of attack being resolved."""

    ATTACK = "attack"
    RAID = "raid"
    SIEGE = "siege"
    ADMIN_ATTACK = "admin_attack"
    SCOUT = "scout"


class BattleOutcome(StrEnum):
    """Terminal classification of a resolved battle."""

    ATTACKER_VICTORY = "attacker_victory"
    DEFENDER_VICTORY = "defender_victory"
    MUTUAL_DESTRUCTION = "mutual_destruction"


class RoundingMode(StrEnum):
    """How fractional casualty totals are rounded."""

    BANKERS = "bankers"
    HALF_UP = "half_up"


class Composition(StrEnum):
    """Dominant share of the attacking force in a round."""

    INFANTRY = "infantry"
    CAVALRY = "cavalry"


class TargetingMode(StrEnum):
    """Catapult targeting mode granted by the rally point."""

    RANDOM = "random"
    ONE = "one"
    TWO = "two"

    @classmethod
    def _missing_(cls, value: object) -> TargetingMode | None:
        if isinstance(value, str):
            return _TARGETING_ALIASES.get(value.strip().lower())
        return None

    @property
    def max_selections(self) -> int:
        return {TargetingMode.RANDOM: 0, TargetingMode.ONE: 1, TargetingMode.TWO: 2}[self]


_TARGETING_ALIASES = {
    "random": TargetingMode.RANDOM,
    "one": TargetingMode.ONE,
    "single": TargetingMode.ONE,
    "two": TargetingMode.TWO,
    "dual": TargetingMode.TWO,
}


class ResolvedMode(StrEnum):
    """Targeting mode actually applied to a catapult wave."""

    RANDOM = "random"
    SINGLE = "single"
    DUAL = "dual"


class SiegeTargetKind(StrEnum):
    """Category of a structure hit by catapults."""

    BUILDING = "building"
    RESOURCE_FIELD = "resource_field"
    WORLD_WONDER = "world_wonder"
    WONDER_SUPPORT = "wonder_support"


class ResourceKind(StrEnum):
    """Resource produced by a field."""

    WOOD = "wood"
    CLAY = "clay"
    IRON = "iron"
    CROP = "crop"


class CapitalProtectionMode(StrEnum):
    """How resource fields of a capital are shielded from catapults."""

    IMMUNE = "immune"
    FLOOR = "floor"
    NONE = "none"


class FieldSelectionMode(StrEnum):
    """Which field of a resource category a category selector hits."""

    HIGHEST_FIRST = "highest_first"
    EVEN_SPREAD = "even_spread"


class VillageKind(StrEnum):
    """Village classification relevant to siege rules."""

    STANDARD = "standard"
    WORLD_WONDER = "world_wonder"


class BuildingType(StrEnum):
    """Closed set of building types a catapult selector may name."""

    HEADQUARTER = "HEADQUARTER"
    BARRACKS = "BARRACKS"
    STABLES = "STABLES"
    WORKSHOP = "WORKSHOP"
    RALLY_POINT = "RALLY_POINT"
    RESIDENCE = "RESIDENCE"
    PALACE = "PALACE"
    WAREHOUSE = "WAREHOUSE"
    GRANARY = "GRANARY"
    CRANNY = "CRANNY"
    BAKERY = "BAKERY"
    SMITHY = "SMITHY"
    HOSPITAL = "HOSPITAL"
    ACADEMY = "ACADEMY"
    TOWNHALL = "TOWNHALL"
    MARKETPLACE = "MARKETPLACE"
    TREASURY = "TREASURY"
    TEMPLE = "TEMPLE"
    CITY = "CITY"
    WATCHTOWER = "WATCHTOWER"
    WATERWORKS = "WATERWORKS"
    COMMAND_CENTER = "COMMAND_CENTER"
    SNOB = "SNOB"
    FARM = "FARM"
    SAWMILL = "SAWMILL"
    QUARRY = "QUARRY"
    IRON_MINE = "IRON_MINE"
    EMBASSY = "EMBASSY"
    STONEMASON = "STONEMASON"
    TRAPPER = "TRAPPER"
    WALL = "WALL"
    EARTH_WALL = "EARTH_WALL"
    PALISADE = "PALISADE"
    GREAT_BARRACKS = "GREAT_BARRACKS"
    GREAT_STABLES = "GREAT_STABLES"
    GREAT_WAREHOUSE = "GREAT_WAREHOUSE"
    GREAT_GRANARY = "GREAT_GRANARY"
    WORLD_WONDER = "WORLD_WONDER"
