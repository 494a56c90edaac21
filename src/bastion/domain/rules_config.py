"""Declarative rule configuration for the combat and siege engines.

Both engines read their tunables from a frozen dataclass tree with a default
for every field.  Callers (world presets, speed settings, the combat
simulator) pass partial overrides as plain mappings; :func:`merge_overrides`
folds them onto the defaults field by field, so a misspelled key fails loudly
instead of being ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from typing import Any, TypeVar, get_args, get_origin, get_type_hints

from .enums import (
    CapitalProtectionMode,
    FieldSelectionMode,
    RoundingMode,
    TargetingMode,
)

T = TypeVar("T")


class UnknownConfigKeyError(ValueError):
    """Raised when an override names a key the configuration tree lacks."""

    def __init__(self, path: str) -> None:
        super().__init__(f"unknown configuration key: {path}")
        self.path = path


# --- Battle configuration -----------------------------------------------------


@dataclass(frozen=True, slots=True)
class SmithyRules:
    """Per-level smithy (tech) bonuses, in percent."""

    attack_pct_per_level: float = 1.5
    defense_pct_per_level: float = 1.5


@dataclass(frozen=True, slots=True)
class MoraleTimeFloor:
    """Optional morale floor that grows with defender account age."""

    enabled: bool = False
    floor: float = 0.5
    full_effect_days: int = 90


@dataclass(frozen=True, slots=True)
class MoraleRules:
    """Attacker morale curve."""

    exponent: float = 0.45
    min_att_mult: float = 0.3
    max_att_mult: float = 1.0
    time_floor: MoraleTimeFloor = field(default_factory=MoraleTimeFloor)


@dataclass(frozen=True, slots=True)
class LuckRules:
    range: float = 0.25


@dataclass(frozen=True, slots=True)
class NightRules:
    enabled: bool = True
    def_mult: float = 2.0


@dataclass(frozen=True, slots=True)
class WallRules:
    """Defense bonus granted by one wall type."""

    def_pct_per_level: float = 0.0


@dataclass(frozen=True, slots=True)
class RoundingRules:
    mode: RoundingMode = RoundingMode.BANKERS


@dataclass(frozen=True, slots=True)
class RoundRules:
    """Bounds and base rates of the round loop."""

    max_rounds: int = 12
    base_loss_rate: float = 0.35
    min_loss_rate: float = 0.01
    loss_variance: float = 0.10


@dataclass(frozen=True, slots=True)
class RamRules:
    success_chance: float = 0.02  # per ram, one wall level per success


@dataclass(frozen=True, slots=True)
class PaladinRules:
    """Hero-unit detection and bonuses, in percent."""

    unit_marker: str = "paladin"
    attack_bonus_pct: float = 10.0
    defense_bonus_pct: float = 10.0


def _default_walls() -> dict[str, WallRules]:
    return {
        "city_wall": WallRules(def_pct_per_level=3.0),
        "earth_wall": WallRules(def_pct_per_level=2.0),
        "palisade": WallRules(def_pct_per_level=2.5),
    }


@dataclass(frozen=True, slots=True)
class CombatConfig:
    """Top-level battle configuration."""

    version: str = "2025.1-rounds"
    curvature_k: float = 1.5
    raid_lethality_factor: float = 0.5
    size_floor: float = 100
    smithy: SmithyRules = field(default_factory=SmithyRules)
    morale: MoraleRules = field(default_factory=MoraleRules)
    luck: LuckRules = field(default_factory=LuckRules)
    night: NightRules = field(default_factory=NightRules)
    walls: dict[str, WallRules] = field(default_factory=_default_walls)
    default_wall_type: str = "city_wall"
    rounding: RoundingRules = field(default_factory=RoundingRules)
    rounds: RoundRules = field(default_factory=RoundRules)
    rams: RamRules = field(default_factory=RamRules)
    paladin: PaladinRules = field(default_factory=PaladinRules)


# --- Catapult rules -------------------------------------------------------------

# Index 0 is unused; entry n is the power needed to knock a level-n target to n-1.
BASE_RESILIENCE_CURVE: tuple[float, ...] = (
    0,
    1,
    1.2,
    1.4,
    1.6,
    1.8,
    2.2,
    2.6,
    3.1,
    3.7,
    4.4,
    5.2,
    6.1,
    7.1,
    8.2,
    9.4,
    10.7,
    12.1,
    13.6,
    15.2,
    17,
)


@dataclass(frozen=True, slots=True)
class ShotPowerRules:
    base: float = 1.0
    tech_pct_per_level: float = 0.03
    artifact_pct: float = 0.0


@dataclass(frozen=True, slots=True)
class FloorRules:
    """Minimum levels catapults cannot go below."""

    default: int = 0
    building: dict[str, int] = field(
        default_factory=lambda: {"PALACE": 1, "RESIDENCE": 1, "RALLY_POINT": 1}
    )


@dataclass(frozen=True, slots=True)
class CapitalProtection:
    mode: CapitalProtectionMode = CapitalProtectionMode.NONE
    floor_level: int | None = None


@dataclass(frozen=True, slots=True)
class FieldTargetingRule:
    """Whether and how resource fields can be hit."""

    enabled: bool = False
    allow_slot_selection: bool = False
    random_eligible: bool = False
    selection_mode: FieldSelectionMode = FieldSelectionMode.HIGHEST_FIRST
    capital_protection: CapitalProtection = field(default_factory=CapitalProtection)
    resilience_multiplier: float | None = None


@dataclass(frozen=True, slots=True)
class RallyPointWindow:
    """Targeting mode granted for rally point levels ``min_level..max_level``."""

    min_level: int = 0
    max_level: int | None = None
    mode: TargetingMode = TargetingMode.RANDOM


@dataclass(frozen=True, slots=True)
class TargetingRules:
    excluded_buildings: tuple[str, ...] = ("WALL", "EARTH_WALL")
    field_rule: FieldTargetingRule = field(default_factory=FieldTargetingRule)
    rally_point_windows: tuple[RallyPointWindow, ...] = (
        RallyPointWindow(min_level=0, max_level=2, mode=TargetingMode.RANDOM),
        RallyPointWindow(min_level=3, max_level=19, mode=TargetingMode.ONE),
        RallyPointWindow(min_level=20, max_level=None, mode=TargetingMode.TWO),
    )


@dataclass(frozen=True, slots=True)
class ResilienceOverride:
    """Per-building resilience tweaks; ``None`` keeps the general rule."""

    multiplier: float | None = None
    floor: int | None = None
    drop_cap: int | None = None


def _default_resilience_overrides() -> dict[str, ResilienceOverride]:
    return {
        "GREAT_WAREHOUSE": ResilienceOverride(multiplier=2.6),
        "GREAT_GRANARY": ResilienceOverride(multiplier=2.6),
        "WORLD_WONDER": ResilienceOverride(multiplier=25, floor=0, drop_cap=1),
    }


@dataclass(frozen=True, slots=True)
class ResilienceRules:
    base_curve: tuple[float, ...] = BASE_RESILIENCE_CURVE
    great_building_multiplier: float = 2.5
    resource_field_multiplier: float = 0.9
    world_wonder_multiplier: float = 20.0
    overrides: dict[str, ResilienceOverride] = field(
        default_factory=_default_resilience_overrides
    )


@dataclass(frozen=True, slots=True)
class StonemasonRules:
    reduction_pct: float = 0.2
    allowed_in_wonder: bool = False


@dataclass(frozen=True, slots=True)
class WonderRules:
    drop_cap_per_wave: int = 1
    allow_random_targets: bool = False


@dataclass(frozen=True, slots=True)
class CatapultRules:
    """Top-level siege configuration (classic world rules by default)."""

    version: str = "2024-11-classic"
    notes: tuple[str, ...] = (
        "Default: classic world rules (fields disabled, WW cap = 1)",
        "Resilience curve loosely mirrors Travian diminishing returns",
    )
    randomness_pct: float = 0.05
    shot_power: ShotPowerRules = field(default_factory=ShotPowerRules)
    floors: FloorRules = field(default_factory=FloorRules)
    targeting: TargetingRules = field(default_factory=TargetingRules)
    resilience: ResilienceRules = field(default_factory=ResilienceRules)
    stonemason: StonemasonRules = field(default_factory=StonemasonRules)
    wonder: WonderRules = field(default_factory=WonderRules)
    random_seed_salt: str = "catapult-default"


DEFAULT_COMBAT_CONFIG = CombatConfig()
DEFAULT_CATAPULT_RULES = CatapultRules()


# --- Override merging -------------------------------------------------------------


def merge_overrides(base: T, overrides: Mapping[str, Any] | T | None, *, path: str = "") -> T:
    """Fold ``overrides`` onto the dataclass tree ``base``.

    Nested dataclasses and dict-valued fields merge key-wise; sequences and
    scalars replace wholesale; ``None`` values are skipped.  Passing a
    dataclass instance of the same type replaces ``base`` outright.

    Raises:
        UnknownConfigKeyError: If an override key is not a field of the tree
    """
    if overrides is None:
        return base
    if is_dataclass(overrides) and not isinstance(overrides, type):
        return overrides  # type: ignore[return-value]
    if not overrides:
        return base

    names = {f.name for f in fields(base)}  # type: ignore[arg-type]
    hints = get_type_hints(type(base))
    changes: dict[str, Any] = {}
    for key, value in overrides.items():  # type: ignore[union-attr]
        key_path = f"{path}.{key}" if path else str(key)
        if key not in names:
            raise UnknownConfigKeyError(key_path)
        if value is None:
            continue
        changes[key] = _merge_value(getattr(base, key), value, hints[key], key_path)
    return replace(base, **changes)  # type: ignore[type-var]


def merge_combat_config(
    overrides: Mapping[str, Any] | CombatConfig | None = None,
    *,
    base: CombatConfig = DEFAULT_COMBAT_CONFIG,
) -> CombatConfig:
    """Return the battle configuration with ``overrides`` applied."""
    return merge_overrides(base, overrides)


def merge_catapult_rules(
    overrides: Mapping[str, Any] | CatapultRules | None = None,
    *,
    base: CatapultRules = DEFAULT_CATAPULT_RULES,
) -> CatapultRules:
    """Return the catapult rules with ``overrides`` applied."""
    return merge_overrides(base, overrides)


def _merge_value(current: Any, value: Any, hint: Any, path: str) -> Any:
    if is_dataclass(current) and isinstance(value, Mapping):
        return merge_overrides(current, value, path=path)
    if isinstance(current, dict) and isinstance(value, Mapping):
        return _merge_dict(current, value, hint, path)
    if isinstance(value, (list, tuple)):
        return _coerce_sequence(value, hint, path)
    return _coerce_scalar(value, hint)


def _merge_dict(current: dict[str, Any], value: Mapping[str, Any], hint: Any, path: str) -> dict:
    args = get_args(hint)
    value_type = args[1] if len(args) == 2 else None
    merged = dict(current)
    for key, item in value.items():
        if item is None:
            continue
        item_path = f"{path}.{key}"
        existing = merged.get(key)
        if is_dataclass(existing) and isinstance(item, Mapping):
            merged[key] = merge_overrides(existing, item, path=item_path)
        elif _is_dataclass_type(value_type) and isinstance(item, Mapping):
            merged[key] = merge_overrides(value_type(), item, path=item_path)
        else:
            merged[key] = _coerce_scalar(item, value_type)
    return merged


def _coerce_sequence(value: list | tuple, hint: Any, path: str) -> tuple:
    args = get_args(hint) if get_origin(hint) is tuple else ()
    item_type = args[0] if args else None
    if _is_dataclass_type(item_type):
        return tuple(
            merge_overrides(item_type(), item, path=f"{path}[{index}]")
            if isinstance(item, Mapping)
            else item
            for index, item in enumerate(value)
        )
    return tuple(value)


def _coerce_scalar(value: Any, hint: Any) -> Any:
    if isinstance(hint, type) and issubclass(hint, Enum) and not isinstance(value, hint):
        return hint(value)
    return value


def _is_dataclass_type(candidate: Any) -> bool:
    return isinstance(candidate, type) and is_dataclass(candidate)
