"""Catapult damage against buildings and resource fields.

One call resolves one catapult wave: selectors are decoded, matched against
a target pool built from the village snapshot, shots are split across the
resolved targets and each target walks down the resilience curve until the
wave runs out of power, hits its floor, or reaches a per-wave drop cap.  The
snapshot is never modified; level drops come back in the result.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from bastion.utils.rng import RandomSource, fnv1a64, siege_stream, uniform_index

from .enums import (
    BuildingType,
    CapitalProtectionMode,
    FieldSelectionMode,
    ResolvedMode,
    ResourceKind,
    SiegeTargetKind,
    TargetingMode,
)
from .models import CatapultModifiers, CatapultRequest, VillageSiegeSnapshot
from .rules_config import (
    DEFAULT_CATAPULT_RULES,
    CatapultRules,
    FieldTargetingRule,
    merge_catapult_rules,
)
from .selectors import (
    BuildingSelection,
    ResourceCategorySelection,
    ResourceTileSelection,
    Selection,
    UnresolvedSelection,
    WonderSelection,
    parse_selections,
)

logger = logging.getLogger(__name__)

POWER_EPSILON = 1e-6
WONDER_SUPPORT_TYPES = frozenset({BuildingType.GREAT_WAREHOUSE, BuildingType.GREAT_GRANARY})


@dataclass(frozen=True, slots=True)
class SiegeTarget:
    """A structure in the target pool."""

    id: str
    label: str
    kind: SiegeTargetKind
    structure_id: str | None
    before_level: int
    floor_level: int
    resilience_multiplier: float
    drop_cap: int | None = None
    resource: ResourceKind | None = None
    slot: int | None = None

    @property
    def at_floor(self) -> bool:
        return self.before_level <= self.floor_level


@dataclass(frozen=True, slots=True)
class ShotModifiers:
    variance_pct: float = 0.0
    artifact_pct: float = 0.0
    event_pct: float = 0.0
    tech_pct: float = 0.0
    stonemason_pct: float = 0.0


@dataclass(frozen=True, slots=True)
class CatapultTargetHit:
    """Damage dealt to one target."""

    selection: str | None
    target_id: str
    target_label: str
    target_kind: SiegeTargetKind
    structure_id: str | None
    resource: ResourceKind | None
    slot: int | None
    before_level: int
    after_level: int
    drop: int
    allocated_shots: int
    shots_used: int
    wasted_shots: int
    floor_applied: int | None
    modifiers: ShotModifiers
    notes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CatapultDamageResult:
    total_catapults: int
    total_shots: int
    mode: ResolvedMode
    targets: tuple[CatapultTargetHit, ...]
    wasted_shots: int
    unresolved_selections: tuple[str, ...]
    rules_version: str
    seed: str

    @property
    def shots_used(self) -> int:
        return sum(hit.shots_used for hit in self.targets)


@dataclass(frozen=True, slots=True)
class _Resolved:
    target: SiegeTarget
    selection: str | None
    fallback: bool = False


# --- Entry points ------------------------------------------------------------------


def resolve_catapult_damage(
    request: CatapultRequest, *, rules: CatapultRules | None = None
) -> CatapultDamageResult:
    """Resolve one catapult wave; never raises for a well-formed request."""

    rules = merge_catapult_rules(request.rules_overrides, base=rules or DEFAULT_CATAPULT_RULES)
    mode = TargetingMode(request.mode)
    seed = request.seed if request.seed is not None else "default"
    rng = siege_stream(rules.random_seed_salt, seed)
    seed_hex = f"0x{fnv1a64(f'{rules.random_seed_salt}:{seed}') & 0xFFFFFFFF:08x}"
    total_shots = max(0, int(request.catapults))

    parsed = list(zip(request.selections, parse_selections(request.selections)))
    unresolved = tuple(sel.raw for _, sel in parsed if isinstance(sel, UnresolvedSelection))
    usable = [(raw, sel) for raw, sel in parsed if not isinstance(sel, UnresolvedSelection)]
    if unresolved:
        logger.warning("unrecognised catapult selectors: %s", ", ".join(unresolved))

    def _empty(label: ResolvedMode) -> CatapultDamageResult:
        return CatapultDamageResult(
            total_catapults=total_shots,
            total_shots=total_shots,
            mode=label,
            targets=(),
            wasted_shots=total_shots,
            unresolved_selections=unresolved,
            rules_version=rules.version,
            seed=seed_hex,
        )

    snapshot = request.snapshot
    if snapshot is None or total_shots == 0:
        return _empty(ResolvedMode.RANDOM)

    pool = build_target_pool(snapshot, rules)
    field_rule = rules.targeting.field_rule

    resolved: list[_Resolved] = []
    if mode == TargetingMode.RANDOM or not usable:
        target = random_target(
            pool, rng, field_rule.random_eligible, rules.wonder.allow_random_targets
        )
        if target is not None:
            resolved.append(_Resolved(target=target, selection=None))
    else:
        for raw, selection in usable[: mode.max_selections]:
            target = resolve_selection(selection, pool, field_rule, rng)
            if target is not None:
                resolved.append(_Resolved(target=target, selection=raw))
        if not resolved:
            target = random_target(
                pool, rng, field_rule.random_eligible, rules.wonder.allow_random_targets
            )
            if target is not None:
                resolved.append(_Resolved(target=target, selection=None, fallback=True))

    resolved = _dedupe(resolved)
    if not resolved:
        return _empty(_mode_label(mode, 0))

    buckets = shot_buckets(total_shots, request.shots_split, len(resolved))
    stonemason_active = snapshot.has_active(BuildingType.STONEMASON)

    hits: list[CatapultTargetHit] = []
    for entry, shots in zip(resolved, buckets):
        if shots <= 0:
            continue
        if entry.target.at_floor:
            hit = _protected_hit(entry, shots)
        else:
            hit = apply_damage(
                entry.target,
                shots,
                rules,
                request.modifiers,
                rng,
                stonemason_active=stonemason_active,
                selection=entry.selection,
            )
        if entry.fallback:
            hit = replace(hit, notes=("Fell back to a random target",) + hit.notes)
        hits.append(hit)

    shots_used = sum(hit.shots_used for hit in hits)
    result = CatapultDamageResult(
        total_catapults=total_shots,
        total_shots=total_shots,
        mode=_mode_label(mode, len(resolved)),
        targets=tuple(hits),
        wasted_shots=total_shots - shots_used,
        unresolved_selections=unresolved,
        rules_version=rules.version,
        seed=seed_hex,
    )
    logger.debug(
        "catapult wave resolved: mode=%s targets=%d used=%d wasted=%d",
        result.mode,
        len(hits),
        shots_used,
        result.wasted_shots,
    )
    return result


def calculate_catapult_damage(
    catapults: int,
    rally_point_level: int,
    selections: Sequence[str],
    *,
    snapshot: VillageSiegeSnapshot | None = None,
    seed: str | None = None,
    rules: Mapping[str, Any] | CatapultRules | None = None,
    modifiers: CatapultModifiers | None = None,
) -> CatapultDamageResult:
    """Resolve a wave using the targeting mode the rally point level grants."""

    merged = merge_catapult_rules(rules)
    mode = targeting_mode_for_rally_point(rally_point_level, merged)
    request = CatapultRequest(
        catapults=catapults,
        mode=mode,
        selections=tuple(selections),
        snapshot=snapshot,
        seed=seed,
        modifiers=modifiers or CatapultModifiers(),
        shots_split=tuple(split_catapult_shots(max(0, catapults), mode)),
    )
    return resolve_catapult_damage(request, rules=merged)


def targeting_mode_for_rally_point(
    level: int, rules: CatapultRules = DEFAULT_CATAPULT_RULES
) -> TargetingMode:
    for window in rules.targeting.rally_point_windows:
        if level >= window.min_level and (window.max_level is None or level <= window.max_level):
            return TargetingMode(window.mode)
    return TargetingMode.RANDOM


def split_catapult_shots(catapults: int, mode: TargetingMode) -> list[int]:
    if mode == TargetingMode.TWO:
        return [math.ceil(catapults / 2), catapults // 2]
    return [catapults]


def shot_buckets(total_shots: int, split: Sequence[int], target_count: int) -> list[int]:
    """Shots per resolved target; a lone target absorbs the whole wave."""

    if target_count <= 1:
        return [total_shots]
    if len(split) == target_count and all(s >= 0 for s in split) and sum(split) == total_shots:
        return list(split)
    return split_catapult_shots(total_shots, TargetingMode.TWO)[:target_count]


# --- Target pool ------------------------------------------------------------------------


def _title(value: str) -> str:
    return " ".join(part.capitalize() for part in value.replace("_", " ").split())


def build_target_pool(
    snapshot: VillageSiegeSnapshot | None, rules: CatapultRules
) -> list[SiegeTarget]:
    """List every structure the wave could hit, with floors and resilience."""

    if snapshot is None:
        return []
    pool: list[SiegeTarget] = []
    resilience = rules.resilience
    excluded = set(rules.targeting.excluded_buildings)

    for building in snapshot.buildings:
        level = max(0, int(building.level))
        if level <= 0 or building.type in excluded:
            continue
        override = resilience.overrides.get(building.type)
        is_wonder = building.type == BuildingType.WORLD_WONDER or snapshot.is_world_wonder
        if is_wonder:
            kind = SiegeTargetKind.WORLD_WONDER
        elif building.type in WONDER_SUPPORT_TYPES:
            kind = SiegeTargetKind.WONDER_SUPPORT
        else:
            kind = SiegeTargetKind.BUILDING

        if is_wonder:
            multiplier = resilience.world_wonder_multiplier
        elif override is not None and override.multiplier is not None:
            multiplier = override.multiplier
        elif building.type.startswith("GREAT_"):
            multiplier = resilience.great_building_multiplier
        else:
            multiplier = 1.0

        if override is not None and override.floor is not None:
            floor = override.floor
        else:
            floor = rules.floors.building.get(building.type, rules.floors.default)

        pool.append(
            SiegeTarget(
                id=building.type,
                label=_title(building.type),
                kind=kind,
                structure_id=building.id,
                before_level=level,
                floor_level=max(0, floor),
                resilience_multiplier=multiplier,
                drop_cap=override.drop_cap if override is not None else None,
            )
        )

    field_rule = rules.targeting.field_rule
    if not field_rule.enabled:
        return pool

    protection = field_rule.capital_protection
    field_multiplier = (
        field_rule.resilience_multiplier
        if field_rule.resilience_multiplier is not None
        else resilience.resource_field_multiplier
    )
    for resource_field in snapshot.resource_fields:
        level = max(0, int(resource_field.level))
        if level <= 0:
            continue
        floor = rules.floors.default
        if snapshot.is_capital:
            if protection.mode == CapitalProtectionMode.IMMUNE:
                continue
            if (
                protection.mode == CapitalProtectionMode.FLOOR
                and protection.floor_level is not None
            ):
                floor = max(floor, protection.floor_level)
        resource = ResourceKind(resource_field.resource)
        pool.append(
            SiegeTarget(
                id=f"field:{resource}:{resource_field.slot}",
                label=f"{_title(resource)} Field #{resource_field.slot + 1}",
                kind=SiegeTargetKind.RESOURCE_FIELD,
                structure_id=resource_field.id,
                before_level=level,
                floor_level=max(0, floor),
                resilience_multiplier=field_multiplier,
                resource=resource,
                slot=resource_field.slot,
            )
        )
    return pool


# --- Target resolution ---------------------------------------------------------------------


def resolve_selection(
    selection: Selection,
    pool: Sequence[SiegeTarget],
    field_rule: FieldTargetingRule,
    rng: RandomSource,
) -> SiegeTarget | None:
    """Match one decoded selector against the pool."""

    if isinstance(selection, (BuildingSelection, WonderSelection)):
        return next(
            (
                target
                for target in pool
                if target.kind != SiegeTargetKind.RESOURCE_FIELD
                and target.id == selection.building_type
            ),
            None,
        )
    if not field_rule.enabled:
        return None
    if isinstance(selection, ResourceTileSelection):
        if not field_rule.allow_slot_selection:
            return None
        return next(
            (
                target
                for target in _fields_of(pool, selection.resource)
                if target.slot == selection.slot
            ),
            None,
        )
    if isinstance(selection, ResourceCategorySelection):
        candidates = _fields_of(pool, selection.resource)
        if not candidates:
            return None
        if field_rule.selection_mode == FieldSelectionMode.EVEN_SPREAD:
            open_fields = [target for target in candidates if not target.at_floor] or candidates
            return open_fields[uniform_index(rng, len(open_fields))]
        return min(candidates, key=lambda target: (-target.before_level, target.slot or 0))
    return None


def random_target(
    pool: Sequence[SiegeTarget],
    rng: RandomSource,
    allow_fields: bool,
    allow_wonder: bool,
) -> SiegeTarget | None:
    """Draw uniformly among targets still above their floor."""

    candidates = [
        target
        for target in pool
        if not target.at_floor
        and (allow_fields or target.kind != SiegeTargetKind.RESOURCE_FIELD)
        and (allow_wonder or target.kind != SiegeTargetKind.WORLD_WONDER)
    ]
    if not candidates:
        return None
    return candidates[uniform_index(rng, len(candidates))]


def _fields_of(pool: Sequence[SiegeTarget], resource: ResourceKind) -> list[SiegeTarget]:
    return [
        target
        for target in pool
        if target.kind == SiegeTargetKind.RESOURCE_FIELD and target.resource == resource
    ]


def _dedupe(resolved: list[_Resolved]) -> list[_Resolved]:
    unique: list[_Resolved] = []
    seen: set[tuple[SiegeTargetKind, str]] = set()
    for entry in resolved:
        key = (entry.target.kind, entry.target.structure_id or entry.target.id)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def _mode_label(mode: TargetingMode, resolved_count: int) -> ResolvedMode:
    if mode == TargetingMode.RANDOM:
        return ResolvedMode.RANDOM
    if resolved_count == 2 or (resolved_count == 0 and mode == TargetingMode.TWO):
        return ResolvedMode.DUAL
    return ResolvedMode.SINGLE


# --- Damage --------------------------------------------------------------------------------


def apply_damage(
    target: SiegeTarget,
    shots: int,
    rules: CatapultRules,
    modifiers: CatapultModifiers,
    rng: RandomSource,
    *,
    stonemason_active: bool,
    selection: str | None = None,
) -> CatapultTargetHit:
    """Walk ``target`` down the resilience curve with ``shots`` catapults."""

    variance = (rng.random() * 2 - 1) * rules.randomness_pct
    artifact_pct = modifiers.artifact_pct + rules.shot_power.artifact_pct
    event_pct = modifiers.event_pct
    tech_pct = max(0, modifiers.tech_level) * rules.shot_power.tech_pct_per_level
    shot_power = rules.shot_power.base * (1 + variance + artifact_pct + event_pct + tech_pct)

    wonder_exempt = (
        target.kind == SiegeTargetKind.WORLD_WONDER and not rules.stonemason.allowed_in_wonder
    )
    stonemason_pct = (
        rules.stonemason.reduction_pct if stonemason_active and not wonder_exempt else 0.0
    )
    effective_power = max(0.0, shot_power * (1 - stonemason_pct))
    total_power = shots * effective_power

    curve = rules.resilience.base_curve or (0.0,)
    drop_cap = target.drop_cap
    if drop_cap is None and target.kind == SiegeTargetKind.WORLD_WONDER:
        drop_cap = rules.wonder.drop_cap_per_wave

    def cost_at(level: int) -> float:
        return curve[min(level, len(curve) - 1)] * target.resilience_multiplier

    remaining = total_power
    level = target.before_level
    floor = target.floor_level
    drop = 0
    capped = False
    while level > floor:
        if drop_cap is not None and drop >= drop_cap:
            capped = True
            break
        required = cost_at(level)
        if remaining + POWER_EPSILON < required:
            break
        remaining -= required
        level -= 1
        drop += 1
    if drop_cap is not None and drop >= drop_cap and level > floor:
        capped = True

    power_used = total_power - remaining
    if effective_power > 0:
        shots_used = min(shots, math.ceil(power_used / effective_power - POWER_EPSILON))
    else:
        shots_used = 0
    shots_used = max(0, shots_used)

    notes: list[str] = []
    floor_applied: int | None = None
    if capped and remaining > POWER_EPSILON:
        notes.append(f"Reached per-wave drop cap ({drop_cap})")
    if level <= floor and floor > 0 and remaining + POWER_EPSILON >= cost_at(level):
        floor_applied = floor
        notes.append(f"Floor protection at level {floor}")

    return CatapultTargetHit(
        selection=selection,
        target_id=target.id,
        target_label=target.label,
        target_kind=target.kind,
        structure_id=target.structure_id,
        resource=target.resource,
        slot=target.slot,
        before_level=target.before_level,
        after_level=level,
        drop=target.before_level - level,
        allocated_shots=shots,
        shots_used=shots_used,
        wasted_shots=shots - shots_used,
        floor_applied=floor_applied,
        modifiers=ShotModifiers(
            variance_pct=variance,
            artifact_pct=artifact_pct,
            event_pct=event_pct,
            tech_pct=tech_pct,
            stonemason_pct=stonemason_pct,
        ),
        notes=tuple(notes),
    )


def _protected_hit(entry: _Resolved, shots: int) -> CatapultTargetHit:
    target = entry.target
    return CatapultTargetHit(
        selection=entry.selection,
        target_id=target.id,
        target_label=target.label,
        target_kind=target.kind,
        structure_id=target.structure_id,
        resource=target.resource,
        slot=target.slot,
        before_level=target.before_level,
        after_level=target.before_level,
        drop=0,
        allocated_shots=shots,
        shots_used=0,
        wasted_shots=shots,
        floor_applied=target.floor_level,
        modifiers=ShotModifiers(),
        notes=("Target protected by floor",),
    )
