"""Unit tests for catapult damage resolution."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from bastion.domain import models as dm
from bastion.domain import siege
from bastion.domain.enums import (
    ResolvedMode,
    ResourceKind,
    SiegeTargetKind,
    TargetingMode,
    VillageKind,
)
from bastion.domain.rules_config import merge_catapult_rules


def _building(type_: str, level: int, id_: str | None = None) -> dm.BuildingSnapshot:
    return dm.BuildingSnapshot(id=id_ or type_.lower(), type=type_, level=level)


def _field(resource: ResourceKind, slot: int, level: int) -> dm.ResourceFieldSnapshot:
    return dm.ResourceFieldSnapshot(
        id=f"{resource}-{slot}", resource=resource, slot=slot, level=level
    )


def _snapshot(*buildings: dm.BuildingSnapshot, **kwargs) -> dm.VillageSiegeSnapshot:
    return dm.VillageSiegeSnapshot(village_id="v1", buildings=tuple(buildings), **kwargs)


FIELDS_ENABLED = {"targeting": {"field_rule": {"enabled": True}}}


def _conserved(result: siege.CatapultDamageResult) -> bool:
    per_target = all(
        hit.shots_used + hit.wasted_shots == hit.allocated_shots for hit in result.targets
    )
    return per_target and result.shots_used + result.wasted_shots == result.total_catapults


def test_single_warehouse_wave():
    request = dm.CatapultRequest(
        catapults=50,
        mode="single",
        selections=("warehouse",),
        snapshot=_snapshot(_building("WAREHOUSE", 10), _building("RALLY_POINT", 5)),
        seed="wave-1",
    )
    result = siege.resolve_catapult_damage(request)

    assert result.mode == ResolvedMode.SINGLE
    assert len(result.targets) == 1
    hit = result.targets[0]
    assert hit.target_id == "WAREHOUSE"
    assert hit.selection == "warehouse"
    assert hit.before_level == 10
    assert 0 <= hit.after_level <= 10
    # 50 shots at ~1 power comfortably cover the 23 power of levels 10..1.
    assert hit.after_level == 0
    assert hit.drop == 10
    assert hit.floor_applied is None
    assert _conserved(result)
    assert result.wasted_shots > 0


def test_same_seed_same_result():
    request = dm.CatapultRequest(
        catapults=30,
        snapshot=_snapshot(
            _building("WAREHOUSE", 10), _building("GRANARY", 8), _building("BARRACKS", 4)
        ),
        seed="repeat",
    )
    assert siege.resolve_catapult_damage(request) == siege.resolve_catapult_damage(request)


def test_palace_stops_at_floor():
    request = dm.CatapultRequest(
        catapults=100,
        mode="one",
        selections=("palace",),
        snapshot=_snapshot(_building("PALACE", 5)),
    )
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.after_level == 1
    assert hit.floor_applied == 1
    assert "Floor protection at level 1" in hit.notes


def test_target_at_floor_wastes_its_shots():
    request = dm.CatapultRequest(
        catapults=20, mode="one", selections=("palace",), snapshot=_snapshot(_building("PALACE", 1))
    )
    result = siege.resolve_catapult_damage(request)
    hit = result.targets[0]
    assert hit.after_level == 1
    assert hit.shots_used == 0
    assert hit.wasted_shots == 20
    assert result.wasted_shots == 20


def test_field_selector_falls_back_to_building_when_fields_disabled():
    snapshot = _snapshot(
        _building("WAREHOUSE", 5),
        resource_fields=(_field(ResourceKind.WOOD, 0, 10),),
    )
    request = dm.CatapultRequest(
        catapults=10, mode="one", selections=("field:wood",), snapshot=snapshot
    )
    result = siege.resolve_catapult_damage(request)

    assert len(result.targets) == 1
    hit = result.targets[0]
    assert hit.target_kind == SiegeTargetKind.BUILDING
    assert hit.target_id == "WAREHOUSE"
    assert hit.selection is None
    assert "Fell back to a random target" in hit.notes


def test_unresolved_selectors_are_reported_and_fall_back():
    request = dm.CatapultRequest(
        catapults=10, mode="one", selections=("moat",), snapshot=_snapshot(_building("BARRACKS", 3))
    )
    result = siege.resolve_catapult_damage(request)
    assert result.unresolved_selections == ("moat",)
    assert result.targets[0].target_id == "BARRACKS"


def test_selectors_keep_their_text_around_unresolved_ones():
    snapshot = _snapshot(_building("WAREHOUSE", 10), _building("GRANARY", 10))
    request = dm.CatapultRequest(
        catapults=40, mode="two", selections=("moat", "granary", "warehouse"), snapshot=snapshot
    )
    result = siege.resolve_catapult_damage(request)
    assert result.unresolved_selections == ("moat",)
    assert [(hit.target_id, hit.selection) for hit in result.targets] == [
        ("GRANARY", "granary"),
        ("WAREHOUSE", "warehouse"),
    ]


def test_walls_are_never_targeted():
    request = dm.CatapultRequest(
        catapults=40, snapshot=_snapshot(_building("WALL", 10), _building("PALACE", 1))
    )
    result = siege.resolve_catapult_damage(request)
    assert result.targets == ()
    assert result.mode == ResolvedMode.RANDOM
    assert result.wasted_shots == 40


def _pool(snapshot, overrides=None):
    return {
        target.id: target
        for target in siege.build_target_pool(snapshot, merge_catapult_rules(overrides))
    }


def test_palisade_is_a_target_but_stone_walls_are_not():
    pool = _pool(
        _snapshot(_building("WALL", 10), _building("EARTH_WALL", 5), _building("PALISADE", 7))
    )
    assert set(pool) == {"PALISADE"}


@pytest.mark.parametrize(
    "type_, multiplier, kind",
    [
        ("WAREHOUSE", 1.0, SiegeTargetKind.BUILDING),
        ("GREAT_BARRACKS", 2.5, SiegeTargetKind.BUILDING),
        ("GREAT_STABLES", 2.5, SiegeTargetKind.BUILDING),
        ("GREAT_WAREHOUSE", 2.6, SiegeTargetKind.WONDER_SUPPORT),
        ("GREAT_GRANARY", 2.6, SiegeTargetKind.WONDER_SUPPORT),
        ("WORLD_WONDER", 20.0, SiegeTargetKind.WORLD_WONDER),
    ],
)
def test_building_resilience_in_standard_village(type_, multiplier, kind):
    target = _pool(_snapshot(_building(type_, 5)))[type_]
    assert target.kind == kind
    assert target.resilience_multiplier == pytest.approx(multiplier)


def test_world_wonder_village_uses_wonder_multiplier_for_every_building():
    snapshot = _snapshot(
        _building("WORLD_WONDER", 5),
        _building("GREAT_WAREHOUSE", 5),
        _building("GREAT_BARRACKS", 5),
        _building("WAREHOUSE", 5),
        kind=VillageKind.WORLD_WONDER,
    )
    pool = _pool(snapshot)
    assert {target.kind for target in pool.values()} == {SiegeTargetKind.WORLD_WONDER}
    assert {target.resilience_multiplier for target in pool.values()} == {20.0}
    assert pool["WORLD_WONDER"].drop_cap == 1
    assert pool["WORLD_WONDER"].floor_level == 0


def test_wonder_multiplier_is_tunable():
    pool = _pool(
        _snapshot(_building("WORLD_WONDER", 5)), {"resilience": {"world_wonder_multiplier": 12}}
    )
    assert pool["WORLD_WONDER"].resilience_multiplier == 12


def test_resource_fields_use_field_multiplier():
    snapshot = _snapshot(resource_fields=(_field(ResourceKind.CROP, 2, 6),))
    field = _pool(snapshot, FIELDS_ENABLED)["field:crop:2"]
    assert field.kind == SiegeTargetKind.RESOURCE_FIELD
    assert field.resilience_multiplier == pytest.approx(0.9)
    assert field.label == "Crop Field #3"

    tuned = _pool(
        snapshot, {"targeting": {"field_rule": {"enabled": True, "resilience_multiplier": 0.5}}}
    )
    assert tuned["field:crop:2"].resilience_multiplier == pytest.approx(0.5)


def test_no_snapshot_or_no_catapults():
    assert siege.resolve_catapult_damage(dm.CatapultRequest(catapults=15)).wasted_shots == 15
    empty = siege.resolve_catapult_damage(
        dm.CatapultRequest(catapults=0, snapshot=_snapshot(_building("WAREHOUSE", 5)))
    )
    assert empty.targets == ()
    assert empty.wasted_shots == 0


def test_highest_field_hit_with_capital_floor():
    rules = {
        "targeting": {
            "field_rule": {
                "enabled": True,
                "capital_protection": {"mode": "floor", "floor_level": 5},
            }
        }
    }
    snapshot = _snapshot(
        is_capital=True,
        resource_fields=(_field(ResourceKind.WOOD, 0, 10), _field(ResourceKind.WOOD, 1, 8)),
    )
    request = dm.CatapultRequest(
        catapults=200, mode="one", selections=("wood",), snapshot=snapshot, rules_overrides=rules
    )
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.target_kind == SiegeTargetKind.RESOURCE_FIELD
    assert hit.slot == 0
    assert hit.target_label == "Wood Field #1"
    assert hit.after_level == 5
    assert hit.floor_applied == 5


def test_immune_capital_fields_are_skipped():
    rules = {
        "targeting": {
            "field_rule": {"enabled": True, "capital_protection": {"mode": "immune"}}
        }
    }
    snapshot = _snapshot(
        _building("GRANARY", 6),
        is_capital=True,
        resource_fields=(_field(ResourceKind.CROP, 2, 10),),
    )
    request = dm.CatapultRequest(
        catapults=10, mode="one", selections=("crop",), snapshot=snapshot, rules_overrides=rules
    )
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.target_id == "GRANARY"


def test_slot_selection_requires_permission():
    snapshot = _snapshot(
        _building("BARRACKS", 6),
        resource_fields=(_field(ResourceKind.IRON, 0, 10), _field(ResourceKind.IRON, 1, 4)),
    )
    denied = dm.CatapultRequest(
        catapults=10,
        mode="one",
        selections=("iron:1",),
        snapshot=snapshot,
        rules_overrides=FIELDS_ENABLED,
    )
    assert siege.resolve_catapult_damage(denied).targets[0].target_id == "BARRACKS"

    allowed_rules = {"targeting": {"field_rule": {"enabled": True, "allow_slot_selection": True}}}
    allowed = dm.CatapultRequest(
        catapults=10,
        mode="one",
        selections=("iron:1",),
        snapshot=snapshot,
        rules_overrides=allowed_rules,
    )
    hit = siege.resolve_catapult_damage(allowed).targets[0]
    assert hit.target_id == "field:iron:1"
    assert hit.before_level == 4


def test_even_spread_picks_a_matching_field():
    rules = {"targeting": {"field_rule": {"enabled": True, "selection_mode": "even_spread"}}}
    snapshot = _snapshot(
        resource_fields=(_field(ResourceKind.CLAY, 0, 3), _field(ResourceKind.CLAY, 1, 9)),
    )
    request = dm.CatapultRequest(
        catapults=5,
        mode="one",
        selections=("clay",),
        snapshot=snapshot,
        rules_overrides=rules,
        seed="s",
    )
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.resource == ResourceKind.CLAY
    assert hit.slot in (0, 1)


def test_wonder_drop_is_capped_per_wave():
    snapshot = _snapshot(_building("WORLD_WONDER", 5), kind=VillageKind.WORLD_WONDER)
    request = dm.CatapultRequest(catapults=300, mode="one", selections=("ww",), snapshot=snapshot)
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.target_kind == SiegeTargetKind.WORLD_WONDER
    assert hit.drop == 1
    assert hit.after_level == 4
    assert "Reached per-wave drop cap (1)" in hit.notes


def test_wonders_are_not_random_targets_by_default():
    snapshot = _snapshot(_building("WORLD_WONDER", 5), kind=VillageKind.WORLD_WONDER)
    result = siege.resolve_catapult_damage(dm.CatapultRequest(catapults=50, snapshot=snapshot))
    assert result.targets == ()
    assert result.wasted_shots == 50


def test_stonemason_reduces_shot_power():
    snapshot = _snapshot(_building("WAREHOUSE", 10), _building("STONEMASON", 3))
    request = dm.CatapultRequest(
        catapults=5, mode="one", selections=("warehouse",), snapshot=snapshot
    )
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.modifiers.stonemason_pct == pytest.approx(0.2)


def test_stonemason_ignored_in_wonder_village():
    snapshot = _snapshot(
        _building("WAREHOUSE", 10), _building("STONEMASON", 3), kind=VillageKind.WORLD_WONDER
    )
    request = dm.CatapultRequest(
        catapults=5, mode="one", selections=("warehouse",), snapshot=snapshot
    )
    hit = siege.resolve_catapult_damage(request).targets[0]
    assert hit.target_kind == SiegeTargetKind.WORLD_WONDER
    assert hit.modifiers.stonemason_pct == 0.0


def test_tech_level_recorded_in_modifiers():
    request = dm.CatapultRequest(
        catapults=5,
        mode="one",
        selections=("warehouse",),
        snapshot=_snapshot(_building("WAREHOUSE", 10)),
        modifiers=dm.CatapultModifiers(tech_level=10, event_pct=0.1),
    )
    modifiers = siege.resolve_catapult_damage(request).targets[0].modifiers
    assert modifiers.tech_pct == pytest.approx(0.3)
    assert modifiers.event_pct == pytest.approx(0.1)
    assert abs(modifiers.variance_pct) <= 0.05


def test_dual_mode_splits_shots():
    snapshot = _snapshot(_building("WAREHOUSE", 10), _building("GRANARY", 10))
    request = dm.CatapultRequest(
        catapults=51, mode="two", selections=("warehouse", "granary"), snapshot=snapshot
    )
    result = siege.resolve_catapult_damage(request)
    assert result.mode == ResolvedMode.DUAL
    assert [hit.allocated_shots for hit in result.targets] == [26, 25]
    assert _conserved(result)


def test_explicit_split_is_used_when_it_adds_up():
    snapshot = _snapshot(_building("WAREHOUSE", 10), _building("GRANARY", 10))
    request = dm.CatapultRequest(
        catapults=50,
        mode="two",
        selections=("warehouse", "granary"),
        snapshot=snapshot,
        shots_split=(10, 40),
    )
    result = siege.resolve_catapult_damage(request)
    assert [hit.allocated_shots for hit in result.targets] == [10, 40]


def test_duplicate_selectors_collapse_to_one_target():
    snapshot = _snapshot(_building("WAREHOUSE", 10))
    request = dm.CatapultRequest(
        catapults=40,
        mode="two",
        selections=("warehouse", "Warehouse"),
        snapshot=snapshot,
        shots_split=(20, 20),
    )
    result = siege.resolve_catapult_damage(request)
    assert result.mode == ResolvedMode.SINGLE
    assert len(result.targets) == 1
    assert result.targets[0].allocated_shots == 40


@pytest.mark.parametrize(
    ("level", "mode"),
    [
        (0, TargetingMode.RANDOM),
        (2, TargetingMode.RANDOM),
        (3, TargetingMode.ONE),
        (19, TargetingMode.ONE),
        (20, TargetingMode.TWO),
    ],
)
def test_targeting_mode_for_rally_point(level, mode):
    assert siege.targeting_mode_for_rally_point(level) == mode


def test_split_catapult_shots():
    assert siege.split_catapult_shots(51, TargetingMode.TWO) == [26, 25]
    assert siege.split_catapult_shots(51, TargetingMode.ONE) == [51]


def test_calculate_catapult_damage_uses_rally_point():
    snapshot = _snapshot(_building("WAREHOUSE", 10), _building("GRANARY", 10))
    dual = siege.calculate_catapult_damage(
        60, 20, ["warehouse", "granary"], snapshot=snapshot, seed="rp"
    )
    assert dual.mode == ResolvedMode.DUAL

    random = siege.calculate_catapult_damage(60, 1, ["warehouse"], snapshot=snapshot, seed="rp")
    assert random.mode == ResolvedMode.RANDOM
    assert all(hit.selection is None for hit in random.targets)


_TYPES = ["WAREHOUSE", "GRANARY", "PALACE", "RALLY_POINT", "WALL", "GREAT_GRANARY", "WORLD_WONDER"]


@settings(max_examples=60, deadline=None)
@given(
    buildings=st.lists(
        st.tuples(st.sampled_from(_TYPES), st.integers(min_value=0, max_value=25)), max_size=6
    ),
    catapults=st.integers(min_value=0, max_value=400),
    mode=st.sampled_from(["random", "one", "two"]),
    selections=st.lists(
        st.sampled_from(["warehouse", "granary", "palace", "rp", "ww", "moat"]), max_size=2
    ),
    seed=st.text(max_size=8),
)
def test_siege_invariants(buildings, catapults, mode, selections, seed):
    snapshot = _snapshot(
        *(_building(type_, level, f"b{index}") for index, (type_, level) in enumerate(buildings))
    )
    request = dm.CatapultRequest(
        catapults=catapults, mode=mode, selections=tuple(selections), snapshot=snapshot, seed=seed
    )
    result = siege.resolve_catapult_damage(request)

    assert _conserved(result)
    assert len(result.targets) <= 2
    for hit in result.targets:
        assert 0 <= hit.after_level <= hit.before_level
        assert hit.drop == hit.before_level - hit.after_level
        if hit.target_id in ("PALACE", "RALLY_POINT"):
            assert hit.after_level >= 1
        if hit.target_kind == SiegeTargetKind.WORLD_WONDER:
            assert hit.drop <= 1
        assert hit.target_id != "WALL"
    assert result == siege.resolve_catapult_damage(request)
