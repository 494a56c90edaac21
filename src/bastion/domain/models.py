"""Input dataclasses consumed by the Bastion engines.

The orchestration layer hydrates these from persisted troop, building and
village records.  The engines only ever read them: casualties and level drops
come back as separate result values for the caller to persist.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import (
    BuildingType,
    Mission,
    ResourceKind,
    UnitRole,
    VillageKind,
)

# --- Battle inputs -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UnitStack:
    """A count of identical units sharing role, attack and defense stats."""

    unit_id: str
    role: UnitRole
    count: int
    attack: float
    def_inf: float
    def_cav: float
    smithy_attack_level: int = 0
    smithy_defense_level: int = 0

    @property
    def safe_count(self) -> int:
        """Count clamped at zero; negative counts are treated as empty."""
        return max(0, int(self.count))


@dataclass(frozen=True, slots=True)
class Army:
    """A named set of unit stacks fighting on one side."""

    stacks: tuple[UnitStack, ...] = ()
    label: str | None = None

    @property
    def total_units(self) -> int:
        return sum(stack.safe_count for stack in self.stacks)


@dataclass(frozen=True, slots=True)
class BonusModifier:
    """Named multiplicative modifier (hero aura, alliance bonus, artifact...)."""

    id: str
    multiplier: float
    source: str | None = None


@dataclass(frozen=True, slots=True)
class LuckOverride:
    """Per-battle luck settings taking precedence over the environment seed."""

    seed: str | int | None = None
    components: tuple[str | int, ...] | None = None
    range: float | None = None


@dataclass(frozen=True, slots=True)
class CombatEnvironment:
    """Everything about an encounter that is not the two armies."""

    mission: Mission = Mission.ATTACK
    wall_type: str | None = None
    wall_level: int = 0
    attacker_size: float | None = None
    defender_size: float | None = None
    defender_account_age_days: float | None = None
    night_active: bool = False
    attacker_modifiers: tuple[BonusModifier, ...] = ()
    defender_modifiers: tuple[BonusModifier, ...] = ()
    luck: LuckOverride | None = None
    seed: str | int | None = None
    seed_components: tuple[str | int, ...] | None = None
    paladin_attack: bool | None = None
    paladin_defense: bool | None = None


# --- Siege inputs --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildingSnapshot:
    """A building as seen at the moment the catapults land."""

    id: str
    type: str
    level: int
    slot: int | None = None


@dataclass(frozen=True, slots=True)
class ResourceFieldSnapshot:
    """A resource field as seen at the moment the catapults land."""

    id: str
    resource: ResourceKind
    slot: int
    level: int


@dataclass(frozen=True, slots=True)
class VillageSiegeSnapshot:
    """Point-in-time read-only view of the targeted village."""

    village_id: str
    is_capital: bool = False
    kind: VillageKind = VillageKind.STANDARD
    buildings: tuple[BuildingSnapshot, ...] = ()
    resource_fields: tuple[ResourceFieldSnapshot, ...] = ()

    @property
    def is_world_wonder(self) -> bool:
        return self.kind == VillageKind.WORLD_WONDER

    def has_active(self, building_type: BuildingType) -> bool:
        """Whether a building of ``building_type`` stands at level 1 or more."""
        return any(b.type == building_type and b.level > 0 for b in self.buildings)


@dataclass(frozen=True, slots=True)
class CatapultModifiers:
    """Attacker-side bonuses applied to every catapult shot."""

    tech_level: int = 0
    artifact_pct: float = 0.0
    event_pct: float = 0.0


@dataclass(frozen=True, slots=True)
class CatapultRequest:
    """One catapult wave against one village."""

    catapults: int
    mode: str = "random"
    selections: tuple[str, ...] = ()
    snapshot: VillageSiegeSnapshot | None = None
    seed: str | None = None
    modifiers: CatapultModifiers = field(default_factory=CatapultModifiers)
    shots_split: tuple[int, ...] = ()
    rules_overrides: dict[str, object] | None = None


