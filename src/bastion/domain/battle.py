"""Field battle resolution.

A battle is resolved in a bounded number of rounds.  Each round recomputes
the attacker's infantry/cavalry mix, weighs the defender's two defense values
by that mix, and converts the strength ratio into loss rates for both sides.
All randomness (luck, ram rolls, loss variance, casualty tie-breaks) comes
from one seeded :class:`~bastion.utils.rng.Xorshift128Plus` stream, so a
report can always be reproduced from its seed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from bastion.utils.rng import RandomSource, Xorshift128Plus, derive_seed

from .casualties import allocate_casualties
from .enums import BattleOutcome, Composition, Mission, UnitRole
from .models import Army, BonusModifier, CombatEnvironment, UnitStack
from .morale import MoraleFunction, calculate_morale_multiplier
from .rules_config import CombatConfig, merge_combat_config

logger = logging.getLogger(__name__)

ATTACKER = "attacker"
DEFENDER = "defender"

# Missions that never bring rams to bear on the wall.
NO_WALL_DAMAGE_MISSIONS = frozenset({Mission.RAID, Mission.SCOUT})


# --- Report values ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UnitOutcome:
    unit_id: str
    role: UnitRole
    initial: int
    casualties: int
    survivors: int


@dataclass(frozen=True, slots=True)
class ArmyOutcome:
    label: str
    total_initial: int
    total_casualties: int
    total_survivors: int
    units: tuple[UnitOutcome, ...]


@dataclass(frozen=True, slots=True)
class RoundSummary:
    """What happened in one round of the battle."""

    index: int
    attacker_strength: float
    defender_strength: float
    ratio: float
    stronger: str
    attacker_loss_rate: float
    defender_loss_rate: float
    attacker_casualties: int
    defender_casualties: int
    composition: Composition


@dataclass(frozen=True, slots=True)
class AttackAggregate:
    inf: float
    cav: float
    total: float


@dataclass(frozen=True, slots=True)
class DefenseAggregate:
    inf: float
    cav: float
    weighted: float
    w_inf: float
    w_cav: float


@dataclass(frozen=True, slots=True)
class Aggregates:
    attacker: AttackAggregate
    defender: DefenseAggregate


@dataclass(frozen=True, slots=True)
class AttackBreakdown:
    base: float
    post_bonuses: float
    post_paladin: float
    post_morale: float
    final: float


@dataclass(frozen=True, slots=True)
class DefenseBreakdown:
    weighted: float
    post_wall: float
    post_night: float
    post_bonuses: float
    post_paladin: float
    final: float


@dataclass(frozen=True, slots=True)
class Multipliers:
    wall: float
    morale: float
    night: float
    attacker_bonuses: float
    defender_bonuses: float
    paladin_attack: float
    paladin_defense: float
    raid_factor: float


@dataclass(frozen=True, slots=True)
class LuckDraw:
    """Symmetric luck swing; ``attacker + defender`` is always 2."""

    attacker: float
    defender: float
    swing: float
    range: float
    seed: str


@dataclass(frozen=True, slots=True)
class PreCombat:
    wall_type: str
    wall_before: int
    wall_after: int
    rams: int

    @property
    def wall_drop(self) -> int:
        return self.wall_before - self.wall_after


@dataclass(frozen=True, slots=True)
class BattleReport:
    """Full, immutable record of a resolved battle."""

    outcome: BattleOutcome
    attacker_won: bool
    mission: Mission
    attacker: ArmyOutcome
    defender: ArmyOutcome
    rounds: tuple[RoundSummary, ...]
    aggregates: Aggregates
    attack_breakdown: AttackBreakdown
    defense_breakdown: DefenseBreakdown
    multipliers: Multipliers
    luck: LuckDraw
    pre_combat: PreCombat
    config_version: str


# --- Entry point -------------------------------------------------------------------


def resolve_battle(
    attacker: Army,
    defender: Army,
    environment: CombatEnvironment | None = None,
    config_overrides: Mapping[str, Any] | CombatConfig | None = None,
    *,
    morale_fn: MoraleFunction = calculate_morale_multiplier,
) -> BattleReport:
    """Resolve a field battle between ``attacker`` and ``defender``."""

    config = merge_combat_config(config_overrides)
    environment = environment or CombatEnvironment()
    mission = Mission(environment.mission)

    attacker_stacks = tuple(attacker.stacks)
    defender_stacks = tuple(defender.stacks)
    attacker_counts = [stack.safe_count for stack in attacker_stacks]
    defender_counts = [stack.safe_count for stack in defender_stacks]

    rng = Xorshift128Plus(_seed_for(environment))

    # Static aggregation, reported but not used by the round loop.
    attack_agg = aggregate_attack(attacker_stacks, attacker_counts, config)
    w_inf, w_cav = composition_weights(attack_agg)
    defense_agg = aggregate_defense(defender_stacks, defender_counts, w_inf, w_cav, config)

    morale = morale_fn(environment, config)
    night = config.night.def_mult if config.night.enabled and environment.night_active else 1.0
    attacker_bonuses = _product(environment.attacker_modifiers)
    defender_bonuses = _product(environment.defender_modifiers)
    paladin_attack = _paladin_multiplier(
        environment.paladin_attack,
        attacker_stacks,
        attacker_counts,
        config.paladin.unit_marker,
        config.paladin.attack_bonus_pct,
    )
    paladin_defense = _paladin_multiplier(
        environment.paladin_defense,
        defender_stacks,
        defender_counts,
        config.paladin.unit_marker,
        config.paladin.defense_bonus_pct,
    )
    luck_range = _luck_range(environment, config)
    luck = draw_luck(luck_range, rng, seed_hex=rng.seed_hex)

    wall_type = _wall_type(environment.wall_type, config)
    wall_before = max(0, int(environment.wall_level or 0))
    rams = sum(
        count
        for stack, count in zip(attacker_stacks, attacker_counts)
        if stack.role == UnitRole.RAM
    )
    wall_after = (
        wall_before
        if mission in NO_WALL_DAMAGE_MISSIONS
        else reduce_wall(wall_before, rams, config.rams.success_chance, rng)
    )
    pre_combat = PreCombat(
        wall_type=wall_type, wall_before=wall_before, wall_after=wall_after, rams=rams
    )
    wall = wall_multiplier(wall_type, wall_after, config)
    raid_factor = config.raid_lethality_factor if mission == Mission.RAID else 1.0

    attack_mult = attacker_bonuses * paladin_attack * morale * luck.attacker
    defense_mult = defender_bonuses * paladin_defense * wall * night * luck.defender

    rounds = _run_rounds(
        attacker_stacks,
        defender_stacks,
        attacker_counts,
        defender_counts,
        attack_mult=attack_mult,
        defense_mult=defense_mult,
        raid_factor=raid_factor,
        config=config,
        rng=rng,
    )

    attacker_outcome = _summarize(attacker, attacker_counts, ATTACKER)
    defender_outcome = _summarize(defender, defender_counts, DEFENDER)
    outcome = classify_outcome(
        attacker_outcome.total_survivors, defender_outcome.total_survivors
    )

    post_bonuses = attack_agg.total * attacker_bonuses
    post_paladin = post_bonuses * paladin_attack
    post_morale = post_paladin * morale
    post_wall = defense_agg.weighted * wall
    post_night = post_wall * night
    def_post_bonuses = post_night * defender_bonuses
    def_post_paladin = def_post_bonuses * paladin_defense

    report = BattleReport(
        outcome=outcome,
        attacker_won=outcome == BattleOutcome.ATTACKER_VICTORY,
        mission=mission,
        attacker=attacker_outcome,
        defender=defender_outcome,
        rounds=tuple(rounds),
        aggregates=Aggregates(attacker=attack_agg, defender=defense_agg),
        attack_breakdown=AttackBreakdown(
            base=attack_agg.total,
            post_bonuses=post_bonuses,
            post_paladin=post_paladin,
            post_morale=post_morale,
            final=post_morale * luck.attacker,
        ),
        defense_breakdown=DefenseBreakdown(
            weighted=defense_agg.weighted,
            post_wall=post_wall,
            post_night=post_night,
            post_bonuses=def_post_bonuses,
            post_paladin=def_post_paladin,
            final=def_post_paladin * luck.defender,
        ),
        multipliers=Multipliers(
            wall=wall,
            morale=morale,
            night=night,
            attacker_bonuses=attacker_bonuses,
            defender_bonuses=defender_bonuses,
            paladin_attack=paladin_attack,
            paladin_defense=paladin_defense,
            raid_factor=raid_factor,
        ),
        luck=luck,
        pre_combat=pre_combat,
        config_version=config.version,
    )
    logger.debug(
        "battle resolved: outcome=%s rounds=%d seed=%s wall=%d->%d",
        outcome,
        len(rounds),
        luck.seed,
        wall_before,
        wall_after,
    )
    return report


# --- Aggregation ---------------------------------------------------------------------


def smithy_multiplier(level: int, pct_per_level: float) -> float:
    return 1 + (pct_per_level / 100) * max(0, level)


def aggregate_attack(
    stacks: Sequence[UnitStack], counts: Sequence[int], config: CombatConfig
) -> AttackAggregate:
    """Sum attack power, split into infantry and cavalry.

    Only infantry and cavalry stacks fight; scouts, siege engines, admins and
    settlers add nothing.
    """

    inf = 0.0
    cav = 0.0
    for stack, count in zip(stacks, counts):
        if count <= 0:
            continue
        power = (
            stack.attack
            * smithy_multiplier(stack.smithy_attack_level, config.smithy.attack_pct_per_level)
            * count
        )
        role = UnitRole(stack.role)
        if role == UnitRole.CAVALRY:
            cav += power
        elif role == UnitRole.INFANTRY:
            inf += power
    return AttackAggregate(inf=inf, cav=cav, total=inf + cav)


def composition_weights(attack: AttackAggregate) -> tuple[float, float]:
    """Infantry and cavalry share of the attack; an empty attack counts as cavalry."""

    if attack.total <= 0:
        return 0.0, 1.0
    w_inf = attack.inf / attack.total
    return w_inf, 1 - w_inf


def aggregate_defense(
    stacks: Sequence[UnitStack],
    counts: Sequence[int],
    w_inf: float,
    w_cav: float,
    config: CombatConfig,
) -> DefenseAggregate:
    """Sum both defense values and blend them by the attacker's mix."""

    inf = 0.0
    cav = 0.0
    for stack, count in zip(stacks, counts):
        if count <= 0:
            continue
        multiplier = smithy_multiplier(
            stack.smithy_defense_level, config.smithy.defense_pct_per_level
        )
        inf += stack.def_inf * multiplier * count
        cav += stack.def_cav * multiplier * count
    return DefenseAggregate(
        inf=inf, cav=cav, weighted=inf * w_inf + cav * w_cav, w_inf=w_inf, w_cav=w_cav
    )


# --- Multipliers ------------------------------------------------------------------------


def wall_multiplier(wall_type: str, wall_level: int, config: CombatConfig) -> float:
    wall = config.walls.get(wall_type) or config.walls.get(config.default_wall_type)
    pct = wall.def_pct_per_level if wall is not None else 0.0
    return 1 + (pct / 100) * max(0, wall_level)


def draw_luck(luck_range: float, rng: RandomSource, *, seed_hex: str) -> LuckDraw:
    """Draw the symmetric luck swing; a zero range consumes no draws."""

    if luck_range == 0:
        return LuckDraw(attacker=1.0, defender=1.0, swing=0.0, range=0.0, seed=seed_hex)
    u1 = rng.random()
    u2 = rng.random()
    swing = min(max((u1 - u2) * luck_range, -luck_range), luck_range)
    return LuckDraw(
        attacker=1 + swing, defender=1 - swing, swing=swing, range=luck_range, seed=seed_hex
    )


def reduce_wall(wall_level: int, rams: int, success_chance: float, rng: RandomSource) -> int:
    """Roll each ram in turn; every success knocks the wall down one level."""

    level = max(0, wall_level)
    for _ in range(max(0, rams)):
        if level <= 0:
            break
        if rng.random() < success_chance:
            level -= 1
    return level


def _product(modifiers: Sequence[BonusModifier]) -> float:
    return math.prod((modifier.multiplier for modifier in modifiers or ()), start=1.0)


def _paladin_multiplier(
    override: bool | None,
    stacks: Sequence[UnitStack],
    counts: Sequence[int],
    marker: str,
    bonus_pct: float,
) -> float:
    if override is None:
        marker = marker.lower()
        present = any(
            count > 0 and marker and marker in stack.unit_id.lower()
            for stack, count in zip(stacks, counts)
        )
    else:
        present = override
    return 1 + bonus_pct / 100 if present else 1.0


def _luck_range(environment: CombatEnvironment, config: CombatConfig) -> float:
    if environment.luck is not None and environment.luck.range is not None:
        return abs(environment.luck.range)
    return abs(config.luck.range)


def _wall_type(wall_type: str | None, config: CombatConfig) -> str:
    if wall_type and wall_type in config.walls:
        return wall_type
    return config.default_wall_type


def _seed_for(environment: CombatEnvironment) -> int:
    luck = environment.luck
    components = None
    if luck is not None and luck.components is not None:
        components = luck.components
    elif environment.seed_components is not None:
        components = environment.seed_components
    return derive_seed(
        luck_seed=luck.seed if luck is not None else None,
        seed=environment.seed,
        components=components,
    )


# --- Round loop ---------------------------------------------------------------------------


def _run_rounds(
    attacker_stacks: Sequence[UnitStack],
    defender_stacks: Sequence[UnitStack],
    attacker_counts: list[int],
    defender_counts: list[int],
    *,
    attack_mult: float,
    defense_mult: float,
    raid_factor: float,
    config: CombatConfig,
    rng: RandomSource,
) -> list[RoundSummary]:
    rounds: list[RoundSummary] = []
    for index in range(1, config.rounds.max_rounds + 1):
        if sum(attacker_counts) == 0 or sum(defender_counts) == 0:
            break

        # Casualties shift the attacker's mix, so the weights are recomputed.
        attack = aggregate_attack(attacker_stacks, attacker_counts, config)
        w_inf, w_cav = composition_weights(attack)
        defense = aggregate_defense(defender_stacks, defender_counts, w_inf, w_cav, config)
        attacker_strength = attack.total * attack_mult
        defender_strength = defense.weighted * defense_mult
        if attacker_strength <= 0 and defender_strength <= 0:
            break

        attacker_rate, defender_rate = round_loss_rates(
            attacker_strength, defender_strength, raid_factor, config, rng
        )
        attacker_losses = allocate_casualties(
            attacker_counts, attacker_rate, rng, rounding=config.rounding.mode
        )
        defender_losses = allocate_casualties(
            defender_counts, defender_rate, rng, rounding=config.rounding.mode
        )
        for position, lost in enumerate(attacker_losses):
            attacker_counts[position] -= lost
        for position, lost in enumerate(defender_losses):
            defender_counts[position] -= lost

        rounds.append(
            RoundSummary(
                index=index,
                attacker_strength=attacker_strength,
                defender_strength=defender_strength,
                ratio=_ratio(attacker_strength, defender_strength),
                stronger=ATTACKER if attacker_strength > defender_strength else DEFENDER,
                attacker_loss_rate=attacker_rate,
                defender_loss_rate=defender_rate,
                attacker_casualties=sum(attacker_losses),
                defender_casualties=sum(defender_losses),
                composition=Composition.INFANTRY if w_inf >= w_cav else Composition.CAVALRY,
            )
        )
    return rounds


def round_loss_rates(
    attacker_strength: float,
    defender_strength: float,
    raid_factor: float,
    config: CombatConfig,
    rng: RandomSource,
) -> tuple[float, float]:
    """Return ``(attacker_rate, defender_rate)`` for one round.

    The stronger side (the defender on ties) divides the base loss rate by the
    shaped strength ratio and the weaker side multiplies it.  A side without
    any strength against a positive opponent is wiped out at no cost.
    """

    if defender_strength <= 0:
        return 0.0, 1.0
    if attacker_strength <= 0:
        return 1.0, 0.0

    rules = config.rounds
    attacker_stronger = attacker_strength > defender_strength
    stronger, weaker = (
        (attacker_strength, defender_strength)
        if attacker_stronger
        else (defender_strength, attacker_strength)
    )
    shaped = max(1.0, stronger / weaker) ** config.curvature_k

    stronger_rate = rules.base_loss_rate / shaped * _variance(rng, rules.loss_variance)
    weaker_rate = rules.base_loss_rate * shaped * _variance(rng, rules.loss_variance)
    stronger_rate = _clamp_rate(stronger_rate * raid_factor, rules.min_loss_rate)
    weaker_rate = _clamp_rate(weaker_rate * raid_factor, rules.min_loss_rate)

    if attacker_stronger:
        return stronger_rate, weaker_rate
    return weaker_rate, stronger_rate


def _variance(rng: RandomSource, spread: float) -> float:
    return 1 + spread * (2 * rng.random() - 1)


def _clamp_rate(rate: float, floor: float) -> float:
    return min(max(rate, floor), 1.0)


def _ratio(attacker_strength: float, defender_strength: float) -> float:
    if defender_strength <= 0:
        return math.inf
    return attacker_strength / defender_strength


# --- Outcome ----------------------------------------------------------------------------------


def classify_outcome(attacker_survivors: int, defender_survivors: int) -> BattleOutcome:
    """Decide the outcome from who is still standing.

    Both sides standing (round cap or a zero-strength standoff) counts as a
    successful defense.
    """

    if attacker_survivors > 0 and defender_survivors == 0:
        return BattleOutcome.ATTACKER_VICTORY
    if attacker_survivors == 0 and defender_survivors == 0:
        return BattleOutcome.MUTUAL_DESTRUCTION
    return BattleOutcome.DEFENDER_VICTORY


def _summarize(army: Army, survivors: Sequence[int], default_label: str) -> ArmyOutcome:
    units = []
    for stack, remaining in zip(army.stacks, survivors):
        initial = stack.safe_count
        units.append(
            UnitOutcome(
                unit_id=stack.unit_id,
                role=UnitRole(stack.role),
                initial=initial,
                casualties=initial - remaining,
                survivors=remaining,
            )
        )
    total_initial = sum(unit.initial for unit in units)
    total_survivors = sum(unit.survivors for unit in units)
    return ArmyOutcome(
        label=army.label or default_label,
        total_initial=total_initial,
        total_casualties=total_initial - total_survivors,
        total_survivors=total_survivors,
        units=tuple(units),
    )
