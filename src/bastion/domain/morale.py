"""Attacker morale multiplier.

Attackers much larger than their target fight at reduced strength; underdogs
never receive a boost above the configured maximum.  The battle resolver
treats this as a pluggable collaborator (see ``morale_fn`` on
:func:`bastion.domain.battle.resolve_battle`).
"""

from __future__ import annotations

from collections.abc import Callable

from .enums import Mission
from .models import CombatEnvironment
from .rules_config import CombatConfig

MoraleFunction = Callable[[CombatEnvironment, CombatConfig], float]


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def calculate_morale_multiplier(environment: CombatEnvironment, config: CombatConfig) -> float:
    """Return the morale multiplier in ``[min_att_mult, max_att_mult]``."""

    morale = config.morale
    if environment.mission == Mission.SCOUT:
        return 1.0

    # Barbarian and abandoned villages report no size and are fought at full morale.
    defender_size = environment.defender_size
    if defender_size is None or defender_size <= 0:
        return 1.0

    size_floor = config.size_floor
    attacker_size = max(
        size_floor,
        environment.attacker_size if environment.attacker_size is not None else size_floor,
    )
    defender_size = max(size_floor, defender_size)
    if attacker_size <= defender_size:
        return 1.0

    base = (defender_size / attacker_size) ** morale.exponent
    bounded = _clamp(base, morale.min_att_mult, morale.max_att_mult)

    time_floor = morale.time_floor
    age = environment.defender_account_age_days
    if not time_floor.enabled or age is None:
        return bounded

    progress = _clamp(age / max(1, time_floor.full_effect_days), 0.0, 1.0)
    target = _clamp(time_floor.floor, morale.min_att_mult, morale.max_att_mult)
    dynamic_floor = morale.min_att_mult + (target - morale.min_att_mult) * progress
    return max(bounded, dynamic_floor)
