"""Monte Carlo balance runs over the battle resolver.

Each run replays the same encounter with the seed components
``(base_seed, run_index)`` so a summary is reproducible run for run.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .battle import BattleReport, resolve_battle
from .enums import BattleOutcome
from .models import Army, CombatEnvironment, LuckOverride
from .rules_config import CombatConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BalanceSummary:
    runs: int
    base_seed: str
    outcomes: dict[BattleOutcome, int] = field(default_factory=dict)
    attacker_win_rate: float = 0.0
    defender_win_rate: float = 0.0
    mutual_destruction_rate: float = 0.0
    avg_attacker_casualties: float = 0.0
    avg_defender_casualties: float = 0.0
    avg_rounds: float = 0.0
    avg_wall_after: float = 0.0


def seeded_environment(
    environment: CombatEnvironment, base_seed: str, run: int
) -> CombatEnvironment:
    """Copy ``environment`` with its seed replaced by ``(base_seed, run)``."""

    luck = environment.luck
    if luck is not None:
        luck = LuckOverride(range=luck.range) if luck.range is not None else None
    return replace(environment, seed=None, luck=luck, seed_components=(base_seed, run))


def run_balance_simulation(
    attacker: Army,
    defender: Army,
    environment: CombatEnvironment | None = None,
    *,
    runs: int = 1000,
    base_seed: str = "balance-sim",
    config_overrides: Mapping[str, Any] | CombatConfig | None = None,
) -> BalanceSummary:
    """Resolve the encounter ``runs`` times and aggregate the reports.

    Raises:
        ValueError: If ``runs`` is not positive
    """
    if runs <= 0:
        raise ValueError("runs must be positive")

    environment = environment or CombatEnvironment()
    outcomes: Counter[BattleOutcome] = Counter()
    attacker_losses = 0
    defender_losses = 0
    rounds = 0
    wall_after = 0

    for run in range(runs):
        report: BattleReport = resolve_battle(
            attacker,
            defender,
            seeded_environment(environment, base_seed, run),
            config_overrides,
        )
        outcomes[report.outcome] += 1
        attacker_losses += report.attacker.total_casualties
        defender_losses += report.defender.total_casualties
        rounds += len(report.rounds)
        wall_after += report.pre_combat.wall_after

    summary = BalanceSummary(
        runs=runs,
        base_seed=base_seed,
        outcomes={outcome: outcomes.get(outcome, 0) for outcome in BattleOutcome},
        attacker_win_rate=outcomes[BattleOutcome.ATTACKER_VICTORY] / runs,
        defender_win_rate=outcomes[BattleOutcome.DEFENDER_VICTORY] / runs,
        mutual_destruction_rate=outcomes[BattleOutcome.MUTUAL_DESTRUCTION] / runs,
        avg_attacker_casualties=attacker_losses / runs,
        avg_defender_casualties=defender_losses / runs,
        avg_rounds=rounds / runs,
        avg_wall_after=wall_after / runs,
    )
    logger.info(
        "balance run complete: runs=%d attacker_win_rate=%.3f avg_rounds=%.2f",
        runs,
        summary.attacker_win_rate,
        summary.avg_rounds,
    )
    return summary
