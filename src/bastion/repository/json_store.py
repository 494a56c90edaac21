"""JSON scenario files for the Bastion engines."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from bastion.domain import models as dm


@dataclass(slots=True)
class BattleScenario:
    """Inputs for one :func:`~bastion.domain.battle.resolve_battle` call."""

    attacker: dm.Army
    defender: dm.Army
    environment: dm.CombatEnvironment = field(default_factory=dm.CombatEnvironment)
    config_overrides: dict[str, Any] | None = None


@dataclass(slots=True)
class SiegeScenario:
    """A catapult wave; ``rally_point_level`` derives mode and split when set."""

    request: dm.CatapultRequest
    rally_point_level: int | None = None


class JsonScenarioStore:
    """Read scenarios from and write reports to JSON files."""

    def __init__(self, indent: int = 2) -> None:
        self.indent = indent
        self._battle: TypeAdapter[BattleScenario] = TypeAdapter(BattleScenario)
        self._siege: TypeAdapter[SiegeScenario] = TypeAdapter(SiegeScenario)

    def load_battle(self, path: Path) -> BattleScenario:
        """Load a battle scenario; raises ``ValidationError`` on malformed input."""

        return self._battle.validate_json(path.read_bytes())

    def load_siege(self, path: Path) -> SiegeScenario:
        """Load a siege scenario; raises ``ValidationError`` on malformed input."""

        return self._siege.validate_json(path.read_bytes())

    def save_battle(self, path: Path, scenario: BattleScenario) -> Path:
        path.write_bytes(self._battle.dump_json(scenario, indent=self.indent))
        return path

    def save_siege(self, path: Path, scenario: SiegeScenario) -> Path:
        path.write_bytes(self._siege.dump_json(scenario, indent=self.indent))
        return path

    def dump(self, value: Any) -> bytes:
        """Serialize any engine result dataclass."""

        return TypeAdapter(type(value)).dump_json(value, indent=self.indent)
