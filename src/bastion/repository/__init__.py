"""Persistence adapters for Bastion scenarios and reports."""

from .json_store import BattleScenario, JsonScenarioStore, SiegeScenario

__all__ = ["BattleScenario", "JsonScenarioStore", "SiegeScenario"]
