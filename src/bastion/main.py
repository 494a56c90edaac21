"""Command line entrypoint for the Bastion engines."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from pydantic import ValidationError

from bastion.config import get_settings
from bastion.domain.balance import run_balance_simulation
from bastion.domain.battle import resolve_battle
from bastion.domain.siege import (
    calculate_catapult_damage,
    resolve_catapult_damage,
)
from bastion.repository import JsonScenarioStore

logger = logging.getLogger(__name__)

EXIT_INVALID_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="bastion", description="Resolve battles and catapult waves from JSON scenarios"
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    battle = subparsers.add_parser("battle", help="Resolve one battle scenario")
    battle.add_argument("scenario", type=Path, help="Battle scenario JSON file")
    battle.add_argument("--seed", help="Override the scenario seed")

    siege = subparsers.add_parser("siege", help="Resolve one catapult wave")
    siege.add_argument("scenario", type=Path, help="Siege scenario JSON file")
    siege.add_argument("--seed", help="Override the scenario seed")

    balance = subparsers.add_parser("balance", help="Replay a battle scenario over many seeds")
    balance.add_argument("scenario", type=Path, help="Battle scenario JSON file")
    balance.add_argument(
        "--runs", type=int, default=settings.balance_runs, help="Number of battles"
    )
    balance.add_argument("--seed", default=settings.balance_seed, help="Base seed component")
    return parser


def run_battle(store: JsonScenarioStore, args: argparse.Namespace) -> bytes:
    scenario = store.load_battle(args.scenario)
    environment = scenario.environment
    if args.seed is not None:
        environment = replace(environment, seed=args.seed)
    report = resolve_battle(
        scenario.attacker, scenario.defender, environment, scenario.config_overrides
    )
    return store.dump(report)


def run_siege(store: JsonScenarioStore, args: argparse.Namespace) -> bytes:
    scenario = store.load_siege(args.scenario)
    request = scenario.request
    if args.seed is not None:
        request = replace(request, seed=args.seed)
    if scenario.rally_point_level is None:
        result = resolve_catapult_damage(request)
    else:
        result = calculate_catapult_damage(
            request.catapults,
            scenario.rally_point_level,
            request.selections,
            snapshot=request.snapshot,
            seed=request.seed,
            rules=request.rules_overrides,
            modifiers=request.modifiers,
        )
    return store.dump(result)


def run_balance(store: JsonScenarioStore, args: argparse.Namespace) -> bytes:
    scenario = store.load_battle(args.scenario)
    summary = run_balance_simulation(
        scenario.attacker,
        scenario.defender,
        scenario.environment,
        runs=args.runs,
        base_seed=args.seed,
        config_overrides=scenario.config_overrides,
    )
    return store.dump(summary)


COMMANDS = {
    "battle": run_battle,
    "siege": run_siege,
    "balance": run_balance,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = JsonScenarioStore(indent=get_settings().json_indent)

    try:
        payload = COMMANDS[args.command](store, args)
    except ValidationError as exc:
        print(f"invalid scenario {args.scenario}:\n{exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except OSError as exc:
        logger.error("cannot read scenario %s: %s", args.scenario, exc)
        return 1

    sys.stdout.write(payload.decode("utf-8") + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
