"""Tests for the command line entrypoint."""

from __future__ import annotations

import json

import pytest

from bastion.main import main

STACK = {
    "unit_id": "legionnaire",
    "role": "inf",
    "count": 60,
    "attack": 40,
    "def_inf": 35,
    "def_cav": 50,
}


@pytest.fixture()
def battle_file(tmp_path):
    path = tmp_path / "battle.json"
    path.write_text(
        json.dumps(
            {
                "attacker": {"stacks": [STACK]},
                "defender": {"stacks": [dict(STACK, count=40)]},
                "environment": {"seed": "cli"},
            }
        )
    )
    return path


def test_battle_command_prints_report(battle_file, capsys):
    assert main(["battle", str(battle_file)]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["outcome"] in {"attacker_victory", "defender_victory", "mutual_destruction"}
    assert report["attacker"]["total_initial"] == 60


def test_seed_flag_overrides_scenario(battle_file, capsys):
    main(["battle", str(battle_file), "--seed", "other"])
    first = json.loads(capsys.readouterr().out)
    main(["battle", str(battle_file), "--seed", "other"])
    second = json.loads(capsys.readouterr().out)
    assert first == second


def test_balance_command(battle_file, capsys):
    assert main(["balance", str(battle_file), "--runs", "5", "--seed", "cli-bal"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["runs"] == 5
    assert summary["base_seed"] == "cli-bal"


def test_siege_command_uses_rally_point(tmp_path, capsys):
    path = tmp_path / "siege.json"
    path.write_text(
        json.dumps(
            {
                "request": {
                    "catapults": 40,
                    "selections": ["warehouse", "granary"],
                    "snapshot": {
                        "village_id": "v1",
                        "buildings": [
                            {"id": "b1", "type": "WAREHOUSE", "level": 10},
                            {"id": "b2", "type": "GRANARY", "level": 10},
                        ],
                    },
                    "seed": "cli",
                },
                "rally_point_level": 20,
            }
        )
    )
    assert main(["siege", str(path)]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["mode"] == "dual"
    assert [target["allocated_shots"] for target in result["targets"]] == [20, 20]


def test_invalid_scenario_exits_with_status_2(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"attacker": {}}))
    assert main(["battle", str(path)]) == 2
    assert "invalid scenario" in capsys.readouterr().err


def test_unknown_override_key_exits_with_status_2(tmp_path, capsys):
    path = tmp_path / "typo.json"
    path.write_text(
        json.dumps(
            {
                "attacker": {"stacks": [STACK]},
                "defender": {"stacks": [STACK]},
                "config_overrides": {"roundz": {}},
            }
        )
    )
    assert main(["battle", str(path)]) == 2
    assert "unknown configuration key: roundz" in capsys.readouterr().err


def test_missing_file_exits_with_status_1(tmp_path):
    assert main(["battle", str(tmp_path / "missing.json")]) == 1
