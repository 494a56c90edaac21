"""Pure rule layer for Bastion.

Everything here is deterministic and free of I/O:

* Input dataclasses and enumerations (see :mod:`models`, :mod:`enums`).
* Rule configuration trees and override merging (see :mod:`rules_config`).
* The battle resolver with its morale and casualty collaborators.
* The catapult damage engine and its selector decoding.
* A balance harness replaying battles over many seeds.
"""

from . import (
    balance,
    battle,
    casualties,
    enums,
    models,
    morale,
    rules_config,
    selectors,
    siege,
)

__all__ = [
    "balance",
    "battle",
    "casualties",
    "enums",
    "models",
    "morale",
    "rules_config",
    "selectors",
    "siege",
]
