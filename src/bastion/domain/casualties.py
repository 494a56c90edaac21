"""Integer casualty allocation across unit stacks."""

from __future__ import annotations

import math
from collections.abc import Sequence

from bastion.utils.rng import RandomSource

from .enums import RoundingMode


def round_units(value: float, mode: RoundingMode = RoundingMode.BANKERS) -> int:
    """Round a fractional unit total to an integer."""

    if mode == RoundingMode.HALF_UP:
        return math.floor(value + 0.5)
    return round(value)


def allocate_casualties(
    counts: Sequence[int],
    rate: float,
    rng: RandomSource,
    *,
    rounding: RoundingMode = RoundingMode.BANKERS,
) -> tuple[int, ...]:
    """Split ``round(total * rate)`` casualties across stacks.

    Each stack first takes the floor of its proportional share; the units left
    over go to the stacks with the largest fractional remainders, with one
    draw per living stack breaking ties.  The result never exceeds a stack's
    count and always sums to the rounded target.
    """

    populations = [max(0, int(count)) for count in counts]
    total = sum(populations)
    if total == 0 or rate <= 0:
        return tuple(0 for _ in populations)

    target = min(total, max(0, round_units(total * min(rate, 1.0), rounding)))
    if target == total:
        return tuple(populations)

    shares = [target * population / total for population in populations]
    allocated = [
        min(population, math.floor(share)) for population, share in zip(populations, shares)
    ]
    remainder = target - sum(allocated)
    if remainder <= 0:
        return tuple(allocated)

    living = [index for index, population in enumerate(populations) if population > 0]
    tie_breaks = {index: rng.random() for index in living}
    order = sorted(living, key=lambda i: (-(shares[i] - allocated[i]), tie_breaks[i]))
    while remainder > 0:
        for index in order:
            if remainder == 0:
                break
            if allocated[index] < populations[index]:
                allocated[index] += 1
                remainder -= 1
    return tuple(allocated)
