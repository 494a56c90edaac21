"""Utility functions for the Bastion combat engines."""

from bastion.utils.rng import (
    Mulberry32,
    RandomSource,
    Xorshift128Plus,
    derive_seed,
    fnv1a64,
    normalize_seed,
    siege_stream,
    splitmix64,
    uniform_index,
)

__all__ = [
    "Mulberry32",
    "RandomSource",
    "Xorshift128Plus",
    "derive_seed",
    "fnv1a64",
    "normalize_seed",
    "siege_stream",
    "splitmix64",
    "uniform_index",
]
