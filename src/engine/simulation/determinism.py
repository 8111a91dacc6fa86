"""Determinism helpers.

Every probabilistic decision in the simulation (scenario rolls, weighted
choice sampling, detour delays, disaster gates) takes a ``random.Random``
instance as an argument.  Nothing reads the module-level ``random``
generator, so a seeded instance replays a session exactly.

Non-goals:
- Cryptographic security
- Cross-language reproducibility (this is Python's Mersenne Twister)
"""

from __future__ import annotations

import random
import zlib
from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")


def make_rng(seed: Optional[int] = None) -> random.Random:
    """Return a fresh generator; unseeded when *seed* is None."""
    if seed is None:
        return random.Random()
    return random.Random(int(seed) & 0xFFFFFFFF)


def derive_rng(seed: int, tag: str) -> random.Random:
    """Independent stream derived from *seed* and a stable *tag*.

    Uses crc32 rather than ``hash()``, which is salted per process.
    """
    crc = zlib.crc32(tag.encode("utf-8")) & 0xFFFFFFFF
    return random.Random((int(seed) ^ crc) & 0xFFFFFFFF)


def chance(rng: random.Random, probability: float) -> bool:
    """True with the given probability."""
    if probability <= 0.0:
        return False
    if probability >= 1.0:
        return True
    return rng.random() < probability


def weighted_pick(
    items: Sequence[T],
    rng: random.Random,
    weight: Callable[[T], float],
) -> Optional[T]:
    """Pick one item with P(i) = weight(i) / sum(weights).

    Items with non-positive weight are never picked.  Returns None when
    nothing is pickable.
    """
    pool = [(item, float(weight(item))) for item in items]
    pool = [(item, w) for item, w in pool if w > 0]
    if not pool:
        return None
    total = sum(w for _, w in pool)
    roll = rng.random() * total
    acc = 0.0
    for item, w in pool:
        acc += w
        if roll < acc:
            return item
    return pool[-1][0]


def weighted_order(
    items: Sequence[T],
    rng: random.Random,
    weight: Callable[[T], float],
) -> list[T]:
    """Weighted sampling without replacement over the whole sequence."""
    remaining = list(items)
    ordered: list[T] = []
    while remaining:
        pick = weighted_pick(remaining, rng, weight)
        if pick is None:
            break
        ordered.append(pick)
        remaining.remove(pick)
    return ordered
