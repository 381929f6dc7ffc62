"""
studio_core.allocation
Integer effort allocation across the four lanes (feature/refactor/marketing/qa).
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Tuple, Union

from .state import Allocations, floor_int

LANES = ("feature", "refactor", "marketing", "qa")

AllocationLike = Union[Allocations, Mapping[str, Any]]


def _lane(alloc: AllocationLike, lane: str) -> float:
    if isinstance(alloc, Allocations):
        value = getattr(alloc, lane)
    else:
        value = alloc.get(lane, 0)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def sum_allocations(alloc: AllocationLike) -> int:
    return sum(floor_int(_lane(alloc, lane)) for lane in LANES)


def normalize_integer_allocations(alloc: AllocationLike, limit: float) -> Allocations:
    """Fit requested lanes into an integer capacity limit.

    - Each lane is floored and clamped to >= 0.
    - If the request fits, it passes through unchanged.
    - Otherwise lanes are scaled by limit/total, floored, and the leftover
      units go one each to the largest fractional remainders (ties keep lane
      order), so an over-request always uses the whole limit.
    """
    safe_limit = max(0, floor_int(limit))
    safe: Dict[str, int] = {lane: max(0, floor_int(_lane(alloc, lane))) for lane in LANES}

    if safe_limit == 0:
        return Allocations()

    total = sum(safe.values())
    if total <= safe_limit:
        return Allocations(**safe)

    ratio = safe_limit / total
    scaled: Dict[str, int] = {}
    remainders: List[Tuple[str, float]] = []
    used = 0
    for lane in LANES:
        raw = safe[lane] * ratio
        floored = math.floor(raw)
        scaled[lane] = floored
        used += floored
        remainders.append((lane, raw - floored))

    remainders.sort(key=lambda item: item[1], reverse=True)

    idx = 0
    while used < safe_limit and idx < len(remainders):
        scaled[remainders[idx][0]] += 1
        used += 1
        idx += 1

    return Allocations(**scaled)
