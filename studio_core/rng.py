"""
studio_core.rng
Deterministic RNG helpers that do NOT rely on Python's built-in hash() or random.

Goal:
- Same seed => same draw sequence bit-for-bit, so a saved run resumes identically.
- The whole generator state is one unsigned 32-bit integer (stored in meta.rng_state).
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any, Callable, Optional, Sequence, TypeVar

T = TypeVar("T")

# Zero is a fixed point of xorshift; remap it to the golden-ratio constant.
ZERO_SEED_REPLACEMENT = 0x9E3779B9
UINT32_MASK = 0xFFFFFFFF
UINT32_RANGE = 0x1_0000_0000


def normalize_seed(seed: Any) -> int:
    """Map any numeric seed onto a non-zero unsigned 32-bit integer."""
    try:
        value = float(seed)
    except (TypeError, ValueError, OverflowError):
        return ZERO_SEED_REPLACEMENT
    if not math.isfinite(value):
        return ZERO_SEED_REPLACEMENT
    normalized = abs(math.floor(value)) & UINT32_MASK
    return ZERO_SEED_REPLACEMENT if normalized == 0 else normalized


def xorshift32(state: int) -> int:
    x = state & UINT32_MASK
    x ^= (x << 13) & UINT32_MASK
    x ^= x >> 17
    x ^= (x << 5) & UINT32_MASK
    x &= UINT32_MASK
    return ZERO_SEED_REPLACEMENT if x == 0 else x


def stable_int_seed(*parts: Any, salt: str = "entropy-studio") -> int:
    """Return a stable 32-bit integer seed derived from arbitrary inputs.

    Uses SHA-256 over a canonical JSON representation of `parts`.
    This avoids Python's randomized hash() and is stable across processes/platforms.

    Notes:
    - `default=str` ensures non-JSON types still serialize deterministically enough for our usage.
    - Output is normalized, so it is never 0.
    """
    payload = json.dumps(parts, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    h = hashlib.sha256((salt + "|" + payload).encode("utf-8")).digest()
    return normalize_seed(int.from_bytes(h[:4], "big", signed=False))


class XorShiftRng:
    """32-bit xorshift stream.

    Every draw advances the state exactly once, including the weighted pick,
    so the number of draws per week is part of the save-compatibility contract.
    """

    def __init__(self, initial_state: Any) -> None:
        self._state = normalize_seed(initial_state)

    def next_uint(self) -> int:
        self._state = xorshift32(self._state)
        return self._state

    def next_float(self) -> float:
        return self.next_uint() / UINT32_RANGE

    def next_int(self, a: int, b: int) -> int:
        lower, upper = min(a, b), max(a, b)
        span = upper - lower + 1
        return lower + math.floor(self.next_float() * span)

    def pick_weighted(self, items: Sequence[T], get_weight: Callable[[T], float]) -> Optional[T]:
        total = sum(max(0.0, float(get_weight(item))) for item in items)
        if total <= 0:
            return items[0] if items else None

        roll = self.next_float() * total
        for item in items:
            roll -= max(0.0, float(get_weight(item)))
            if roll <= 0:
                return item

        # float residue: the last item wins
        return items[-1] if items else None

    def get_state(self) -> int:
        return self._state & UINT32_MASK


def rng_from_state(rng_state: Any) -> XorShiftRng:
    """Create a generator resuming from a persisted meta.rng_state."""
    return XorShiftRng(rng_state)
