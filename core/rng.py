"""
core.rng
Random sources for the tap engine.

Goal:
- Production taps draw from random.Random (optionally seeded).
- Tests/sims inject SequenceRandom to script exact slip/setback draws.
- Cosmetic picks (slip message text) use rng_from() so they never consume
  gameplay draws.
"""

from __future__ import annotations

import hashlib
import json
import random
from typing import Any, Iterable, List, Optional, Protocol


class RandomSource(Protocol):
    def random(self) -> float: ...


def stable_int_seed(*parts: Any, salt: str = "ape-escape") -> int:
    """Return a stable 32-bit integer seed derived from arbitrary inputs.

    SHA-256 over canonical JSON, so it does not depend on Python's randomized hash().
    """
    payload = json.dumps(parts, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    h = hashlib.sha256((salt + "|" + payload).encode("utf-8")).digest()
    return int.from_bytes(h[:4], "big", signed=False)


def rng_from(*parts: Any, base_seed: int) -> random.Random:
    """Create a Random instance from (base_seed + parts)."""
    return random.Random(stable_int_seed(base_seed, *parts))


def make_rng(seed: Optional[int] = None) -> random.Random:
    return random.Random(seed) if seed is not None else random.Random()


class SequenceRandom:
    """Scripted random source: returns `values` in order, then `fill` forever.

    Without a fill value an exhausted sequence raises IndexError, which makes
    a test fail loudly when the engine draws more often than expected.
    """

    def __init__(self, values: Iterable[float] = (), fill: Optional[float] = None) -> None:
        self._values: List[float] = [float(v) for v in values]
        self._fill = fill
        self.draws = 0

    def random(self) -> float:
        self.draws += 1
        if self._values:
            return self._values.pop(0)
        if self._fill is None:
            raise IndexError("SequenceRandom exhausted")
        return float(self._fill)
