from __future__ import annotations

from dataclasses import replace

import pytest

from core.rng import SequenceRandom
from core.state import default_start_state

# 2023-11-14T22:13:20Z; leaves ~1h45m before the UTC day rolls over
T0 = 1_700_000_000_000
# one tap per second keeps the rolling taps-per-second counter at 1
STEP = 1000


@pytest.fixture
def t0() -> int:
    return T0


@pytest.fixture
def fresh():
    return default_start_state(T0)


@pytest.fixture
def make_state():
    def _make(**overrides):
        return replace(default_start_state(T0), **overrides)

    return _make


@pytest.fixture
def no_slip():
    """Never slips: every draw is above the 4% ceiling."""
    return SequenceRandom(fill=0.99)
