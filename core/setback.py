"""
core.setback
Slip resolution: partial setback, meter decay and comfort payments.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .economy import credit, slip_compensation, consecutive_slip_bonus
from .meter import reset_risk
from .rules import (
    RUG_METER_DECAY,
    SETBACK_GENTLE_AFTER_SLIPS,
    SETBACK_TIERS,
    SETBACK_TOP_TIER,
    TRAGIC_HERO_STREAK,
)
from .state import GameState


@dataclass(frozen=True)
class SlipResult:
    stages_dropped: int
    compensation: int
    consecutive_bonus: int
    tragic_hero: bool


def partial_setback(stage: int, session_slips: int, draw: float) -> int:
    """Stages lost on a slip.

    `session_slips` is the count BEFORE this slip; from the 3rd slip of a
    session on the drop is always 1. `draw` is a uniform value in [0, 1).
    """
    if session_slips >= SETBACK_GENTLE_AFTER_SLIPS:
        return 1
    low, high = SETBACK_TOP_TIER
    for max_stage, lo, hi in SETBACK_TIERS:
        if stage <= max_stage:
            low, high = lo, hi
            break
    if low == high:
        return low
    span = high - low + 1
    pick = min(span - 1, int(math.floor(float(draw) * span)))
    return low + pick


def decayed_meter(rug_meter: int) -> int:
    return max(0, int(rug_meter) - int(math.floor(int(rug_meter) * RUG_METER_DECAY)))


def apply_slip(state: GameState, draw: float) -> tuple[GameState, SlipResult]:
    """Apply a slip (pure). Returns (new_state, details)."""
    drop = partial_setback(state.current_stage, state.session_slips, draw)
    new_stage = max(1, state.current_stage - drop)
    streak = state.consecutive_slips + 1

    comp = slip_compensation(drop)
    bonus = consecutive_slip_bonus(streak)
    tragic = streak >= TRAGIC_HERO_STREAK and new_stage <= state.current_stage

    s = replace(
        state,
        current_stage=new_stage,
        rug_meter=decayed_meter(state.rug_meter),
        rug_count=state.rug_count + 1,
        session_slips=state.session_slips + 1,
        consecutive_slips=streak,
        tragic_hero_badges=state.tragic_hero_badges + (1 if tragic else 0),
    )
    s = reset_risk(s)
    # comfort payments bypass the daily cap
    s = credit(s, comp + bonus)
    return s, SlipResult(stages_dropped=drop, compensation=comp, consecutive_bonus=bonus, tragic_hero=tragic)
