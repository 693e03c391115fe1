"""
core.meter
Rug Meter model: pure functions of taps accumulated inside the current stage.

Every 25 taps in a stage add one percentage point of slip risk (capped at 4%).
"""

from __future__ import annotations

from dataclasses import replace

from .rules import (
    RUG_METER_BASE_CHANCE,
    RUG_METER_CHANCE_STEP,
    RUG_METER_INCREASE_INTERVAL,
    RUG_METER_MAX_CHANCE,
    RUG_METER_MAX_PROGRESS,
    STAGE_FORMULA,
)
from .state import GameState


def meter_progress(rug_meter: int) -> float:
    """Position inside the current 25-tap sub-interval, 0..100."""
    pos = (int(rug_meter) % RUG_METER_INCREASE_INTERVAL) / RUG_METER_INCREASE_INTERVAL * 100.0
    return min(RUG_METER_MAX_PROGRESS, pos)


def slip_chance_for(rug_meter: int) -> float:
    steps = int(rug_meter) // RUG_METER_INCREASE_INTERVAL
    # round away float noise (0.01 + 2*0.01 != 0.03 exactly)
    return min(RUG_METER_MAX_CHANCE, round(RUG_METER_BASE_CHANCE + steps * RUG_METER_CHANCE_STEP, 6))


def refresh_meter(state: GameState) -> GameState:
    """Recompute the derived meter fields from state.rug_meter."""
    return replace(
        state,
        rug_meter_progress=meter_progress(state.rug_meter),
        slip_chance=slip_chance_for(state.rug_meter),
    )


def reset_risk(state: GameState) -> GameState:
    return replace(state, rug_meter_progress=0.0, slip_chance=RUG_METER_BASE_CHANCE)


def taps_to_next_stage(state: GameState) -> int:
    return max(0, STAGE_FORMULA(state.current_stage) - state.rug_meter)


def stage_progress_pct(state: GameState) -> float:
    need = STAGE_FORMULA(state.current_stage)
    return min(100.0, state.rug_meter / need * 100.0) if need else 0.0


# -------------------------
# Display strategies (UI only, intentionally separate)
# -------------------------


def meter_zone(progress: float) -> str:
    """Band over rug_meter_progress."""
    if progress <= 50:
        return "safe"
    if progress <= 75:
        return "warning"
    return "danger"


def slip_chance_band(slip_chance: float) -> str:
    """Color band over slip_chance."""
    pct = round(slip_chance * 100.0, 6)
    if pct <= 1.0:
        return "green"
    if pct <= 3.0:
        return "yellow"
    return "red"
