"""
core.selfcheck
Minimal "it runs" proof for the core rules (no engine, no storage).

Run:
  python -m core.selfcheck
"""

from __future__ import annotations

from dataclasses import asdict, replace

from .economy import credit_capped, daily_goal_reward, stage_reward
from .meter import refresh_meter, reset_risk
from .rng import rng_from
from .rules import DAILY_CAP, STAGE_FORMULA
from .setback import apply_slip
from .state import check_invariants, default_start_state

START_MS = 1_700_000_000_000


def run_tap_smoke(taps: int = 3000, base_seed: int = 42) -> None:
    state = default_start_state(START_MS)
    rng = rng_from("selfcheck", taps, base_seed=base_seed)

    for _ in range(taps):
        if rng.random() < state.slip_chance:
            state, _ = apply_slip(state, rng.random())
        else:
            total = state.total_taps + 1
            state = refresh_meter(
                replace(
                    state,
                    total_taps=total,
                    rug_meter=state.rug_meter + 1,
                    high_score=max(state.high_score, total),
                    daily_taps=state.daily_taps + 1,
                )
            )
            goal = daily_goal_reward(state.daily_taps - 1, state.daily_taps)
            if goal:
                state, _ = credit_capped(state, goal)
            if state.rug_meter >= STAGE_FORMULA(state.current_stage):
                completed = state.current_stage
                state = reset_risk(replace(state, current_stage=completed + 1, rug_meter=0, consecutive_slips=0))
                state, _ = credit_capped(state, stage_reward(completed))

        # invariants
        check_invariants(state)
        assert state.daily_ape_earned <= DAILY_CAP

    print(f"OK: {taps}-tap core smoke test passed.")
    print("Final state:", {k: v for k, v in asdict(state).items() if k in {"current_stage", "total_taps", "rug_count", "ape_balance"}})


if __name__ == "__main__":
    run_tap_smoke()
