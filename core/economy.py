"""
core.economy
APE currency ledger: reward formulas, daily cap, login bonus and spends.

Credits either go through the daily cap (stage, milestone, daily goals) or
bypass it (slip comfort payments, login, referrals, shares). The balance
never goes negative.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from .meter import reset_risk
from .rules import (
    CONSECUTIVE_SLIP_BONUS_MAX,
    CONSECUTIVE_SLIP_BONUS_STEP,
    DAILY_CAP,
    DAILY_GOALS,
    DAILY_LOGIN,
    DAILY_LOGIN_MAX,
    INSURANCE_COST,
    INSURANCE_TAPS,
    MILESTONE_REWARDS,
    RESET_RUG_METER_COST,
    RUG_METER_BASE_CHANCE,
    SLIP_COMPENSATION_BASE,
    SLIP_COMPENSATION_PER_STAGE,
    STAGE_REWARD_BASE,
    STAGE_REWARD_EVERY,
    STAGE_REWARD_STEP,
)
from .state import GameState, day_key


class SpendRejected(Exception):
    """A spend whose precondition failed. State must stay untouched."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


# -------------------------
# Formulas
# -------------------------


def stage_reward(stage: int) -> int:
    """Reward for completing `stage`."""
    return STAGE_REWARD_BASE + (int(stage) // STAGE_REWARD_EVERY) * STAGE_REWARD_STEP


def milestone_reward(new_stage: int) -> int:
    return MILESTONE_REWARDS.get(int(new_stage), 0)


def slip_compensation(stages_dropped: int) -> int:
    return SLIP_COMPENSATION_BASE + SLIP_COMPENSATION_PER_STAGE * int(stages_dropped)


def consecutive_slip_bonus(consecutive_slips: int) -> int:
    return min(int(consecutive_slips) * CONSECUTIVE_SLIP_BONUS_STEP, CONSECUTIVE_SLIP_BONUS_MAX)


def daily_goal_reward(prev_taps: int, new_taps: int) -> int:
    """Max goal reward if the daily counter crossed a goal threshold, else 0."""
    crossed = [goal for goal in DAILY_GOALS if prev_taps < goal <= new_taps]
    if not crossed:
        return 0
    return max(reward for goal, reward in DAILY_GOALS.items() if new_taps >= goal)


# -------------------------
# Ledger operations (pure)
# -------------------------


def credit(state: GameState, amount: int) -> GameState:
    """Uncapped credit."""
    if amount <= 0:
        return state
    return replace(state, ape_balance=state.ape_balance + int(amount))


def credit_capped(state: GameState, amount: int) -> Tuple[GameState, bool]:
    """Credit under the daily cap: all or nothing. Returns (state, applied)."""
    if amount <= 0:
        return state, False
    if state.daily_ape_earned + amount > DAILY_CAP:
        return state, False
    return (
        replace(
            state,
            ape_balance=state.ape_balance + int(amount),
            daily_ape_earned=state.daily_ape_earned + int(amount),
        ),
        True,
    )


def debit(state: GameState, amount: int) -> GameState:
    return replace(state, ape_balance=max(0, state.ape_balance - int(amount)))


def login_reward() -> int:
    return min(DAILY_LOGIN, DAILY_LOGIN_MAX)


def apply_daily_login(state: GameState, now: int) -> Tuple[GameState, int]:
    """Roll daily counters when the calendar day changed. Returns (state, reward)."""
    today = day_key(now)
    if state.last_login_date == today:
        return state, 0
    reward = login_reward()
    s = replace(state, last_login_date=today, daily_ape_earned=0, daily_taps=0)
    return credit(s, reward), reward


def buy_insurance(state: GameState) -> GameState:
    if state.insurance_active:
        raise SpendRejected("already_active", "Insurance already active! 🛡️")
    if state.ape_balance < INSURANCE_COST:
        raise SpendRejected("insufficient_balance", f"Not enough APE! Need {INSURANCE_COST} APE for insurance! 💰")
    s = debit(state, INSURANCE_COST)
    return replace(s, insurance_active=True, insurance_taps_left=INSURANCE_TAPS)


def reset_rug_meter(state: GameState) -> GameState:
    """Buy back risk: only slip chance and meter progress reset, stage progress stays."""
    if state.slip_chance <= RUG_METER_BASE_CHANCE:
        raise SpendRejected("already_minimum", "Rug meter already at minimum risk! ✅")
    if state.ape_balance < RESET_RUG_METER_COST:
        raise SpendRejected(
            "insufficient_balance", f"Not enough APE! Need {RESET_RUG_METER_COST} APE to reset risk! 💰"
        )
    return reset_risk(debit(state, RESET_RUG_METER_COST))


def consume_insurance_tap(state: GameState) -> GameState:
    if not state.insurance_active or state.insurance_taps_left <= 0:
        return state
    left = state.insurance_taps_left - 1
    if left == 0:
        return replace(state, insurance_active=False, insurance_taps_left=0)
    return replace(state, insurance_taps_left=left)
