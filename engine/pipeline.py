"""engine.pipeline

Core tap flow (headless).

Responsibilities:
- Anti-cheat gate (before any state change)
- Slip roll -> setback path, or progress path (revenge multiplier, stage-up, rewards)
- reduce(): the single entry point that applies any command to a GameState

Every function here is pure: it returns a new state and never mutates its
input, so a transition that raises leaves the caller's state untouched.
This layer is UI-agnostic.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from core import revenge
from core import session as activity
from core.economy import (
    SpendRejected,
    apply_daily_login,
    buy_insurance,
    consume_insurance_tap,
    credit,
    credit_capped,
    daily_goal_reward,
    milestone_reward,
    reset_rug_meter,
    stage_reward,
)
from core.meter import refresh_meter, reset_risk
from core.rng import RandomSource
from core.rules import (
    DAILY_CAP,
    MAX_TAPS_PER_SECOND,
    MIN_TAP_INTERVAL,
    STAGE_FORMULA,
    SUSPICIOUS_TAP_RATE,
    TAP_WINDOW_MS,
)
from core.setback import apply_slip
from core.shares import ShareRejected, record_verified_share
from core.state import GameState, state_from_mapping, state_to_dict

from . import messages
from .commands import (
    ACCEPTED,
    PROGRESS,
    RATE_LIMITED,
    REJECTED,
    SLIP,
    STAGE_UP,
    ActivateRevengeMode,
    BuyInsurance,
    CreditApe,
    DailyLogin,
    DeactivateRevengeMode,
    ExpireRevengeMode,
    MarkSynced,
    MergeFields,
    Notice,
    Outcome,
    PauseSession,
    ResetRugMeter,
    ResetSession,
    ResetSessionTime,
    ResumeSession,
    SetOffline,
    Tap,
    TickActivity,
    VerifyShare,
)

logger = logging.getLogger(__name__)


def _summary(state: GameState) -> Dict[str, Any]:
    return {
        "stage": state.current_stage,
        "total_taps": state.total_taps,
        "rug_meter": state.rug_meter,
        "slip_chance": state.slip_chance,
        "ape_balance": state.ape_balance,
    }


def tap_rate(state: GameState, now: int) -> Tuple[int, int]:
    """Return (ms since last tap, rolling taps-per-second if this tap is accepted)."""
    gap = int(now) - state.last_tap_time
    tps = state.tap_count + 1 if gap < TAP_WINDOW_MS else 1
    return gap, tps


def _tap_increment(state: GameState) -> Tuple[GameState, int]:
    """One unit of tap progress. Returns (state, daily goal APE actually paid)."""
    prev_daily = state.daily_taps
    total = state.total_taps + 1
    s = replace(
        state,
        total_taps=total,
        rug_meter=state.rug_meter + 1,
        high_score=max(state.high_score, total),
        session_taps=state.session_taps + 1,
        daily_taps=state.daily_taps + 1,
    )
    s = refresh_meter(s)

    paid = 0
    goal = daily_goal_reward(prev_daily, s.daily_taps)
    if goal:
        s, applied = credit_capped(s, goal)
        paid = goal if applied else 0

    return consume_insurance_tap(s), paid


def _stage_up(state: GameState, completed: int) -> Tuple[GameState, int, bool]:
    new_stage = completed + 1
    s = replace(state, current_stage=new_stage, rug_meter=0, consecutive_slips=0)
    s = reset_risk(s)
    reward = stage_reward(completed) + milestone_reward(new_stage)
    s, paid = credit_capped(s, reward)
    return s, reward, paid


def process_tap(state: GameState, *, now: int, rng: RandomSource) -> Tuple[GameState, Outcome]:
    """Resolve one tap: gate -> (slip | progress).

    At most one stage-up happens per call, even when the revenge multiplier
    applies two units of progress.
    """
    now = int(now)
    gap, tps = tap_rate(state, now)

    if gap < MIN_TAP_INTERVAL:
        return state, Outcome(
            kind=RATE_LIMITED,
            notices=(Notice("anti-cheat", messages.RATE_LIMITED),),
            log={"event": "rate_limited", "now": now, "gap_ms": gap},
        )
    if tps > SUSPICIOUS_TAP_RATE:
        logger.warning("Suspicious tap rate detected: %s taps/s", tps)
    if tps > MAX_TAPS_PER_SECOND:
        return state, Outcome(
            kind=RATE_LIMITED,
            notices=(Notice("anti-cheat", messages.RATE_LIMITED),),
            log={"event": "rate_limited", "now": now, "taps_per_second": tps},
        )

    before = _summary(state)
    notices: List[Notice] = []

    s = replace(state, last_tap_time=now, tap_count=tps)
    s, login = apply_daily_login(s, now)
    if login:
        notices.append(Notice("info", messages.login_message(login)))
    s = revenge.expire_if_due(s, now)

    # 1) slip roll
    if rng.random() < s.slip_chance:
        s, slip = apply_slip(s, rng.random())
        notices.append(Notice("slip", messages.slip_message(s.rug_count)))
        notices.append(Notice("info", messages.setback_message(slip.stages_dropped, slip.compensation + slip.consecutive_bonus)))
        if slip.tragic_hero:
            notices.append(Notice("info", messages.tragic_hero_message()))
        return s, Outcome(
            kind=SLIP,
            notices=tuple(notices),
            log={
                "event": "slip",
                "now": now,
                "before": before,
                "after": _summary(s),
                "stages_dropped": slip.stages_dropped,
                "compensation": slip.compensation,
                "consecutive_bonus": slip.consecutive_bonus,
                "tragic_hero": slip.tragic_hero,
            },
        )

    # 2) progress
    multiplier = revenge.tap_multiplier(s)
    completed = s.current_stage
    should_stage_up = s.rug_meter + multiplier >= STAGE_FORMULA(completed)
    insured = s.insurance_active

    goal_paid = 0
    for _ in range(multiplier):
        s, paid = _tap_increment(s)
        goal_paid += paid
    if goal_paid:
        notices.append(Notice("info", messages.reward_message(goal_paid)))
    if insured and not s.insurance_active:
        notices.append(Notice("info", messages.INSURANCE_EXPIRED))

    log: Dict[str, Any] = {
        "event": "tap",
        "now": now,
        "before": before,
        "multiplier": multiplier,
        "daily_goal_paid": goal_paid,
    }
    if not should_stage_up:
        log["after"] = _summary(s)
        return s, Outcome(kind=PROGRESS, notices=tuple(notices), log=log)

    s, reward, paid = _stage_up(s, completed)
    notices.append(Notice("stage-up", messages.stage_up_message(s.current_stage)))
    if paid:
        notices.append(Notice("info", messages.reward_message(reward)))
    else:
        notices.append(Notice("info", messages.daily_cap_message(DAILY_CAP)))
    log.update(
        {
            "event": "stage_up",
            "after": _summary(s),
            "stage_reached": s.current_stage,
            "stage_reward": reward,
            "stage_reward_paid": paid,
        }
    )
    return s, Outcome(kind=STAGE_UP, notices=tuple(notices), log=log)


def _accepted(event: str, *notices: Notice, **extra: Any) -> Outcome:
    log: Dict[str, Any] = {"event": event}
    log.update(extra)
    return Outcome(kind=ACCEPTED, notices=tuple(notices), log=log)


def _rejected(event: str, reason: str, message: str) -> Outcome:
    return Outcome(
        kind=REJECTED,
        notices=(Notice("info", message),),
        log={"event": event, "reason": reason},
    )


def reduce(state: GameState, command: Any, rng: Optional[RandomSource] = None) -> Tuple[GameState, Outcome]:
    """Apply one command. Returns (new_state, outcome).

    Rejected commands return the input state object unchanged.
    """
    if isinstance(command, Tap):
        if rng is None:
            raise ValueError("Tap requires a random source")
        return process_tap(state, now=command.now, rng=rng)

    if isinstance(command, BuyInsurance):
        try:
            return buy_insurance(state), _accepted("buy_insurance", Notice("info", messages.INSURANCE_ON))
        except SpendRejected as e:
            return state, _rejected("buy_insurance", e.reason, e.message)

    if isinstance(command, ResetRugMeter):
        try:
            return reset_rug_meter(state), _accepted("reset_rug_meter", Notice("info", messages.METER_RESET))
        except SpendRejected as e:
            return state, _rejected("reset_rug_meter", e.reason, e.message)

    if isinstance(command, DailyLogin):
        s, reward = apply_daily_login(state, command.now)
        if not reward:
            return state, _accepted("daily_login", reward=0)
        return s, _accepted("daily_login", Notice("info", messages.login_message(reward)), reward=reward)

    if isinstance(command, PauseSession):
        return activity.pause(state, command.now), _accepted("pause_session")

    if isinstance(command, ResumeSession):
        return activity.resume(state, command.now), _accepted("resume_session")

    if isinstance(command, TickActivity):
        return activity.tick(state, command.now), _accepted("tick_activity")

    if isinstance(command, ResetSessionTime):
        s = activity.reset_session_time(state, command.now)
        return s, _accepted("reset_session_time", Notice("info", messages.SESSION_RESET))

    if isinstance(command, ResetSession):
        return activity.reset_session(state, command.now), _accepted("reset_session")

    if isinstance(command, ActivateRevengeMode):
        s = revenge.activate(state, command.now)
        return s, _accepted("activate_revenge", Notice("stage-up", messages.REVENGE_ON), until=s.revenge_mode_end_time)

    if isinstance(command, ExpireRevengeMode):
        s = revenge.expire_if_due(state, command.now)
        notices = (Notice("info", messages.REVENGE_OFF),) if s is not state else ()
        return s, _accepted("expire_revenge", *notices)

    if isinstance(command, DeactivateRevengeMode):
        s = revenge.deactivate(state)
        notices = (Notice("info", messages.REVENGE_OFF),) if s is not state else ()
        return s, _accepted("deactivate_revenge", *notices)

    if isinstance(command, VerifyShare):
        try:
            s, res = record_verified_share(
                state,
                platform=command.platform,
                url=command.url,
                now=command.now,
                share_type=command.share_type,
            )
        except ShareRejected as e:
            return state, _rejected("verify_share", e.reason, e.message)
        notices = [Notice("info", messages.reward_message(res.reward))]
        if res.share_type == "slip":
            s = revenge.activate(s, command.now)
            notices.append(Notice("stage-up", messages.REVENGE_ON))
        return s, _accepted(
            "verify_share",
            *notices,
            platform=res.platform,
            share_type=res.share_type,
            reward=res.reward,
            revenge=s.revenge_mode_active,
        )

    if isinstance(command, CreditApe):
        return credit(state, command.amount), _accepted(
            "credit", Notice("info", messages.reward_message(command.amount)), amount=command.amount, reason=command.reason
        )

    if isinstance(command, MergeFields):
        merged = state_to_dict(state)
        merged.update(dict(command.fields))
        return state_from_mapping(merged), _accepted("merge_fields", keys=sorted(command.fields))

    if isinstance(command, SetOffline):
        if state.is_offline == bool(command.offline):
            return state, _accepted("set_offline", offline=state.is_offline)
        return replace(state, is_offline=bool(command.offline)), _accepted("set_offline", offline=bool(command.offline))

    if isinstance(command, MarkSynced):
        return replace(state, last_sync_time=int(command.now)), _accepted("mark_synced")

    raise ValueError(f"Unknown command: {command!r}")
