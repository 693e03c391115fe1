"""
core.session
Active-time accounting. Hidden/offline intervals never count as play time.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List

from .rules import WELLNESS_THRESHOLDS_MIN
from .state import GameState

MINUTE_MS = 60_000

WELLNESS_MESSAGES = {
    30: "⏰ 30 minutes played! Consider taking a short break! 🧘",
    45: "⚠️ 45 minutes played! Time for a longer break! 🚶",
    60: "🛑 1 hour played! Please take a mandatory break! Your health matters! 💚",
}


def _fold(state: GameState, now: int) -> int:
    return state.session_active_time + max(0, int(now) - state.last_activity_time)


def pause(state: GameState, now: int) -> GameState:
    if not state.is_session_active:
        return state
    return replace(state, session_active_time=_fold(state, now), is_session_active=False)


def resume(state: GameState, now: int) -> GameState:
    if state.is_session_active:
        return state
    return replace(state, last_activity_time=int(now), is_session_active=True)


def tick(state: GameState, now: int) -> GameState:
    if not state.is_session_active:
        return state
    return replace(state, session_active_time=_fold(state, now), last_activity_time=int(now))


def reset_session_time(state: GameState, now: int) -> GameState:
    return replace(state, session_active_time=0, last_activity_time=int(now), is_session_active=True)


def reset_session(state: GameState, now: int) -> GameState:
    s = reset_session_time(state, now)
    return replace(s, session_taps=0, session_slips=0, session_start_time=int(now))


def active_minutes(active_ms: int) -> int:
    return int(active_ms) // MINUTE_MS


def crossed_wellness_thresholds(before_ms: int, after_ms: int) -> List[int]:
    """Thresholds whose minute boundary was crossed in (before, after]."""
    lo = active_minutes(before_ms)
    hi = active_minutes(after_ms)
    return [t for t in WELLNESS_THRESHOLDS_MIN if lo < t <= hi]


def wellness_message(minutes: int) -> str:
    return WELLNESS_MESSAGES.get(int(minutes), f"{int(minutes)} minutes played! Take a break! 💚")
