"""
core.revenge
Revenge mode: a 5-second x2 tap buff unlocked by a verified slip share.

Inactive -> activate(now) -> Active(until now+5000) -> expiry -> Inactive.
Expiry is observed lazily on the next tap or by a scheduled timer; both
paths are idempotent.
"""

from __future__ import annotations

from dataclasses import replace

from .rules import REVENGE_DURATION_MS, REVENGE_TAP_MULTIPLIER
from .state import GameState


def activate(state: GameState, now: int) -> GameState:
    return replace(state, revenge_mode_active=True, revenge_mode_end_time=int(now) + REVENGE_DURATION_MS)


def deactivate(state: GameState) -> GameState:
    if not state.revenge_mode_active and state.revenge_mode_end_time == 0:
        return state
    return replace(state, revenge_mode_active=False, revenge_mode_end_time=0)


def is_expired(state: GameState, now: int) -> bool:
    return state.revenge_mode_active and int(now) > state.revenge_mode_end_time


def expire_if_due(state: GameState, now: int) -> GameState:
    if is_expired(state, now):
        return deactivate(state)
    return state


def tap_multiplier(state: GameState) -> int:
    return REVENGE_TAP_MULTIPLIER if state.revenge_mode_active else 1
