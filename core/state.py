"""
core.state
Core domain data model (UI/storage independent).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from .rules import RUG_METER_BASE_CHANCE, RUG_METER_MAX_CHANCE, RUG_METER_MAX_PROGRESS


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def day_key(now: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of an epoch-ms timestamp."""
    return datetime.fromtimestamp(int(now) / 1000.0, tz=timezone.utc).date().isoformat()


@dataclass(frozen=True)
class GameState:
    """Single game aggregate.

    Every transition returns a new instance (see engine.pipeline.reduce), so a
    failed transition can never leave a half-updated state behind.

    Timestamps are epoch milliseconds; durations are milliseconds.
    """

    current_stage: int = 1
    total_taps: int = 0
    rug_meter: int = 0
    rug_count: int = 0
    high_score: int = 0

    # anti-cheat window
    last_tap_time: int = 0
    tap_count: int = 0

    # connectivity
    is_offline: bool = False
    last_sync_time: int = 0

    # rug meter
    rug_meter_progress: float = 0.0     # 0..100
    slip_chance: float = RUG_METER_BASE_CHANCE   # 0.01..0.04

    # session
    session_taps: int = 0
    session_slips: int = 0
    session_start_time: int = 0
    session_active_time: int = 0
    last_activity_time: int = 0
    is_session_active: bool = True

    # APE economy
    ape_balance: int = 0
    consecutive_slips: int = 0
    last_login_date: str = ""
    daily_ape_earned: int = 0
    daily_taps: int = 0
    tragic_hero_badges: int = 0
    insurance_active: bool = False
    insurance_taps_left: int = 0

    # revenge mode
    revenge_mode_active: bool = False
    revenge_mode_end_time: int = 0

    # share rewards
    share_day: str = ""
    daily_shares: int = 0
    share_cooldowns: Dict[str, int] = field(default_factory=dict)
    used_share_urls: Tuple[str, ...] = ()
    total_shares: int = 0
    total_share_ape: int = 0


def default_start_state(now: int) -> GameState:
    """Fresh run: stage 1, zeroed counters, session stamped at `now`."""
    return GameState(
        session_start_time=int(now),
        last_activity_time=int(now),
        last_sync_time=int(now),
        last_login_date=day_key(now),
    )


def check_invariants(state: GameState) -> None:
    """Raise AssertionError if a state breaks the model's bounds."""
    assert state.current_stage >= 1, state.current_stage
    assert RUG_METER_BASE_CHANCE - 1e-9 <= state.slip_chance <= RUG_METER_MAX_CHANCE + 1e-9, state.slip_chance
    assert 0.0 <= state.rug_meter_progress <= RUG_METER_MAX_PROGRESS, state.rug_meter_progress
    assert state.ape_balance >= 0, state.ape_balance
    assert state.rug_meter >= 0, state.rug_meter
    assert state.high_score >= state.total_taps, (state.high_score, state.total_taps)
    assert state.insurance_taps_left >= 0, state.insurance_taps_left


# -------------------------
# Snapshot codec
# -------------------------


def state_to_dict(state: GameState) -> Dict[str, Any]:
    d = asdict(state)
    d["share_cooldowns"] = dict(state.share_cooldowns)
    d["used_share_urls"] = list(state.used_share_urls)
    return d


def _coerce(value: Any, default: Any) -> Any:
    if value is None:
        return default
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes"}
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, str):
            return str(value)
    except (TypeError, ValueError):
        return default
    return value


def state_from_mapping(d: Mapping[str, Any], now: Optional[int] = None) -> GameState:
    """Merge a persisted snapshot over defaults.

    Unknown keys are ignored; missing or malformed values keep their default.
    """
    base = default_start_state(now) if now is not None else GameState()
    out: Dict[str, Any] = {}
    for f in fields(GameState):
        default = getattr(base, f.name)
        if f.name not in d:
            out[f.name] = default
            continue
        raw = d[f.name]
        if f.name == "share_cooldowns":
            try:
                out[f.name] = {str(k): int(v) for k, v in dict(raw or {}).items()}
            except (TypeError, ValueError):
                out[f.name] = {}
        elif f.name == "used_share_urls":
            out[f.name] = tuple(str(x) for x in raw) if isinstance(raw, (list, tuple)) else ()
        else:
            out[f.name] = _coerce(raw, default)

    out["slip_chance"] = clamp(float(out["slip_chance"]), RUG_METER_BASE_CHANCE, RUG_METER_MAX_CHANCE)
    out["rug_meter_progress"] = clamp(float(out["rug_meter_progress"]), 0.0, RUG_METER_MAX_PROGRESS)
    out["current_stage"] = max(1, int(out["current_stage"]))
    out["ape_balance"] = max(0, int(out["ape_balance"]))
    return GameState(**out)
