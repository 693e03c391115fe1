"""storage.schemas

Profile rows as persisted by the backend, and their mapping onto GameState.

The backend owns identity fields (id, username, referral_code, referred_by,
total_referrals). The core owns the game numbers it writes back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from core.state import GameState

# GameState fields mirrored to the profile row (same names on both sides).
PROFILE_STATE_FIELDS = (
    "current_stage",
    "total_taps",
    "rug_meter",
    "rug_count",
    "high_score",
    "ape_balance",
    "consecutive_slips",
    "last_login_date",
    "daily_ape_earned",
    "daily_taps",
    "tragic_hero_badges",
    "insurance_active",
    "insurance_taps_left",
)

# Seed defaults for rows that predate a column.
_SEED_DEFAULTS: Dict[str, Any] = {
    "rug_count": 0,
    "ape_balance": 0,
    "consecutive_slips": 0,
    "daily_ape_earned": 0,
    "daily_taps": 0,
    "tragic_hero_badges": 0,
    "insurance_active": False,
    "insurance_taps_left": 0,
}

EVENT_TYPES = {"tap", "slip", "stage_up"}


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return int(default)


def _as_opt_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


@dataclass(frozen=True)
class ProfileSnapshot:
    """A profile row as read from the store."""

    id: str
    username: Optional[str] = None
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    total_referrals: int = 0
    fields: Dict[str, Any] = field(default_factory=dict)   # game columns present in the row

    @property
    def ape_balance(self) -> int:
        return _as_int(self.fields.get("ape_balance"), 0)

    @property
    def current_stage(self) -> int:
        return _as_int(self.fields.get("current_stage"), 1)


def profile_from_row(row: Mapping[str, Any]) -> ProfileSnapshot:
    if not row or not row.get("id"):
        raise ValueError("Profile row without id")
    fields = {k: row[k] for k in PROFILE_STATE_FIELDS if k in row}
    return ProfileSnapshot(
        id=str(row["id"]),
        username=_as_opt_str(row.get("username")),
        referral_code=_as_opt_str(row.get("referral_code")),
        referred_by=_as_opt_str(row.get("referred_by")),
        total_referrals=_as_int(row.get("total_referrals"), 0),
        fields=fields,
    )


def _iso(now: Optional[int]) -> str:
    if now is None:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(int(now) / 1000.0, tz=timezone.utc).isoformat()


def profile_fields(state: GameState, now: Optional[int] = None) -> Dict[str, Any]:
    """The owned subset written back to the profile row."""
    out: Dict[str, Any] = {k: getattr(state, k) for k in PROFILE_STATE_FIELDS}
    out["updated_at"] = _iso(now)
    return out


def seed_fields(profile: ProfileSnapshot, today: str) -> Dict[str, Any]:
    """GameState values taken from a profile on sign-in."""
    out: Dict[str, Any] = {}
    for k in PROFILE_STATE_FIELDS:
        v = profile.fields.get(k)
        if v is None:
            if k == "last_login_date":
                v = today
            elif k in _SEED_DEFAULTS:
                v = _SEED_DEFAULTS[k]
            else:
                continue
        out[k] = v
    return out


def new_profile_fields(today: str) -> Dict[str, Any]:
    """Column values for a freshly created profile (referral code is generated server-side)."""
    return {
        "current_stage": 1,
        "total_taps": 0,
        "rug_meter": 0,
        "rug_count": 0,
        "high_score": 0,
        "suspicious_activity_count": 0,
        "ape_balance": 0,
        "consecutive_slips": 0,
        "last_login_date": today,
        "daily_ape_earned": 0,
        "daily_taps": 0,
        "tragic_hero_badges": 0,
        "insurance_active": False,
        "insurance_taps_left": 0,
        "referral_code": None,
        "referred_by": None,
        "total_referrals": 0,
    }


def game_event_row(*, user_id: str, event_type: str, stage: int, taps: int) -> Dict[str, Any]:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event_type: {event_type}")
    return {"user_id": str(user_id), "event_type": event_type, "stage": int(stage), "taps": int(taps)}
