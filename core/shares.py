"""
core.shares
Verified-share rewards: per-platform cooldown, daily limit, single-use URLs.

Verification of the post itself happens outside the core; this module only
enforces the ledger rules once a share is reported as verified.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional
from urllib.parse import urlparse

from .economy import credit
from .platforms import PlatformSpec, get_platform_spec
from .rules import SHARE_COOLDOWN_MS, SHARE_DAILY_LIMIT
from .state import GameState, day_key

SHARE_TYPES = {"slip", "milestone", "manual"}


class ShareRejected(Exception):
    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


@dataclass(frozen=True)
class ShareResult:
    platform: str
    share_type: str
    reward: int


def url_matches_platform(url: str, spec: PlatformSpec) -> bool:
    try:
        parsed = urlparse(str(url or "").strip())
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    host = (parsed.hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in spec.hosts)


def _roll_day(state: GameState, now: int) -> GameState:
    today = day_key(now)
    if state.share_day == today:
        return state
    return replace(state, share_day=today, daily_shares=0)


def cooldown_remaining(state: GameState, platform: str, now: int) -> int:
    last = state.share_cooldowns.get(platform)
    if last is None:
        return 0
    return max(0, int(last) + SHARE_COOLDOWN_MS - int(now))


def cooldowns(state: GameState, now: int) -> Dict[str, int]:
    return {k: cooldown_remaining(state, k, now) for k in sorted(state.share_cooldowns)}


def record_verified_share(
    state: GameState,
    *,
    platform: str,
    url: str,
    now: int,
    share_type: str = "manual",
) -> tuple[GameState, ShareResult]:
    spec: Optional[PlatformSpec] = get_platform_spec(platform)
    if spec is None:
        raise ShareRejected("unknown_platform", f"Unknown platform: {platform}")
    if share_type not in SHARE_TYPES:
        raise ShareRejected("unknown_type", f"Unknown share type: {share_type}")
    if not url_matches_platform(url, spec):
        raise ShareRejected("invalid_url", f"Post URL must be from {' or '.join(spec.hosts)}")

    url_key = str(url).strip()
    if url_key in state.used_share_urls:
        raise ShareRejected("url_used", "This post URL was already used! 🚫")

    s = _roll_day(state, now)
    if s.daily_shares >= SHARE_DAILY_LIMIT:
        raise ShareRejected("daily_limit", f"Daily limit reached! Max {SHARE_DAILY_LIMIT} shares per day.")
    if cooldown_remaining(s, spec.key, now) > 0:
        raise ShareRejected("cooldown", f"{spec.name} is on cooldown. Try again later! ⏰")

    reward = spec.reward
    cds = dict(s.share_cooldowns)
    cds[spec.key] = int(now)
    s = replace(
        s,
        daily_shares=s.daily_shares + 1,
        share_cooldowns=cds,
        used_share_urls=tuple(s.used_share_urls) + (url_key,),
        total_shares=s.total_shares + 1,
        total_share_ape=s.total_share_ape + reward,
    )
    s = credit(s, reward)
    return s, ShareResult(platform=spec.key, share_type=share_type, reward=reward)
