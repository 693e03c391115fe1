"""
core.platforms
Share platform definitions (reward multipliers, accepted post hosts).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .rules import SHARE_BASE_REWARD


@dataclass(frozen=True)
class PlatformSpec:
    key: str
    name: str
    multiplier: float
    hosts: Tuple[str, ...]
    auto_open: bool

    @property
    def reward(self) -> int:
        return int(SHARE_BASE_REWARD * self.multiplier)


DEFAULT_PLATFORMS: Dict[str, PlatformSpec] = {
    "twitter": PlatformSpec(
        key="twitter",
        name="X/Twitter",
        multiplier=2.0,
        hosts=("twitter.com", "x.com"),
        auto_open=True,
    ),
    "tiktok": PlatformSpec(
        key="tiktok",
        name="TikTok",
        multiplier=3.0,
        hosts=("tiktok.com",),
        auto_open=False,
    ),
    "instagram": PlatformSpec(
        key="instagram",
        name="Instagram",
        multiplier=1.5,
        hosts=("instagram.com",),
        auto_open=False,
    ),
}


def get_platform_spec(key: str) -> Optional[PlatformSpec]:
    return DEFAULT_PLATFORMS.get(str(key or "").strip().lower())
