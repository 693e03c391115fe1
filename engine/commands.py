"""engine.commands

Command objects fed into engine.pipeline.reduce() and the Outcome it returns.

Commands are plain frozen dataclasses so they can be logged, replayed and
compared in tests. Timestamps are epoch milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

# Outcome kinds
RATE_LIMITED = "RATE_LIMITED"
SLIP = "SLIP"
PROGRESS = "PROGRESS"
STAGE_UP = "STAGE_UP"
ACCEPTED = "ACCEPTED"
REJECTED = "REJECTED"


@dataclass(frozen=True)
class Notice:
    """Transient user-facing message."""
    kind: str   # anti-cheat | slip | stage-up | info
    text: str


@dataclass(frozen=True)
class Outcome:
    kind: str
    notices: Tuple[Notice, ...] = ()
    log: Dict[str, Any] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.kind not in {RATE_LIMITED, REJECTED}


@dataclass(frozen=True)
class Tap:
    now: int


@dataclass(frozen=True)
class BuyInsurance:
    pass


@dataclass(frozen=True)
class ResetRugMeter:
    pass


@dataclass(frozen=True)
class DailyLogin:
    now: int


@dataclass(frozen=True)
class PauseSession:
    now: int


@dataclass(frozen=True)
class ResumeSession:
    now: int


@dataclass(frozen=True)
class TickActivity:
    now: int


@dataclass(frozen=True)
class ResetSessionTime:
    now: int


@dataclass(frozen=True)
class ResetSession:
    now: int


@dataclass(frozen=True)
class ActivateRevengeMode:
    now: int


@dataclass(frozen=True)
class ExpireRevengeMode:
    """Lazy expiry check (no-op unless the deadline has passed)."""
    now: int


@dataclass(frozen=True)
class DeactivateRevengeMode:
    """Scheduled expiry callback."""
    pass


@dataclass(frozen=True)
class VerifyShare:
    platform: str
    url: str
    now: int
    share_type: str = "manual"


@dataclass(frozen=True)
class CreditApe:
    """Uncapped credit from outside the tap loop (referral welcome, etc.)."""
    amount: int
    reason: str = ""


@dataclass(frozen=True)
class MergeFields:
    """Merge persisted values over the live state (profile seed / snapshot sync)."""
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class SetOffline:
    offline: bool


@dataclass(frozen=True)
class MarkSynced:
    now: int
