"""storage.providers.base

Profile store interface.

A profile store is the remote source of truth for cross-device resume. The
core treats it as eventually consistent and keeps working without it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

from ..schemas import ProfileSnapshot


@dataclass(frozen=True)
class ProviderStatus:
    ok: bool
    backend: str
    note: str = ""
    error: str = ""


class StoreError(RuntimeError):
    """Any failure talking to the profile store."""


ProfileListener = Callable[[ProfileSnapshot], None]


class ProfileStore(Protocol):
    def status(self) -> ProviderStatus: ...

    def load_profile(self, user_id: str) -> Optional[ProfileSnapshot]:
        """Return the profile or None when it does not exist."""
        ...

    def create_profile(self, user_id: str, fields: Mapping[str, Any]) -> ProfileSnapshot: ...

    def save_profile(self, user_id: str, fields: Mapping[str, Any]) -> None: ...

    def on_profile_change(self, callback: ProfileListener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe function."""
        ...

    def refresh(self, user_id: str) -> Optional[ProfileSnapshot]:
        """Reload a profile; listeners hear about it if it changed."""
        ...

    def find_profile_by_referral_code(self, code: str) -> Optional[ProfileSnapshot]: ...

    def insert_game_event(self, row: Mapping[str, Any]) -> None: ...
