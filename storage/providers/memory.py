"""storage.providers.memory

Dictionary-backed profile store (offline play, headless runs, tests).

Writes notify listeners immediately, which mimics realtime change feeds.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..schemas import ProfileSnapshot, profile_from_row
from .base import ProfileListener, ProviderStatus, StoreError


@dataclass
class InMemoryProfileStore:
    rows: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)
    offline: bool = False

    _listeners: List[ProfileListener] = field(default_factory=list)
    _lock: Any = field(default_factory=threading.Lock)

    def _check(self) -> None:
        if self.offline:
            raise StoreError("profile store unreachable")

    def status(self) -> ProviderStatus:
        if self.offline:
            return ProviderStatus(False, "memory", error="offline")
        return ProviderStatus(True, "memory")

    def add_profile(self, user_id: str, **columns: Any) -> ProfileSnapshot:
        row = {"id": str(user_id), "total_referrals": 0, "referred_by": None}
        row.update(columns)
        with self._lock:
            self.rows[str(user_id)] = row
        return profile_from_row(row)

    def load_profile(self, user_id: str) -> Optional[ProfileSnapshot]:
        self._check()
        with self._lock:
            row = self.rows.get(str(user_id))
            return profile_from_row(row) if row is not None else None

    def create_profile(self, user_id: str, fields: Mapping[str, Any]) -> ProfileSnapshot:
        self._check()
        row = dict(fields)
        row["id"] = str(user_id)
        with self._lock:
            if str(user_id) in self.rows:
                raise StoreError(f"duplicate profile {user_id}")
            self.rows[str(user_id)] = row
        return profile_from_row(row)

    def save_profile(self, user_id: str, fields: Mapping[str, Any]) -> None:
        self._check()
        with self._lock:
            row = self.rows.get(str(user_id))
            if row is None:
                raise StoreError(f"no profile {user_id}")
            row.update(dict(fields))
            snapshot = profile_from_row(row)
        for cb in list(self._listeners):
            cb(snapshot)

    def find_profile_by_referral_code(self, code: str) -> Optional[ProfileSnapshot]:
        self._check()
        with self._lock:
            for row in self.rows.values():
                if str(row.get("referral_code") or "") == str(code):
                    return profile_from_row(row)
        return None

    def insert_game_event(self, row: Mapping[str, Any]) -> None:
        self._check()
        with self._lock:
            self.events.append(dict(row))

    def refresh(self, user_id: str) -> Optional[ProfileSnapshot]:
        # writes already notify
        return self.load_profile(user_id)

    def on_profile_change(self, callback: ProfileListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe
