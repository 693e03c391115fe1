"""storage.providers.supabase

Supabase profile store over the PostgREST HTTP API (requests).

Tables:
- profiles     (one row per user, see storage.schemas)
- game_events  (append-only tap/slip/stage_up log)

Change notifications are poll based: refresh() reloads a profile and calls
listeners when the row differs from the last one seen.

Every HTTP or decoding failure is raised as StoreError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from ..schemas import ProfileSnapshot, profile_from_row
from .base import ProfileListener, ProviderStatus, StoreError

logger = logging.getLogger(__name__)


@dataclass
class SupabaseProfileStore:
    url: str
    api_key: str
    timeout: float = 10.0
    access_token: str = ""

    session: Any = None
    _listeners: List[ProfileListener] = field(default_factory=list)
    _seen: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.url = str(self.url or "").strip().rstrip("/")
        self.api_key = str(self.api_key or "").strip()
        if self.session is None:
            self.session = requests.Session()

    @staticmethod
    def from_config(config: Any) -> "SupabaseProfileStore":
        return SupabaseProfileStore(
            url=config.supabase_url,
            api_key=config.supabase_key,
            timeout=float(config.request_timeout),
        )

    # -------------------------
    # HTTP
    # -------------------------

    def _headers(self, prefer: str = "") -> Dict[str, str]:
        h = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            h["Prefer"] = prefer
        return h

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: str = "",
    ) -> Any:
        if not self.url or not self.api_key:
            raise StoreError("Supabase is not configured (url/key missing)")
        endpoint = f"{self.url}/rest/v1/{table}"
        try:
            resp = self.session.request(
                method,
                endpoint,
                params=params,
                json=json,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreError(f"{method} {table} failed: {e}") from e

        if resp.status_code >= 400:
            raise StoreError(f"{method} {table} -> HTTP {resp.status_code}: {(resp.text or '')[:200]}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {table}: invalid JSON response") from e

    def _one(self, rows: Any) -> Optional[Dict[str, Any]]:
        if not rows:
            return None
        if isinstance(rows, list):
            return rows[0] if isinstance(rows[0], dict) else None
        return rows if isinstance(rows, dict) else None

    # -------------------------
    # ProfileStore
    # -------------------------

    def status(self) -> ProviderStatus:
        if not self.url or not self.api_key:
            return ProviderStatus(False, "supabase", error="SUPABASE_URL / SUPABASE_ANON_KEY missing")
        return ProviderStatus(True, "supabase", note=self.url)

    def load_profile(self, user_id: str) -> Optional[ProfileSnapshot]:
        row = self._one(self._request("GET", "profiles", params={"id": f"eq.{user_id}", "select": "*"}))
        if row is None:
            return None
        self._seen[str(user_id)] = dict(row)
        return profile_from_row(row)

    def create_profile(self, user_id: str, fields: Mapping[str, Any]) -> ProfileSnapshot:
        payload = dict(fields)
        payload["id"] = str(user_id)
        row = self._one(self._request("POST", "profiles", json=payload, prefer="return=representation"))
        if row is None:
            raise StoreError(f"Profile insert for {user_id} returned no row")
        self._seen[str(user_id)] = dict(row)
        return profile_from_row(row)

    def save_profile(self, user_id: str, fields: Mapping[str, Any]) -> None:
        self._request("PATCH", "profiles", params={"id": f"eq.{user_id}"}, json=dict(fields), prefer="return=minimal")

    def find_profile_by_referral_code(self, code: str) -> Optional[ProfileSnapshot]:
        row = self._one(
            self._request(
                "GET",
                "profiles",
                params={"referral_code": f"eq.{code}", "select": "id,username,ape_balance,total_referrals,referral_code"},
            )
        )
        return profile_from_row(row) if row is not None else None

    def insert_game_event(self, row: Mapping[str, Any]) -> None:
        self._request("POST", "game_events", json=dict(row), prefer="return=minimal")

    def on_profile_change(self, callback: ProfileListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def refresh(self, user_id: str) -> Optional[ProfileSnapshot]:
        """Poll a profile; notify listeners if it changed since last seen."""
        before = self._seen.get(str(user_id))
        profile = self.load_profile(user_id)
        if profile is None:
            return None
        if before != self._seen.get(str(user_id)):
            for cb in list(self._listeners):
                cb(profile)
        return profile
