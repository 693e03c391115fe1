"""engine.config

Runtime configuration (seed, storage locations, remote store access).

Game balance does not live here; see core.rules.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _env_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineConfig:
    base_seed: Optional[int] = None
    snapshot_path: str = os.path.join(".ape_escape", "game_state.json")
    supabase_url: str = ""
    supabase_key: str = ""
    request_timeout: float = 10.0
    sync_in_background: bool = True
    notice_ttl_ms: int = 3000
    profile_poll_ms: int = 15000
    event_log_limit: int = 500
    log_level: str = "INFO"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if env is None else env
        seed = (env.get("APE_ESCAPE_SEED") or "").strip()
        return EngineConfig(
            base_seed=int(seed) if seed else None,
            snapshot_path=env.get("APE_ESCAPE_SNAPSHOT") or EngineConfig.snapshot_path,
            supabase_url=(env.get("SUPABASE_URL") or env.get("NEXT_PUBLIC_SUPABASE_URL") or "").strip(),
            supabase_key=(env.get("SUPABASE_ANON_KEY") or env.get("NEXT_PUBLIC_SUPABASE_ANON_KEY") or "").strip(),
            request_timeout=float(env.get("APE_ESCAPE_TIMEOUT") or 10.0),
            sync_in_background=_env_bool(env.get("APE_ESCAPE_BACKGROUND_SYNC"), True),
            profile_poll_ms=int(env.get("APE_ESCAPE_PROFILE_POLL_MS") or 15000),
            log_level=(env.get("APE_ESCAPE_LOG_LEVEL") or "INFO").upper(),
        )
