"""engine.logging

Logging setup for hosts, plus the session export.

A session export is JSON-serializable so it can be downloaded and inspected
later (state snapshot + recent transition logs).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from core.state import GameState, state_to_dict

from .config import EngineConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


def make_session_export(
    *,
    config: EngineConfig,
    state: GameState,
    events: List[Dict[str, Any]],
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    cfg = asdict(config)
    cfg.pop("supabase_key", None)
    return {
        "version": 1,
        "user_id": user_id,
        "config": cfg,
        "state": state_to_dict(state),
        "events": list(events),
    }


def dumps_session_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True)
