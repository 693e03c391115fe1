"""storage.parsing

Tolerant parsing of persisted snapshots.

Accepts:
- the versioned envelope {"version": 1, "state": {...}}
- a bare state object (older snapshots)
Leading BOM / whitespace is stripped. Anything else is reported, not raised.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class ParseResult:
    data: Optional[Dict[str, Any]]
    raw: str
    version: int = 0
    error: str = ""


def try_parse_snapshot(raw: str) -> ParseResult:
    """Best-effort parse. Returns ParseResult(data=None, error=...) on failure."""
    raw = raw or ""
    s = raw.lstrip("\ufeff").strip()
    if not s:
        return ParseResult(data=None, raw=raw, error="empty snapshot")
    try:
        obj = json.loads(s)
    except ValueError as e:
        return ParseResult(data=None, raw=raw, error=f"json.loads: {type(e).__name__}: {e}")
    if not isinstance(obj, dict):
        return ParseResult(data=None, raw=raw, error="snapshot root is not an object")

    if isinstance(obj.get("state"), dict):
        try:
            version = int(obj.get("version") or 0)
        except (TypeError, ValueError):
            version = 0
        if version > SNAPSHOT_VERSION:
            return ParseResult(data=None, raw=raw, version=version, error=f"unsupported snapshot version {version}")
        return ParseResult(data=obj["state"], raw=raw, version=version)
    return ParseResult(data=obj, raw=raw, version=0)


def dumps_snapshot(state_dict: Dict[str, Any]) -> str:
    return json.dumps({"version": SNAPSHOT_VERSION, "state": state_dict}, ensure_ascii=False, sort_keys=True)
