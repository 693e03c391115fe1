"""storage.local

Local snapshot stores. Called after every transition, so writes are small
and synchronous. A corrupt snapshot is logged and treated as empty.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Optional

from core.state import GameState, state_from_mapping, state_to_dict

from .parsing import dumps_snapshot, try_parse_snapshot

logger = logging.getLogger(__name__)


class LocalSnapshotStore:
    """JSON file on disk (atomic replace on save)."""

    def __init__(self, path: str) -> None:
        self.path = str(path)

    def load_local(self) -> Optional[GameState]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = fh.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.path, e)
            return None
        res = try_parse_snapshot(raw)
        if res.data is None:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.path, res.error)
            return None
        return state_from_mapping(res.data)

    def save_local(self, state: GameState) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".snapshot-", suffix=".json", dir=folder)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(dumps_snapshot(state_to_dict(state)))
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.unlink(self.path)


class MemorySnapshotStore:
    """In-process store; still goes through the JSON codec."""

    def __init__(self, raw: str = "") -> None:
        self.raw = raw
        self.saves = 0

    def load_local(self) -> Optional[GameState]:
        if not self.raw:
            return None
        res = try_parse_snapshot(self.raw)
        if res.data is None:
            logger.warning("Ignoring unreadable snapshot: %s", res.error)
            return None
        return state_from_mapping(res.data)

    def save_local(self, state: GameState) -> None:
        self.raw = dumps_snapshot(state_to_dict(state))
        self.saves += 1

    def clear(self) -> None:
        self.raw = ""
