"""engine.timers

Deadline events (revenge expiry, activity tick, notice expiry).

One queue per runtime. Events are keyed: scheduling an existing key replaces
its deadline, so a superseded callback can never fire. pop_due() hands out
each live event exactly once, in deadline order.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class DeadlineEvent:
    key: str
    due: int
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
    seq: int = 0


class TimerQueue:
    def __init__(self) -> None:
        self._heap: List[Tuple[int, int, str]] = []
        self._live: Dict[str, DeadlineEvent] = {}
        self._seq = itertools.count(1)

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, key: str) -> bool:
        return key in self._live

    def schedule(self, key: str, due: int, kind: str, payload: Optional[Dict[str, Any]] = None) -> DeadlineEvent:
        ev = DeadlineEvent(key=str(key), due=int(due), kind=str(kind), payload=dict(payload or {}), seq=next(self._seq))
        self._live[ev.key] = ev
        heapq.heappush(self._heap, (ev.due, ev.seq, ev.key))
        return ev

    def cancel(self, key: str) -> bool:
        return self._live.pop(str(key), None) is not None

    def cancel_all(self) -> None:
        self._live.clear()
        self._heap.clear()

    def get(self, key: str) -> Optional[DeadlineEvent]:
        return self._live.get(str(key))

    def next_due(self) -> Optional[int]:
        self._drop_stale()
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now: int) -> List[DeadlineEvent]:
        out: List[DeadlineEvent] = []
        while self._heap and self._heap[0][0] <= int(now):
            _, seq, key = heapq.heappop(self._heap)
            ev = self._live.get(key)
            if ev is None or ev.seq != seq:
                continue  # cancelled or rescheduled
            del self._live[key]
            out.append(ev)
        return out

    def _drop_stale(self) -> None:
        while self._heap:
            _, seq, key = self._heap[0]
            ev = self._live.get(key)
            if ev is not None and ev.seq == seq:
                return
            heapq.heappop(self._heap)
