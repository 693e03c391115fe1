"""engine.sim_runner

Headless runner for quick sanity checks.

Keeps tests deterministic and CI-friendly: no network, no disk. Remote
mirroring goes to an in-memory profile store and runs inline.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Optional

from core.rng import RandomSource
from core.state import check_invariants
from storage.local import MemorySnapshotStore
from storage.providers.memory import InMemoryProfileStore

from .config import EngineConfig
from .runtime import GameRuntime

SIM_START_MS = 1_700_000_000_000


def run_headless_sim(
    taps: int = 2000,
    *,
    seed: int = 123,
    interval_ms: int = 200,
    rng: Optional[RandomSource] = None,
    user_id: str = "sim-ape",
) -> Dict[str, Any]:
    """Tap `taps` times at a steady pace and return a summary."""
    cfg = EngineConfig(base_seed=seed, sync_in_background=False)
    store = InMemoryProfileStore()
    clock_now = SIM_START_MS

    runtime = GameRuntime(
        cfg,
        local_store=MemorySnapshotStore(),
        profile_store=store,
        rng=rng,
        clock=lambda: clock_now,
    )
    counts: Counter = Counter()
    try:
        runtime.sign_in(user_id, now=clock_now)
        for _ in range(taps):
            clock_now += interval_ms
            outcome = runtime.tap(now=clock_now)
            counts[outcome.kind] += 1
            check_invariants(runtime.state)
        final = runtime.state
        events = list(runtime.events)
    finally:
        runtime.close()

    return {
        "taps": taps,
        "final": final,
        "counts": dict(counts),
        "events": events,
        "remote": store.load_profile(user_id),
        "remote_events": len(store.events),
    }


if __name__ == "__main__":
    summary = run_headless_sim()
    final = summary["final"]
    print("Outcomes:", summary["counts"])
    print(f"Stage {final.current_stage} | taps {final.total_taps} | slips {final.rug_count} | APE {final.ape_balance}")
