"""engine.runtime

Live game controller.

Owns the current GameState and everything around it:
- every mutation goes through engine.pipeline.reduce() under one lock
  (one tap = one atomic transition)
- local snapshot saved after every committed transition
- remote mirroring is fire-and-forget on a single background worker; its
  failures are logged and never roll back local state
- deadline timers: revenge expiry, activity tick (+ wellness notices),
  notice expiry, remote profile poll

Hosts (Streamlit app, headless sim, tests) drive it with tap(), advance()
and the connectivity/visibility signals.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from core.referral import ReferralRejected
from core.rng import RandomSource, make_rng
from core.rules import ACTIVITY_TICK_MS, REFERRAL_BONUS_STAGE, REFERRAL_STAGE_10_BONUS
from core.session import crossed_wellness_thresholds, wellness_message
from core.state import GameState, day_key, default_start_state
from storage.local import MemorySnapshotStore
from storage.providers.base import ProfileStore, StoreError
from storage.schemas import ProfileSnapshot, game_event_row, new_profile_fields, profile_fields, seed_fields

from .commands import (
    PROGRESS,
    REJECTED,
    SLIP,
    STAGE_UP,
    ActivateRevengeMode,
    BuyInsurance,
    CreditApe,
    DailyLogin,
    DeactivateRevengeMode,
    MarkSynced,
    MergeFields,
    Notice,
    Outcome,
    PauseSession,
    ResetRugMeter,
    ResetSession,
    ResetSessionTime,
    ResumeSession,
    SetOffline,
    Tap,
    TickActivity,
    VerifyShare,
)
from .config import EngineConfig
from .logging import make_session_export
from .pipeline import reduce
from .referrals import apply_referral_code, award_stage_ten_bonus
from .timers import TimerQueue

logger = logging.getLogger(__name__)

TIMER_REVENGE = "revenge"
TIMER_ACTIVITY = "activity"
TIMER_PROFILE_POLL = "profile_poll"

_EVENT_TYPES = {PROGRESS: "tap", SLIP: "slip", STAGE_UP: "stage_up"}


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ActiveNotice:
    id: int
    kind: str
    text: str
    expires_at: int


class _InlineExecutor:
    """Runs submitted jobs immediately (sync_in_background=False)."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        fn(*args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        return None


class GameRuntime:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        local_store: Any = None,
        profile_store: Optional[ProfileStore] = None,
        rng: Optional[RandomSource] = None,
        clock: Optional[Callable[[], int]] = None,
        executor: Any = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.local_store = local_store if local_store is not None else MemorySnapshotStore()
        self.profile_store = profile_store
        self.rng = rng if rng is not None else make_rng(self.config.base_seed)
        self.clock = clock or now_ms
        self.timers = TimerQueue()
        self.events: Deque[Dict[str, Any]] = deque(maxlen=max(1, int(self.config.event_log_limit)))

        self.user_id: Optional[str] = None
        self.profile: Optional[ProfileSnapshot] = None
        self.online = True

        self._notices: List[ActiveNotice] = []
        self._notice_ids = itertools.count(1)
        self._lock = threading.RLock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

        if executor is not None:
            self._executor = executor
        elif self.config.sync_in_background:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ape-sync")
        else:
            self._executor = _InlineExecutor()

        now = self.clock()
        loaded = self.local_store.load_local()
        self._state: GameState = loaded if loaded is not None else default_start_state(now)

        # time spent with the app closed never counts as play time
        self._apply(MergeFields({"last_activity_time": now, "is_session_active": True}), now, record=False)
        if self._state.revenge_mode_active:
            self._schedule_revenge_expiry()
        self._schedule_activity(now)

    # -------------------------
    # Plumbing
    # -------------------------

    @property
    def state(self) -> GameState:
        return self._state

    def _now(self, now: Optional[int]) -> int:
        return int(now) if now is not None else int(self.clock())

    def _commit(self, state: GameState) -> None:
        self._state = state
        try:
            self.local_store.save_local(state)
        except OSError:
            logger.exception("Failed to save local snapshot")

    def _apply(self, command: Any, now: int, *, record: bool = True) -> Outcome:
        with self._lock:
            before = self._state
            new_state, outcome = reduce(before, command, self.rng)
            if new_state is not before:
                self._commit(new_state)
            if record:
                entry = dict(outcome.log)
                entry["kind"] = outcome.kind
                self.events.append(entry)
                for n in outcome.notices:
                    self._push_notice(n, now)
            return outcome

    def _push_notice(self, notice: Notice, now: int) -> None:
        nid = next(self._notice_ids)
        expires = int(now) + int(self.config.notice_ttl_ms)
        self._notices.append(ActiveNotice(id=nid, kind=notice.kind, text=notice.text, expires_at=expires))
        self.timers.schedule(f"notice:{nid}", expires, "notice_expiry", {"id": nid})

    def _submit(self, fn: Callable[..., Any], *args: Any) -> None:
        if self._closed:
            return
        try:
            self._executor.submit(fn, *args)
        except RuntimeError:
            logger.warning("Background worker unavailable; skipped %s", getattr(fn, "__name__", fn))

    def _schedule_activity(self, now: int) -> None:
        if self._state.is_session_active:
            self.timers.schedule(TIMER_ACTIVITY, int(now) + ACTIVITY_TICK_MS, "activity_tick")
        else:
            self.timers.cancel(TIMER_ACTIVITY)

    def _schedule_revenge_expiry(self) -> None:
        # lazy expiry uses now > end, so the timer fires one ms after the deadline
        self.timers.schedule(TIMER_REVENGE, self._state.revenge_mode_end_time + 1, "revenge_expiry")

    def _schedule_profile_poll(self, now: int) -> None:
        if self.user_id and self.profile_store is not None and self.config.profile_poll_ms > 0:
            self.timers.schedule(TIMER_PROFILE_POLL, int(now) + int(self.config.profile_poll_ms), "profile_poll")
        else:
            self.timers.cancel(TIMER_PROFILE_POLL)

    def _check_wellness(self, before_ms: int, after_ms: int, now: int) -> None:
        for minutes in crossed_wellness_thresholds(before_ms, after_ms):
            self._push_notice(Notice("info", wellness_message(minutes)), now)

    # -------------------------
    # Remote mirroring
    # -------------------------

    def _sync(self, event_type: str, now: int) -> None:
        if not (self.online and self.user_id and self.profile_store is not None):
            return
        state = self._state
        fields = profile_fields(state, now)
        row = game_event_row(user_id=self.user_id, event_type=event_type, stage=state.current_stage, taps=state.total_taps)
        self._submit(self._push_remote, self.user_id, fields, row, now)

    def _push_remote(self, user_id: str, fields: Dict[str, Any], row: Dict[str, Any], now: int) -> None:
        store = self.profile_store
        if store is None:
            return
        try:
            store.save_profile(user_id, fields)
            store.insert_game_event(row)
        except Exception:
            logger.exception("Failed to sync game state for %s", user_id)
            return
        self._apply(MarkSynced(now), now, record=False)

    def _push_stage_ten_bonus(self, referrer_id: str, now: int) -> None:
        store = self.profile_store
        if store is None:
            return
        try:
            award_stage_ten_bonus(referrer_id=referrer_id, store=store)
        except Exception:
            logger.exception("Failed to award stage %s bonus to %s", REFERRAL_BONUS_STAGE, referrer_id)
            return
        with self._lock:
            self._push_notice(
                Notice("stage-up", f"Stage {REFERRAL_BONUS_STAGE} reached! Your referrer got +{REFERRAL_STAGE_10_BONUS} APE bonus! 🎁"),
                now,
            )

    def _poll_profile(self, user_id: str) -> None:
        store = self.profile_store
        if store is None:
            return
        try:
            store.refresh(user_id)
        except StoreError as e:
            logger.warning("Profile poll for %s failed: %s", user_id, e)

    # -------------------------
    # Player actions
    # -------------------------

    def tap(self, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        self.advance(now)
        with self._lock:
            outcome = self._apply(Tap(now), now)
            if (
                outcome.kind == STAGE_UP
                and outcome.log.get("stage_reached") == REFERRAL_BONUS_STAGE
                and self.profile is not None
                and self.profile.referred_by
                and self.online
            ):
                self._submit(self._push_stage_ten_bonus, self.profile.referred_by, now)
            if outcome.accepted:
                self._sync(_EVENT_TYPES.get(outcome.kind, "tap"), now)
            return outcome

    def buy_insurance(self, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        with self._lock:
            outcome = self._apply(BuyInsurance(), now)
            if outcome.accepted:
                self._sync("tap", now)
            return outcome

    def reset_rug_meter(self, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        with self._lock:
            outcome = self._apply(ResetRugMeter(), now)
            if outcome.accepted:
                self._sync("tap", now)
            return outcome

    def daily_login(self, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        with self._lock:
            outcome = self._apply(DailyLogin(now), now)
            if outcome.log.get("reward"):
                self._sync("tap", now)
            return outcome

    def reset_session_time(self, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        with self._lock:
            outcome = self._apply(ResetSessionTime(now), now)
            self._schedule_activity(now)
            return outcome

    def reset_session(self, now: Optional[int] = None) -> Outcome:
        """New session: drops every pending timer and notice, then re-arms."""
        now = self._now(now)
        with self._lock:
            self.timers.cancel_all()
            self._notices.clear()
            outcome = self._apply(ResetSession(now), now)
            self._schedule_activity(now)
            self._schedule_profile_poll(now)
            if self._state.revenge_mode_active:
                self._schedule_revenge_expiry()
            return outcome

    def activate_revenge_mode(self, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        with self._lock:
            outcome = self._apply(ActivateRevengeMode(now), now)
            self._schedule_revenge_expiry()
            return outcome

    def complete_share(self, platform: str, url: str, share_type: str = "manual", now: Optional[int] = None) -> Outcome:
        """Share-completion signal from the external verification step."""
        now = self._now(now)
        with self._lock:
            outcome = self._apply(VerifyShare(platform=platform, url=url, now=now, share_type=share_type), now)
            if outcome.accepted:
                if outcome.log.get("revenge"):
                    self._schedule_revenge_expiry()
                self._sync("tap", now)
            return outcome

    def apply_referral_code(self, code: str, now: Optional[int] = None) -> Outcome:
        now = self._now(now)
        try:
            result = apply_referral_code(profile=self.profile, code=code, store=self.profile_store, online=self.online)
        except ReferralRejected as e:
            if e.reason == "store_error":
                logger.warning("Referral code %r failed: %s", code, e.__cause__)
            outcome = Outcome(kind=REJECTED, notices=(Notice("info", e.message),), log={"event": "referral", "reason": e.reason})
            with self._lock:
                self.events.append(dict(outcome.log, kind=outcome.kind))
                self._push_notice(outcome.notices[0], now)
            return outcome

        with self._lock:
            self.profile = result.profile
            outcome = self._apply(CreditApe(result.new_user_reward, "referral"), now)
            name = result.referrer.username or "a fellow ape"
            self._push_notice(Notice("info", f"Referred by {name}! Welcome to the gang! 🦍"), now)
            if result.became_gang_leader:
                self._push_notice(
                    Notice("stage-up", f"🎉 {name} just became a Gang Leader with {result.referrer.total_referrals} referrals! 👑"),
                    now,
                )
            self._sync("tap", now)
            return outcome

    # -------------------------
    # Environment signals
    # -------------------------

    def _pause(self, now: int) -> None:
        before = self._state.session_active_time
        self._apply(PauseSession(now), now)
        self.timers.cancel(TIMER_ACTIVITY)
        self._check_wellness(before, self._state.session_active_time, now)

    def _resume(self, now: int) -> None:
        self._apply(ResumeSession(now), now)
        self._schedule_activity(now)

    def set_visible(self, visible: bool, now: Optional[int] = None) -> None:
        now = self._now(now)
        with self._lock:
            if visible:
                self._resume(now)
            else:
                self._pause(now)

    def set_online(self, online: bool, now: Optional[int] = None) -> None:
        now = self._now(now)
        with self._lock:
            changed = bool(online) != self.online
            self.online = bool(online)
            self._apply(SetOffline(not online), now, record=False)
            if not changed:
                return
            if online:
                self._resume(now)
                self._sync("tap", now)
            else:
                self._pause(now)

    def advance(self, now: Optional[int] = None) -> None:
        """Fire every timer due at `now`."""
        now = self._now(now)
        with self._lock:
            while True:
                due = self.timers.pop_due(now)
                if not due:
                    return
                for ev in due:
                    if ev.kind == "revenge_expiry":
                        self._apply(DeactivateRevengeMode(), now)
                    elif ev.kind == "activity_tick":
                        before = self._state.session_active_time
                        self._apply(TickActivity(now), now, record=False)
                        self._check_wellness(before, self._state.session_active_time, now)
                        self._schedule_activity(now)
                    elif ev.kind == "profile_poll":
                        if self.online and self.user_id:
                            self._submit(self._poll_profile, self.user_id)
                        self._schedule_profile_poll(now)
                    elif ev.kind == "notice_expiry":
                        nid = ev.payload.get("id")
                        self._notices = [n for n in self._notices if n.id != nid]

    def notices(self, now: Optional[int] = None) -> List[ActiveNotice]:
        self.advance(now)
        with self._lock:
            return list(self._notices)

    # -------------------------
    # Identity
    # -------------------------

    def sign_in(self, user_id: str, now: Optional[int] = None) -> Optional[ProfileSnapshot]:
        """Seed state from the remote profile (created if missing)."""
        now = self._now(now)
        store = self.profile_store
        self.sign_out()
        self.user_id = str(user_id)
        if store is None:
            return None
        try:
            profile = store.load_profile(user_id)
            if profile is None:
                profile = store.create_profile(user_id, new_profile_fields(day_key(now)))
        except StoreError:
            logger.exception("Failed to load profile %s; playing from local state", user_id)
            return None

        with self._lock:
            self.profile = profile
            self._apply(MergeFields(seed_fields(profile, day_key(now))), now)
            self._unsubscribe = store.on_profile_change(self._on_profile_change)
            self._schedule_profile_poll(now)
        return profile

    def sign_out(self) -> None:
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            self.timers.cancel(TIMER_PROFILE_POLL)
            self.user_id = None
            self.profile = None

    def _on_profile_change(self, profile: ProfileSnapshot) -> None:
        with self._lock:
            if self.user_id is not None and profile.id == self.user_id:
                self.profile = profile

    # -------------------------
    # Teardown / export
    # -------------------------

    def restore(self, fields: Dict[str, Any], now: Optional[int] = None) -> Outcome:
        """Load an exported state over the live one (session import)."""
        now = self._now(now)
        with self._lock:
            data = dict(fields)
            data["last_activity_time"] = now
            data["is_session_active"] = True
            outcome = self._apply(MergeFields(data), now)
            self.timers.cancel(TIMER_REVENGE)
            if self._state.revenge_mode_active:
                self._schedule_revenge_expiry()
            self._schedule_activity(now)
            return outcome

    def export(self) -> Dict[str, Any]:
        with self._lock:
            return make_session_export(
                config=self.config,
                state=self._state,
                events=list(self.events),
                user_id=self.user_id,
            )

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.timers.cancel_all()
            self._notices.clear()
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "GameRuntime":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
