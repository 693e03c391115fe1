from core import revenge, session
from core.session import MINUTE_MS, crossed_wellness_thresholds, wellness_message


def test_hidden_time_never_counts(make_state, t0):
    s = make_state(last_activity_time=t0)
    s = session.tick(s, t0 + 5_000)
    assert s.session_active_time == 5_000

    s = session.pause(s, t0 + 8_000)
    assert s.session_active_time == 8_000
    assert not s.is_session_active

    # an hour in the background
    assert session.tick(s, t0 + 3_600_000) is s
    s = session.resume(s, t0 + 3_600_000)
    s = session.tick(s, t0 + 3_605_000)
    assert s.session_active_time == 13_000


def test_pause_and_resume_are_idempotent(make_state, t0):
    s = make_state(last_activity_time=t0)
    assert session.resume(s, t0 + 1) is s
    paused = session.pause(s, t0 + 1_000)
    assert session.pause(paused, t0 + 9_000) is paused


def test_reset_session(make_state, t0):
    s = make_state(session_taps=40, session_slips=3, session_active_time=90_000, is_session_active=False)
    out = session.reset_session(s, t0 + 10)
    assert out.session_taps == 0
    assert out.session_slips == 0
    assert out.session_active_time == 0
    assert out.session_start_time == t0 + 10
    assert out.is_session_active

    only_time = session.reset_session_time(s, t0 + 10)
    assert only_time.session_taps == 40
    assert only_time.session_active_time == 0


def test_wellness_thresholds_fire_once_per_crossing():
    assert crossed_wellness_thresholds(0, 29 * MINUTE_MS) == []
    assert crossed_wellness_thresholds(29 * MINUTE_MS, 30 * MINUTE_MS) == [30]
    assert crossed_wellness_thresholds(30 * MINUTE_MS, 31 * MINUTE_MS) == []
    assert crossed_wellness_thresholds(29 * MINUTE_MS, 61 * MINUTE_MS) == [30, 45, 60]
    assert "30 minutes" in wellness_message(30)
    assert "1 hour" in wellness_message(60)


def test_revenge_lifecycle(make_state, t0):
    s = revenge.activate(make_state(), t0)
    assert s.revenge_mode_active
    assert s.revenge_mode_end_time == t0 + 5_000
    assert revenge.tap_multiplier(s) == 2

    assert revenge.expire_if_due(s, t0 + 5_000) is s
    off = revenge.expire_if_due(s, t0 + 5_001)
    assert not off.revenge_mode_active
    assert revenge.tap_multiplier(off) == 1

    # scheduled deactivation after lazy expiry is a no-op
    assert revenge.deactivate(off) is off
