from engine.timers import TimerQueue


def test_events_fire_once_in_deadline_order():
    q = TimerQueue()
    q.schedule("b", 200, "tick")
    q.schedule("a", 100, "tick")
    q.schedule("c", 300, "tick")

    assert q.next_due() == 100
    assert [e.key for e in q.pop_due(250)] == ["a", "b"]
    assert q.pop_due(250) == []
    assert len(q) == 1
    assert [e.key for e in q.pop_due(10_000)] == ["c"]
    assert q.next_due() is None


def test_rescheduling_replaces_the_deadline():
    q = TimerQueue()
    q.schedule("revenge", 100, "revenge_expiry")
    q.schedule("revenge", 500, "revenge_expiry", {"n": 2})

    assert q.pop_due(100) == []
    due = q.pop_due(500)
    assert len(due) == 1
    assert due[0].payload == {"n": 2}


def test_cancel():
    q = TimerQueue()
    q.schedule("x", 100, "tick")
    q.schedule("y", 100, "tick")
    assert q.cancel("x")
    assert not q.cancel("x")
    assert "x" not in q
    assert [e.key for e in q.pop_due(100)] == ["y"]

    q.schedule("z", 1, "tick")
    q.cancel_all()
    assert len(q) == 0
    assert q.pop_due(10**12) == []


def test_next_due_skips_cancelled():
    q = TimerQueue()
    q.schedule("x", 50, "tick")
    q.schedule("y", 80, "tick")
    q.cancel("x")
    assert q.next_due() == 80
    assert q.get("y").due == 80
