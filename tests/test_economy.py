import pytest

from core.economy import (
    SpendRejected,
    apply_daily_login,
    buy_insurance,
    consume_insurance_tap,
    credit,
    credit_capped,
    daily_goal_reward,
    debit,
    milestone_reward,
    reset_rug_meter,
    stage_reward,
)


@pytest.mark.parametrize("stage,expected", [(1, 5), (4, 5), (5, 10), (9, 10), (10, 15), (25, 30)])
def test_stage_reward(stage, expected):
    assert stage_reward(stage) == expected


def test_milestone_reward():
    assert milestone_reward(5) == 50
    assert milestone_reward(100) == 1500
    assert milestone_reward(6) == 0


def test_daily_goal_pays_once_per_crossing():
    assert daily_goal_reward(0, 499) == 0
    assert daily_goal_reward(499, 500) == 20
    assert daily_goal_reward(500, 501) == 0
    assert daily_goal_reward(999, 1000) == 40
    assert daily_goal_reward(998, 1000) == 40


def test_credit_capped_is_all_or_nothing(make_state):
    # Scenario D: 495 earned today, a 10 APE reward is skipped entirely
    s = make_state(ape_balance=70, daily_ape_earned=495)
    out, applied = credit_capped(s, 10)
    assert not applied
    assert out is s

    out, applied = credit_capped(make_state(ape_balance=70, daily_ape_earned=490), 10)
    assert applied
    assert out.ape_balance == 80
    assert out.daily_ape_earned == 500


def test_uncapped_credit_and_clamped_debit(make_state):
    s = credit(make_state(daily_ape_earned=500), 25)
    assert s.ape_balance == 25
    assert s.daily_ape_earned == 500
    assert credit(s, 0) is s
    assert debit(make_state(ape_balance=10), 50).ape_balance == 0


def test_daily_login_rolls_counters(make_state, t0):
    s = make_state(last_login_date="2023-11-13", daily_ape_earned=300, daily_taps=50, ape_balance=1)
    out, reward = apply_daily_login(s, t0)
    assert reward == 5
    assert out.last_login_date == "2023-11-14"
    assert out.ape_balance == 6
    assert out.daily_ape_earned == 0
    assert out.daily_taps == 0

    again, reward = apply_daily_login(out, t0 + 60_000)
    assert reward == 0
    assert again is out


def test_buy_insurance(make_state):
    # Scenario E (purchase half)
    out = buy_insurance(make_state(ape_balance=150))
    assert out.ape_balance == 50
    assert out.insurance_active
    assert out.insurance_taps_left == 50

    with pytest.raises(SpendRejected) as e:
        buy_insurance(out)
    assert e.value.reason == "already_active"

    with pytest.raises(SpendRejected) as e:
        buy_insurance(make_state(ape_balance=99))
    assert e.value.reason == "insufficient_balance"


def test_reset_rug_meter(make_state):
    with pytest.raises(SpendRejected) as e:
        reset_rug_meter(make_state(ape_balance=500, slip_chance=0.01))
    assert e.value.reason == "already_minimum"

    with pytest.raises(SpendRejected) as e:
        reset_rug_meter(make_state(ape_balance=49, slip_chance=0.03))
    assert e.value.reason == "insufficient_balance"

    out = reset_rug_meter(make_state(ape_balance=60, slip_chance=0.03, rug_meter=60, rug_meter_progress=40.0))
    assert out.ape_balance == 10
    assert out.slip_chance == 0.01
    assert out.rug_meter_progress == 0.0
    assert out.rug_meter == 60


def test_insurance_tap_countdown(make_state):
    s = make_state(insurance_active=True, insurance_taps_left=2)
    s = consume_insurance_tap(s)
    assert s.insurance_active and s.insurance_taps_left == 1
    s = consume_insurance_tap(s)
    assert not s.insurance_active and s.insurance_taps_left == 0
    assert consume_insurance_tap(s) is s
