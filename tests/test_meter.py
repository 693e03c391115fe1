import pytest

from core.meter import (
    meter_progress,
    meter_zone,
    refresh_meter,
    reset_risk,
    slip_chance_band,
    slip_chance_for,
    stage_progress_pct,
    taps_to_next_stage,
)
from core.rules import STAGE_FORMULA


@pytest.mark.parametrize("stage,expected", [(1, 40), (2, 113), (3, 207), (10, 1264)])
def test_stage_formula(stage, expected):
    assert STAGE_FORMULA(stage) == expected


def test_stage_formula_strictly_increasing():
    assert all(STAGE_FORMULA(n) < STAGE_FORMULA(n + 1) for n in range(1, 500))


def test_meter_progress_wraps_every_25_taps():
    assert meter_progress(0) == 0.0
    assert meter_progress(12) == pytest.approx(48.0)
    assert meter_progress(24) == pytest.approx(96.0)
    assert meter_progress(25) == 0.0
    assert meter_progress(30) == pytest.approx(20.0)


def test_slip_chance_steps_and_caps():
    assert slip_chance_for(0) == 0.01
    assert slip_chance_for(24) == 0.01
    assert slip_chance_for(25) == 0.02
    assert slip_chance_for(50) == 0.03
    assert slip_chance_for(75) == 0.04
    assert slip_chance_for(1000) == 0.04


def test_refresh_and_reset(make_state):
    s = refresh_meter(make_state(rug_meter=30))
    assert s.rug_meter_progress == pytest.approx(20.0)
    assert s.slip_chance == 0.02

    r = reset_risk(s)
    assert r.rug_meter_progress == 0.0
    assert r.slip_chance == 0.01
    assert r.rug_meter == 30


def test_stage_progress_helpers(make_state):
    s = make_state(rug_meter=10)
    assert taps_to_next_stage(s) == 30
    assert stage_progress_pct(s) == pytest.approx(25.0)
    assert taps_to_next_stage(make_state(rug_meter=99)) == 0


def test_display_strategies_are_independent():
    assert meter_zone(50) == "safe"
    assert meter_zone(50.1) == "warning"
    assert meter_zone(75) == "warning"
    assert meter_zone(76) == "danger"

    assert slip_chance_band(0.01) == "green"
    assert slip_chance_band(0.02) == "yellow"
    assert slip_chance_band(0.03) == "yellow"
    assert slip_chance_band(0.04) == "red"
