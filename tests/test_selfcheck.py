from core.selfcheck import run_tap_smoke


def test_core_smoke_runs(capsys):
    run_tap_smoke(taps=800, base_seed=3)
    assert "OK: 800-tap core smoke test passed." in capsys.readouterr().out
