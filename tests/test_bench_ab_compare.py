"""Comparison engine: label selection, scenario matching, deltas, backend mismatch."""

import json

import pytest
from helpers import SCENARIOS, write_run
from hypothesis import given
from hypothesis import strategies as st

from editor_bench.bench_ab_compare import (
    compare,
    compare_runs,
    print_table,
    verdict_for,
    warn_backend_mismatch,
    write_report,
)
from editor_bench.bench_stats import delta_ms, delta_pct

BASE = {"cold_start": 40.0, "small_lua": 42.0, "medium_ts": 60.0, "large_json": 200.0, "large_log": 150.0}
AFTER = {"cold_start": 30.0, "small_lua": 42.5, "medium_ts": 75.0, "large_json": 100.0, "large_log": 150.0}


@pytest.fixture
def results_root(tmp_path):
    root = tmp_path / ".benchmark-results"
    write_run(root, "baseline_100", {k: v * 2 for k, v in BASE.items()})
    write_run(root, "baseline_200", BASE)
    write_run(root, "after_150", AFTER)
    return root


# ── selection ───────────────────────────────────────────────────


def test_compare_picks_latest_run_per_label(results_root):
    result = compare(results_root)
    assert result.baseline_run.name == "baseline_200"
    assert result.after_run.name == "after_150"


def test_compare_missing_label_raises(results_root):
    with pytest.raises(FileNotFoundError, match="nightly"):
        compare(results_root, "baseline", "nightly")


def test_compare_empty_root_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        compare(tmp_path / "none")


# ── deltas ──────────────────────────────────────────────────────


def test_rows_follow_baseline_scenario_order(results_root):
    result = compare(results_root)
    assert [r["scenario"] for r in result.rows] == SCENARIOS
    assert result.only_baseline == []
    assert result.only_after == []


def test_row_values_and_verdicts(results_root):
    rows = {r["scenario"]: r for r in compare(results_root, threshold_pct=5.0).rows}

    assert rows["cold_start"]["baseline_mean_ms"] == pytest.approx(40.0)
    assert rows["cold_start"]["after_mean_ms"] == pytest.approx(30.0)
    assert rows["cold_start"]["delta_ms"] == pytest.approx(-10.0)
    assert rows["cold_start"]["delta_pct"] == pytest.approx(-25.0)
    assert rows["cold_start"]["verdict"] == "FASTER"
    assert rows["medium_ts"]["verdict"] == "SLOWER"
    assert rows["small_lua"]["verdict"] == "SAME"
    assert rows["large_log"]["delta_ms"] == pytest.approx(0.0)


def test_scenarios_present_in_one_run_are_reported(tmp_path):
    a = write_run(tmp_path, "baseline_1", {"cold_start": 10.0, "old_fixture": 20.0})
    b = write_run(tmp_path, "after_1", {"cold_start": 11.0, "new_fixture": 30.0})

    result = compare_runs(a, b)
    assert [r["scenario"] for r in result.rows] == ["cold_start"]
    assert result.only_baseline == ["old_fixture"]
    assert result.only_after == ["new_fixture"]


def test_unavailable_mean_gives_na_delta(tmp_path):
    a = write_run(tmp_path, "baseline_1", {"cold_start": 10.0})
    b = write_run(tmp_path, "after_1", {"cold_start": None})

    row = compare_runs(a, b).rows[0]
    assert row["after_mean_ms"] is None
    assert row["delta_ms"] is None
    assert row["delta_pct"] is None
    assert row["verdict"] == "NA"
    assert row["after_n"] == "0/10"


# ── backend mismatch ────────────────────────────────────────────


def test_backend_mismatch_warns(tmp_path, capsys):
    write_run(tmp_path, "baseline_1", BASE, backend="statistical")
    write_run(tmp_path, "after_1", AFTER, backend="manual")

    result = compare(tmp_path)
    assert result.backend_mismatch
    warn_backend_mismatch(result)
    assert "warning: baseline used backend 'statistical'" in capsys.readouterr().err


def test_backend_mismatch_can_be_fatal(tmp_path):
    write_run(tmp_path, "baseline_1", BASE, backend="statistical")
    write_run(tmp_path, "after_1", AFTER, backend="manual")
    with pytest.raises(RuntimeError, match="different backends"):
        compare(tmp_path, require_same_backend=True)


def test_same_backend_is_quiet(results_root, capsys):
    result = compare(results_root, require_same_backend=True)
    warn_backend_mismatch(result)
    assert not result.backend_mismatch
    assert capsys.readouterr().err == ""


# ── output ──────────────────────────────────────────────────────


def test_print_table_has_one_row_per_scenario(results_root, capsys):
    print_table(compare(results_root))
    out = capsys.readouterr().out
    body = [ln for ln in out.splitlines() if ln.split() and ln.split()[0] in SCENARIOS]
    assert len(body) == 5
    assert "-10.00" in out
    assert "-25.0%" in out
    assert "Summary: 5 scenarios compared" in out


def test_write_report_json(results_root, tmp_path):
    out = tmp_path / "reports" / "comparison.json"
    write_report(compare(results_root), out)
    report = json.loads(out.read_text())
    assert report["baseline"].endswith("baseline_200")
    assert len(report["results"]) == 5
    assert report["backend_mismatch"] is False


# ── delta properties ────────────────────────────────────────────

latencies = st.floats(min_value=0.001, max_value=1e6, allow_nan=False, allow_infinity=False)


@pytest.mark.property_based
@given(a=latencies, b=latencies)
def test_delta_sign_matches_direction(a, b):
    d = delta_ms(a, b)
    pct = delta_pct(a, b)
    assert d == pytest.approx(b - a)
    if b > a:
        assert pct > 0
    elif b < a:
        assert pct < 0


@pytest.mark.property_based
@given(a=latencies, threshold=st.floats(min_value=0.0, max_value=50.0))
def test_identical_runs_are_same(a, threshold):
    assert verdict_for(delta_pct(a, a), threshold) == "SAME"


def test_zero_baseline_has_no_relative_change():
    assert delta_pct(0.0, 5.0) is None
    assert delta_pct(None, 5.0) is None
    assert delta_ms(0.0, 5.0) == 5.0
