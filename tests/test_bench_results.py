"""results.txt format and run-directory selection."""

import datetime as dt

import pytest
from helpers import write_run

from editor_bench.bench_results import (
    RESULTS_FILENAME,
    SampleSummary,
    find_latest_run,
    format_result_line,
    new_stamp,
    parse_result_line,
    read_header,
    read_results,
    run_dir_name,
    runs_for_label,
    validate_label,
)

# ── result lines ────────────────────────────────────────────────


def test_format_line_is_tab_separated_key_values():
    s = SampleSummary("large_json", "statistical", 123.4567, 10, 10, median_ms=120.0, stddev_ms=4.25)
    line = format_result_line(s)
    assert line.split("\t") == [
        "large_json",
        "mean_ms=123.457",
        "n_ok=10",
        "n_total=10",
        "backend=statistical",
        "median_ms=120.000",
        "stddev_ms=4.250",
    ]


def test_unavailable_mean_written_as_na():
    s = SampleSummary("cold_start", "manual", None, 0, 10)
    line = format_result_line(s)
    assert "mean_ms=NA" in line
    parsed = parse_result_line(line)
    assert parsed.mean_ms is None
    assert (parsed.n_ok, parsed.n_total) == (0, 10)


def test_parse_ignores_unknown_keys_and_keeps_optional_stats():
    parsed = parse_result_line("medium_ts\tmean_ms=55.5\tn_ok=9\tn_total=10\tbackend=manual\tp95_ms=70.1\tcolor=blue")
    assert parsed.scenario == "medium_ts"
    assert parsed.mean_ms == pytest.approx(55.5)
    assert parsed.p95_ms == pytest.approx(70.1)
    assert parsed.n_failed == 1


@pytest.mark.parametrize("line", [
    "",
    "# backend: manual",
    "cold_start",
    "cold_start\tn_ok=3",
    "cold_start\tmean_ms=1.0\tn_ok=three\tn_total=3",
])
def test_parse_skips_malformed_lines(line):
    assert parse_result_line(line) is None


def test_read_results_and_header(tmp_path):
    run_dir = write_run(tmp_path, "baseline_20261018_101500", {"cold_start": 40.0, "small_lua": None})
    results = read_results(run_dir)
    assert [r.scenario for r in results] == ["cold_start", "small_lua"]
    assert results[1].mean_ms is None

    header = read_header(run_dir / RESULTS_FILENAME)
    assert header["label"] == "baseline"
    assert header["backend"] == "manual"
    assert header["runs"] == "10"


def test_read_results_missing_file(tmp_path):
    (tmp_path / "baseline_1").mkdir()
    with pytest.raises(FileNotFoundError):
        read_results(tmp_path / "baseline_1")


# ── run directories ─────────────────────────────────────────────


def test_run_dir_name_embeds_label_and_stamp():
    stamp = new_stamp(dt.datetime(2026, 10, 18, 9, 5, 7))
    assert stamp == "20261018_090507"
    assert run_dir_name("after", stamp) == "after_20261018_090507"


def test_latest_run_per_label(tmp_path):
    for name in ("baseline_100", "baseline_200", "after_150"):
        (tmp_path / name).mkdir()

    assert find_latest_run(tmp_path, "baseline").name == "baseline_200"
    assert find_latest_run(tmp_path, "after").name == "after_150"


def test_latest_run_compares_suffix_numerically(tmp_path):
    for name in ("baseline_99", "baseline_100", "baseline_20261018_090000", "baseline_20261018_101500"):
        (tmp_path / name).mkdir()
    assert find_latest_run(tmp_path, "baseline").name == "baseline_20261018_101500"

    for name in ("after_99", "after_100"):
        (tmp_path / name).mkdir()
    assert find_latest_run(tmp_path, "after").name == "after_100"


def test_label_prefix_does_not_capture_longer_labels(tmp_path):
    (tmp_path / "baseline_20261018_090000").mkdir()
    (tmp_path / "baseline_v2_20261019_090000").mkdir()
    (tmp_path / "baseline_notes.txt").write_text("x")

    runs = runs_for_label(tmp_path, "baseline")
    assert [p.name for p in runs] == ["baseline_20261018_090000"]
    assert find_latest_run(tmp_path, "baseline_v2").name == "baseline_v2_20261019_090000"


def test_numbered_label_runs_are_not_runs_of_the_shorter_label(tmp_path):
    (tmp_path / "after_2_20261018_100000").mkdir()
    (tmp_path / "baseline_20261018_090000").mkdir()

    assert runs_for_label(tmp_path, "after") == []
    with pytest.raises(FileNotFoundError, match="'after'"):
        find_latest_run(tmp_path, "after")
    assert find_latest_run(tmp_path, "after_2").name == "after_2_20261018_100000"


@pytest.mark.parametrize("name", ["after_2026_1", "after_20261018_1000", "after_1_2_3"])
def test_partial_stamp_suffixes_are_ignored(tmp_path, name):
    (tmp_path / name).mkdir()
    assert runs_for_label(tmp_path, "after") == []


def test_missing_label_raises(tmp_path):
    (tmp_path / "baseline_100").mkdir()
    with pytest.raises(FileNotFoundError, match="'after'"):
        find_latest_run(tmp_path, "after")


def test_missing_results_root_has_no_runs(tmp_path):
    assert runs_for_label(tmp_path / "nope", "baseline") == []


@pytest.mark.parametrize("label", ["", "   ", ".", "..", "a/b", "a\\b"])
def test_validate_label_rejects_path_like_labels(label):
    with pytest.raises(ValueError):
        validate_label(label)


def test_validate_label_accepts_free_form():
    assert validate_label("lazy-loading-v2") == "lazy-loading-v2"
