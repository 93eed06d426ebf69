"""Shared helpers for editor-bench tests. Importable by all test_*.py files."""

import pathlib
from typing import Dict, List, Optional

from editor_bench.bench_results import (
    RESULTS_FILENAME,
    SampleSummary,
    append_result,
    write_header,
)

SCENARIOS = ["cold_start", "small_lua", "medium_ts", "large_json", "large_log"]


class StubBackend:
    """Backend double: returns canned means per scenario and records each call."""

    def __init__(
        self,
        means: Optional[Dict[str, Optional[float]]] = None,
        tag: str = "manual",
        fail_on: Optional[str] = None,
        interrupt_on: Optional[str] = None,
    ):
        self.tag = tag
        self.means = means or {}
        self.fail_on = fail_on
        self.interrupt_on = interrupt_on
        self.calls: List[dict] = []

    def measure(self, scenario, command, *, run_count, warmup_count, timeout_s, export_prefix=None):
        self.calls.append({
            "scenario": scenario,
            "command": list(command),
            "run_count": run_count,
            "warmup_count": warmup_count,
            "timeout_s": timeout_s,
            "export_prefix": export_prefix,
        })
        if scenario == self.fail_on:
            raise RuntimeError(f"boom in {scenario}")
        if scenario == self.interrupt_on:
            raise KeyboardInterrupt
        mean = self.means.get(scenario, 10.0 + len(self.calls))
        n_ok = run_count if mean is not None else 0
        return SampleSummary(
            scenario=scenario,
            backend=self.tag,
            mean_ms=mean,
            n_ok=n_ok,
            n_total=run_count,
            median_ms=mean,
        )


def write_run(
    root: pathlib.Path,
    name: str,
    means: Dict[str, Optional[float]],
    backend: str = "manual",
) -> pathlib.Path:
    """Create ``root/name/results.txt`` with one line per entry in ``means``."""
    run_dir = root / name
    run_dir.mkdir(parents=True)
    label, _, stamp = name.partition("_")
    with (run_dir / RESULTS_FILENAME).open("w", encoding="utf-8") as fh:
        write_header(fh, label=label, stamp=stamp, backend=backend, run_count=10, warmup_count=2)
        for scenario, mean in means.items():
            append_result(fh, SampleSummary(
                scenario=scenario,
                backend=backend,
                mean_ms=mean,
                n_ok=10 if mean is not None else 0,
                n_total=10,
            ))
    return run_dir
