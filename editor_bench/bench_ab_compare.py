"""Compare the latest runs of two labels and report per-scenario deltas.

Usage:
    editor-bench compare
    editor-bench compare --baseline baseline --after after --threshold-pct 10 --out tmp/comparison.json
"""
from __future__ import annotations

import json
import pathlib
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .bench_results import SampleSummary, find_latest_run, read_header, read_results, RESULTS_FILENAME
from .bench_stats import delta_ms, delta_pct, fmt_ms

VERDICT_SLOWER = "SLOWER"
VERDICT_FASTER = "FASTER"
VERDICT_SAME = "SAME"
VERDICT_NA = "NA"


@dataclass
class Comparison:
    baseline_run: pathlib.Path
    after_run: pathlib.Path
    baseline_backend: str
    after_backend: str
    threshold_pct: float
    rows: List[Dict[str, Any]] = field(default_factory=list)
    only_baseline: List[str] = field(default_factory=list)
    only_after: List[str] = field(default_factory=list)

    @property
    def backend_mismatch(self) -> bool:
        return self.baseline_backend != self.after_backend

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseline": str(self.baseline_run),
            "after": str(self.after_run),
            "baseline_backend": self.baseline_backend,
            "after_backend": self.after_backend,
            "backend_mismatch": self.backend_mismatch,
            "threshold_pct": self.threshold_pct,
            "results": self.rows,
            "only_baseline": self.only_baseline,
            "only_after": self.only_after,
        }


def verdict_for(pct: Optional[float], threshold_pct: float) -> str:
    if pct is None:
        return VERDICT_NA
    if pct > threshold_pct:
        return VERDICT_SLOWER
    if pct < -threshold_pct:
        return VERDICT_FASTER
    return VERDICT_SAME


def compare_scenario(a: SampleSummary, b: SampleSummary, threshold_pct: float) -> Dict[str, Any]:
    """Delta for one scenario present in both runs."""
    d_ms = delta_ms(a.mean_ms, b.mean_ms)
    d_pct = delta_pct(a.mean_ms, b.mean_ms)
    return {
        "scenario": a.scenario,
        "baseline_mean_ms": a.mean_ms,
        "after_mean_ms": b.mean_ms,
        "delta_ms": d_ms,
        "delta_pct": d_pct,
        "baseline_n": f"{a.n_ok}/{a.n_total}",
        "after_n": f"{b.n_ok}/{b.n_total}",
        "baseline_backend": a.backend,
        "after_backend": b.backend,
        "verdict": verdict_for(d_pct, threshold_pct),
    }


def run_backend(run_dir: pathlib.Path, summaries: List[SampleSummary]) -> str:
    header = read_header(run_dir / RESULTS_FILENAME)
    if header.get("backend"):
        return header["backend"]
    tags = sorted({s.backend for s in summaries})
    return ",".join(tags) if tags else "unknown"


def compare_runs(baseline_dir: pathlib.Path, after_dir: pathlib.Path, threshold_pct: float = 5.0) -> Comparison:
    a = read_results(baseline_dir)
    b = read_results(after_dir)
    by_name_b = {s.scenario: s for s in b}
    names_a = {s.scenario for s in a}

    out = Comparison(
        baseline_run=baseline_dir,
        after_run=after_dir,
        baseline_backend=run_backend(baseline_dir, a),
        after_backend=run_backend(after_dir, b),
        threshold_pct=threshold_pct,
    )
    # Baseline order keeps the table aligned with the runner's scenario order.
    for summary in a:
        other = by_name_b.get(summary.scenario)
        if other is None:
            out.only_baseline.append(summary.scenario)
            continue
        out.rows.append(compare_scenario(summary, other, threshold_pct))
    out.only_after = [s.scenario for s in b if s.scenario not in names_a]
    return out


def compare(
    results_root: pathlib.Path,
    label_a: str = "baseline",
    label_b: str = "after",
    *,
    threshold_pct: float = 5.0,
    require_same_backend: bool = False,
) -> Comparison:
    """Compare the most recent ``label_a`` run against the most recent ``label_b`` run.

    Raises FileNotFoundError if either label has no runs, and RuntimeError for a
    backend mismatch when ``require_same_backend`` is set.
    """
    baseline_dir = find_latest_run(results_root, label_a)
    after_dir = find_latest_run(results_root, label_b)
    result = compare_runs(baseline_dir, after_dir, threshold_pct)
    if result.backend_mismatch and require_same_backend:
        raise RuntimeError(
            f"runs used different backends ({result.baseline_backend} vs {result.after_backend}); "
            "re-run both labels with the same --backend"
        )
    return result


def print_table(comparison: Comparison) -> None:
    """Print a formatted comparison table."""
    print("=========================================")
    print(" Benchmark Comparison")
    print("=========================================")
    print(f"Baseline: {comparison.baseline_run} [{comparison.baseline_backend}]")
    print(f"After:    {comparison.after_run} [{comparison.after_backend}]")
    print()

    if not comparison.rows:
        print("No comparable scenarios found.")
    else:
        header = f"{'Scenario':<20} {'Baseline ms':>12} {'After ms':>12} {'Delta ms':>10} {'Delta%':>8} {'Verdict':>8}"
        sep = "-" * len(header)
        print(sep)
        print(header)
        print(sep)
        for r in comparison.rows:
            pct = r["delta_pct"]
            pct_text = f"{pct:>+7.1f}%" if pct is not None else f"{'NA':>8}"
            d = r["delta_ms"]
            d_text = f"{d:>+10.2f}" if d is not None else f"{'NA':>10}"
            print(
                f"{r['scenario']:<20} {fmt_ms(r['baseline_mean_ms']):>12} {fmt_ms(r['after_mean_ms']):>12} "
                f"{d_text} {pct_text} {r['verdict']:>8}"
            )
        print(sep)

    for name in comparison.only_baseline:
        print(f"only in baseline: {name}")
    for name in comparison.only_after:
        print(f"only in after: {name}")

    slower = [r for r in comparison.rows if r["verdict"] == VERDICT_SLOWER]
    faster = [r for r in comparison.rows if r["verdict"] == VERDICT_FASTER]
    same = [r for r in comparison.rows if r["verdict"] == VERDICT_SAME]
    print()
    print(f"Summary: {len(comparison.rows)} scenarios compared (threshold {comparison.threshold_pct}%)")
    print(f"  Slower: {len(slower)}")
    print(f"  Faster: {len(faster)}")
    print(f"  Same:   {len(same)}")


def warn_backend_mismatch(comparison: Comparison) -> None:
    if comparison.backend_mismatch:
        print(
            f"warning: baseline used backend {comparison.baseline_backend!r} but after used "
            f"{comparison.after_backend!r}; manual timings are noisier than hyperfine's",
            file=sys.stderr,
        )


def write_report(comparison: Comparison, out_path: pathlib.Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(comparison.to_dict(), indent=2), encoding="utf-8")
