from __future__ import annotations

import datetime as dt
import json
import pathlib
import platform
import subprocess
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .bench_backends import measure, select_backend
from .bench_config import BenchConfig
from .bench_fixtures import Fixture, ensure_fixtures
from .bench_results import (
    MANIFEST_FILENAME,
    RESULTS_FILENAME,
    SampleSummary,
    append_result,
    new_stamp,
    run_dir_name,
    validate_label,
    write_header,
)
from .bench_stats import fmt_ms

COLD_START = "cold_start"


@dataclass
class Scenario:
    name: str
    command: List[str]
    fixture: Optional[pathlib.Path] = None


def build_scenarios(config: BenchConfig, fixtures: List[Fixture]) -> List[Scenario]:
    """Cold start first, then one open per fixture in generator order."""
    out = [Scenario(COLD_START, config.target_argv())]
    for fx in fixtures:
        out.append(Scenario(fx.name, config.target_argv(fx.path), fx.path))
    return out


def now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat().replace("+00:00", "Z")


def target_version(target: str, timeout_s: float = 5.0) -> Optional[str]:
    try:
        p = subprocess.run(
            [target, "--version"],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout_s,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if p.returncode != 0:
        return None
    lines = (p.stdout or "").strip().splitlines()
    return lines[0] if lines else None


def build_metadata(config: BenchConfig, label: str, stamp: str, backend_tag: str) -> Dict[str, Any]:
    return {
        "label": label,
        "timestamp": stamp,
        "finishedAt": now_iso(),
        "backend": backend_tag,
        "hostname": platform.node(),
        "machine": platform.machine(),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "targetVersion": target_version(config.target),
        "config": config.to_dict(),
    }


def print_summary(summary: SampleSummary) -> None:
    print(
        f"  mean {fmt_ms(summary.mean_ms)} ms  median {fmt_ms(summary.median_ms)} ms"
        f"  ok {summary.n_ok}/{summary.n_total}  [{summary.backend}]",
        flush=True,
    )
    if summary.n_failed:
        print(
            f"warning: {summary.scenario}: {summary.n_failed} of {summary.n_total} timed runs failed",
            file=sys.stderr,
        )
        for err in summary.errors[:1]:
            tail = (err.get("stderr_tail") or "").strip().splitlines()
            print(
                f"  rc={err.get('rc')} timeout={err.get('timeout')} {tail[-1] if tail else ''}",
                file=sys.stderr,
            )


def run_suite(
    label: str,
    config: BenchConfig,
    *,
    backend=None,
    now: Optional[dt.datetime] = None,
) -> pathlib.Path:
    """Measure every scenario for ``label`` and return the new run directory."""
    label = validate_label(label)
    config.validate()

    fixtures = ensure_fixtures(config.fixture_dir, config.sizes)
    if backend is None:
        backend = select_backend(config.backend)

    stamp = new_stamp(now)
    out_dir = pathlib.Path(config.results_root) / run_dir_name(label, stamp)
    config.results_root.mkdir(parents=True, exist_ok=True)
    # exist_ok=False: a run directory is never reused.
    out_dir.mkdir()

    scenarios = build_scenarios(config, fixtures)

    print("=========================================", flush=True)
    print(f" Editor benchmark: {label}", flush=True)
    print(f" Timestamp: {stamp}", flush=True)
    print(f" Backend: {backend.tag}", flush=True)
    print(f" Target: {' '.join(config.target_argv())}", flush=True)
    print("=========================================", flush=True)

    results: Dict[str, SampleSummary] = {}
    with (out_dir / RESULTS_FILENAME).open("w", encoding="utf-8") as fh:
        write_header(
            fh,
            label=label,
            stamp=stamp,
            backend=backend.tag,
            run_count=config.run_count,
            warmup_count=config.warmup_count,
        )
        for scenario in scenarios:
            print(f"\n[bench] scenario: {scenario.name}", flush=True)
            try:
                summary = measure(
                    scenario.name,
                    scenario.command,
                    config.run_count,
                    config.warmup_count,
                    backend=backend,
                    timeout_s=config.timeout_s,
                    export_prefix=out_dir / scenario.name,
                )
            except Exception as ex:
                summary = SampleSummary(
                    scenario=scenario.name,
                    backend=backend.tag,
                    mean_ms=None,
                    n_ok=0,
                    n_total=config.run_count,
                    errors=[{"rc": None, "timeout": False, "stderr_tail": f"{type(ex).__name__}: {ex}"}],
                )
            append_result(fh, summary)
            results[scenario.name] = summary
            print_summary(summary)

    manifest = build_metadata(config, label, stamp, backend.tag)
    manifest["scenarios"] = [
        {"name": s.name, "command": s.command, "fixture": str(s.fixture) if s.fixture else None}
        for s in scenarios
    ]
    manifest["results"] = {name: asdict(summary) for name, summary in results.items()}
    (out_dir / MANIFEST_FILENAME).write_text(json.dumps(manifest, indent=2), encoding="utf-8")

    print(f"\nResults saved to: {out_dir}", flush=True)
    return out_dir
