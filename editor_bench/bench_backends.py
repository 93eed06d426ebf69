from __future__ import annotations

import csv
import io
import json
import os
import pathlib
import re
import shlex
import shutil
import signal
import subprocess
import tempfile
import time
from typing import Any, Dict, List, Optional, Sequence

from .bench_config import BACKEND_AUTO, BACKEND_MANUAL, BACKEND_STATISTICAL
from .bench_results import SampleSummary
from .bench_stats import numeric, summarize

HYPERFINE = "hyperfine"
MAX_ERRORS_KEPT = 5
REAP_TIMEOUT_S = 2.0

UNIT_TO_MS = {"s": 1000.0, "ms": 1.0, "us": 0.001, "µs": 0.001, "μs": 0.001, "ns": 0.000001}


def now_ms() -> float:
    return time.perf_counter() * 1000.0


def kill_process_group(p: subprocess.Popen) -> None:
    """SIGKILL everything left in ``p``'s session so nothing outlives one invocation."""
    try:
        os.killpg(p.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def run(cmd: Sequence[str], *, timeout_s: float) -> Dict[str, Any]:
    """Run ``cmd`` once to completion, timing it. Never raises for process failures."""
    start = now_ms()
    try:
        p = subprocess.Popen(
            [str(c) for c in cmd],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        return {
            "rc": None,
            "timeout": False,
            "elapsed_ms": None,
            "stderr": f"launch failed: {exc}",
        }
    try:
        _, err = p.communicate(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        elapsed = now_ms() - start
        kill_process_group(p)
        try:
            _, err = p.communicate(timeout=REAP_TIMEOUT_S)
        except subprocess.TimeoutExpired as exc:
            # stderr held open by something that left the session.
            p.wait()
            err = exc.stderr
        return {
            "rc": 124,
            "timeout": True,
            "elapsed_ms": elapsed,
            "stderr": _decode(err),
        }
    elapsed = now_ms() - start
    # Background children of the target die with it.
    kill_process_group(p)
    return {
        "rc": p.returncode,
        "timeout": False,
        "elapsed_ms": elapsed,
        "stderr": _decode(err),
    }


def error_record(res: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "rc": res.get("rc"),
        "timeout": bool(res.get("timeout")),
        "stderr_tail": (res.get("stderr") or "")[-400:],
    }


# ---------- manual wall-clock loop ----------

class ManualBackend:
    tag = BACKEND_MANUAL

    def measure(
        self,
        scenario: str,
        command: Sequence[str],
        *,
        run_count: int,
        warmup_count: int,
        timeout_s: float,
        export_prefix: Optional[pathlib.Path] = None,
    ) -> SampleSummary:
        for _ in range(warmup_count):
            run(command, timeout_s=timeout_s)

        samples: List[float] = []
        errors: List[Dict[str, Any]] = []
        for _ in range(run_count):
            res = run(command, timeout_s=timeout_s)
            if res["rc"] == 0 and not res["timeout"]:
                samples.append(float(res["elapsed_ms"]))
            else:
                errors.append(error_record(res))

        stats = summarize(samples)
        return SampleSummary(
            scenario=scenario,
            backend=self.tag,
            mean_ms=stats["mean_ms"],
            n_ok=len(samples),
            n_total=run_count,
            median_ms=stats["median_ms"],
            stddev_ms=stats["stddev_ms"],
            min_ms=stats["min_ms"],
            max_ms=stats["max_ms"],
            p95_ms=stats["p95_ms"],
            errors=errors[:MAX_ERRORS_KEPT],
        )


# ---------- hyperfine ----------

def parse_hyperfine_json(text: str) -> Optional[Dict[str, Any]]:
    """Per-run samples from an ``--export-json`` file.

    Returns ``{"samples_ms": [...], "failed_exit_codes": [...]}``, or None when the
    file holds no per-run times. Runs with a non-zero (or missing) exit code are
    failures; exports without ``exit_codes`` count every run as successful.
    """
    try:
        doc = json.loads(text)
    except ValueError:
        return None
    results = doc.get("results") if isinstance(doc, dict) else None
    if not results or not isinstance(results[0], dict):
        return None
    times = results[0].get("times")
    if not isinstance(times, list) or not times:
        return None
    codes = results[0].get("exit_codes")
    if not isinstance(codes, list) or len(codes) != len(times):
        codes = [0] * len(times)

    samples: List[float] = []
    failed: List[Optional[int]] = []
    for t, code in zip(times, codes):
        value = numeric(t)
        if code == 0 and value is not None:
            samples.append(value * 1000.0)
        else:
            failed.append(code)
    return {"samples_ms": samples, "failed_exit_codes": failed}


def parse_hyperfine_csv(text: str) -> Dict[str, Optional[float]]:
    """Stats (ms) from the first row of a ``--export-csv`` file; values there are in seconds."""
    reader = csv.DictReader(io.StringIO(text))
    for row in reader:
        out: Dict[str, Optional[float]] = {}
        for key in ("mean", "stddev", "median", "min", "max"):
            value = numeric(row.get(key))
            out[f"{key}_ms"] = value * 1000.0 if value is not None else None
        return out
    return {}


_MD_UNIT_RE = re.compile(r"Mean\s*\[([^\]]+)\]")
_MD_MEAN_RE = re.compile(r"^\s*([0-9.eE+-]+)(?:\s*±\s*([0-9.eE+-]+))?\s*$")


def parse_hyperfine_markdown(text: str) -> Dict[str, Optional[float]]:
    """Stats (ms) from a ``--export-markdown`` table: ``| Command | Mean [ms] | Min [ms] | Max [ms] | ...``."""
    lines = [ln.strip() for ln in text.splitlines() if ln.strip().startswith("|")]
    header_idx = None
    factor = None
    for idx, line in enumerate(lines):
        m = _MD_UNIT_RE.search(line)
        if m:
            header_idx = idx
            factor = UNIT_TO_MS.get(m.group(1).strip())
            break
    if header_idx is None or factor is None:
        return {}

    headers = [c.strip() for c in lines[header_idx].strip("|").split("|")]
    for line in lines[header_idx + 1:]:
        cells = [c.strip() for c in line.strip("|").split("|")]
        if all(set(c) <= set(":- ") for c in cells):
            continue
        row = dict(zip(headers, cells))
        out: Dict[str, Optional[float]] = {}
        for header, cell in row.items():
            name = header.split("[")[0].strip().lower()
            if name == "mean":
                m = _MD_MEAN_RE.match(cell)
                if not m:
                    return {}
                mean = numeric(m.group(1))
                stddev = numeric(m.group(2)) if m.group(2) else None
                out["mean_ms"] = mean * factor if mean is not None else None
                out["stddev_ms"] = stddev * factor if stddev is not None else None
            elif name in ("min", "max"):
                value = numeric(cell)
                out[f"{name}_ms"] = value * factor if value is not None else None
        return out
    return {}


class HyperfineBackend:
    tag = BACKEND_STATISTICAL

    def __init__(self, executable: str = HYPERFINE):
        self.executable = executable

    def build_command(
        self,
        scenario: str,
        command: Sequence[str],
        *,
        run_count: int,
        warmup_count: int,
        md_path: pathlib.Path,
        csv_path: pathlib.Path,
        json_path: pathlib.Path,
    ) -> List[str]:
        return [
            self.executable,
            "--warmup", str(warmup_count),
            "--runs", str(run_count),
            # Failed runs are dropped from the JSON samples, not allowed to abort the batch.
            "--ignore-failure",
            "--export-json", str(json_path),
            "--export-markdown", str(md_path),
            "--export-csv", str(csv_path),
            "--command-name", scenario,
            "--style", "none",
            shlex.join(str(c) for c in command),
        ]

    def measure(
        self,
        scenario: str,
        command: Sequence[str],
        *,
        run_count: int,
        warmup_count: int,
        timeout_s: float,
        export_prefix: Optional[pathlib.Path] = None,
    ) -> SampleSummary:
        if export_prefix is not None:
            return self._measure_into(scenario, command, run_count, warmup_count, timeout_s, pathlib.Path(export_prefix))
        with tempfile.TemporaryDirectory(prefix="editor-bench-") as tmp:
            return self._measure_into(scenario, command, run_count, warmup_count, timeout_s, pathlib.Path(tmp) / scenario)

    def _measure_into(
        self,
        scenario: str,
        command: Sequence[str],
        run_count: int,
        warmup_count: int,
        timeout_s: float,
        prefix: pathlib.Path,
    ) -> SampleSummary:
        md_path = prefix.with_name(prefix.name + ".md")
        csv_path = prefix.with_name(prefix.name + ".csv")
        json_path = prefix.with_name(prefix.name + ".json")
        cmd = self.build_command(
            scenario, command,
            run_count=run_count, warmup_count=warmup_count,
            md_path=md_path, csv_path=csv_path, json_path=json_path,
        )
        # hyperfine has no per-invocation timeout; bound the whole batch instead.
        res = run(cmd, timeout_s=timeout_s * (run_count + warmup_count) + 10.0)

        failed = SampleSummary(scenario=scenario, backend=self.tag, mean_ms=None, n_ok=0, n_total=run_count)
        if res["rc"] != 0 or res["timeout"]:
            failed.errors.append(error_record(res))
            return failed

        per_run = parse_hyperfine_json(json_path.read_text(encoding="utf-8")) if json_path.exists() else None
        if per_run is not None:
            return self._from_samples(scenario, run_count, per_run)

        stats: Dict[str, Optional[float]] = {}
        if csv_path.exists():
            stats = parse_hyperfine_csv(csv_path.read_text(encoding="utf-8"))
        if stats.get("mean_ms") is None and md_path.exists():
            stats = parse_hyperfine_markdown(md_path.read_text(encoding="utf-8"))
        if stats.get("mean_ms") is None:
            failed.errors.append({"rc": res["rc"], "timeout": False, "stderr_tail": "no mean latency in hyperfine export"})
            return failed

        return SampleSummary(
            scenario=scenario,
            backend=self.tag,
            mean_ms=stats["mean_ms"],
            n_ok=run_count,
            n_total=run_count,
            median_ms=stats.get("median_ms"),
            stddev_ms=stats.get("stddev_ms"),
            min_ms=stats.get("min_ms"),
            max_ms=stats.get("max_ms"),
        )

    def _from_samples(self, scenario: str, run_count: int, per_run: Dict[str, Any]) -> SampleSummary:
        samples = per_run["samples_ms"]
        stats = summarize(samples)
        errors = [
            {"rc": code, "timeout": False, "stderr_tail": f"command exited with code {code}"}
            for code in per_run["failed_exit_codes"]
        ]
        return SampleSummary(
            scenario=scenario,
            backend=self.tag,
            mean_ms=stats["mean_ms"],
            n_ok=len(samples),
            n_total=run_count,
            median_ms=stats["median_ms"],
            stddev_ms=stats["stddev_ms"],
            min_ms=stats["min_ms"],
            max_ms=stats["max_ms"],
            p95_ms=stats["p95_ms"],
            errors=errors[:MAX_ERRORS_KEPT],
        )


# ---------- selection ----------

def detect_backend() -> str:
    return BACKEND_STATISTICAL if shutil.which(HYPERFINE) is not None else BACKEND_MANUAL


def select_backend(preference: str = BACKEND_AUTO):
    """Resolve a backend preference to a backend object. Call once per run and reuse the result."""
    if preference not in (BACKEND_AUTO, BACKEND_STATISTICAL, BACKEND_MANUAL):
        raise ValueError(f"unknown backend {preference!r}")
    if preference == BACKEND_MANUAL:
        return ManualBackend()
    path = shutil.which(HYPERFINE)
    if path is not None:
        return HyperfineBackend(path)
    if preference == BACKEND_STATISTICAL:
        raise RuntimeError(f"{HYPERFINE} not found on PATH (required by --backend {BACKEND_STATISTICAL})")
    return ManualBackend()


def measure(
    scenario_name: str,
    command: Sequence[str],
    run_count: int = 10,
    warmup_count: int = 2,
    *,
    backend=None,
    timeout_s: float = 30.0,
    export_prefix: Optional[pathlib.Path] = None,
) -> SampleSummary:
    if run_count <= 0:
        raise ValueError("run_count must be > 0")
    if warmup_count < 0:
        raise ValueError("warmup_count must be >= 0")
    if not command:
        raise ValueError("command must not be empty")
    if backend is None:
        backend = select_backend(BACKEND_AUTO)
    return backend.measure(
        scenario_name,
        list(command),
        run_count=run_count,
        warmup_count=warmup_count,
        timeout_s=timeout_s,
        export_prefix=export_prefix,
    )
