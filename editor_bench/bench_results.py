"""Run directories and the ``results.txt`` artifact.

A run directory is ``<results_root>/<label>_<YYYYmmdd_HHMMSS>``. Its
``results.txt`` holds ``#`` header lines followed by one tab-separated line
per scenario::

    cold_start	mean_ms=41.207	n_ok=10	n_total=10	backend=manual	median_ms=40.911

``mean_ms=NA`` marks a scenario that could not be measured.
"""
from __future__ import annotations

import datetime as dt
import pathlib
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO, Tuple

from .bench_stats import fmt_ms, numeric

RESULTS_FILENAME = "results.txt"
MANIFEST_FILENAME = "manifest.json"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

OPTIONAL_FIELDS = ("median_ms", "stddev_ms", "min_ms", "max_ms", "p95_ms")

_SUFFIX_RE = re.compile(r"^(\d{8}_\d{6}|\d+)$")


@dataclass
class SampleSummary:
    scenario: str
    backend: str
    mean_ms: Optional[float]
    n_ok: int
    n_total: int
    median_ms: Optional[float] = None
    stddev_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.mean_ms is not None

    @property
    def n_failed(self) -> int:
        return max(0, self.n_total - self.n_ok)


def format_result_line(summary: SampleSummary) -> str:
    parts = [
        summary.scenario,
        f"mean_ms={fmt_ms(summary.mean_ms, 3)}",
        f"n_ok={summary.n_ok}",
        f"n_total={summary.n_total}",
        f"backend={summary.backend}",
    ]
    for key in OPTIONAL_FIELDS:
        value = getattr(summary, key)
        if value is not None:
            parts.append(f"{key}={fmt_ms(value, 3)}")
    return "\t".join(parts)


def parse_result_line(line: str) -> Optional[SampleSummary]:
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    cells = text.split("\t")
    scenario = cells[0].strip()
    fields: Dict[str, str] = {}
    for cell in cells[1:]:
        key, sep, value = cell.partition("=")
        if sep:
            fields[key.strip()] = value.strip()
    if not scenario or "mean_ms" not in fields:
        return None
    try:
        n_ok = int(fields.get("n_ok", "0"))
        n_total = int(fields.get("n_total", "0"))
    except ValueError:
        return None
    summary = SampleSummary(
        scenario=scenario,
        backend=fields.get("backend", "unknown"),
        mean_ms=numeric(fields["mean_ms"]),
        n_ok=n_ok,
        n_total=n_total,
    )
    for key in OPTIONAL_FIELDS:
        setattr(summary, key, numeric(fields.get(key)))
    return summary


def write_header(fh: TextIO, *, label: str, stamp: str, backend: str, run_count: int, warmup_count: int) -> None:
    fh.write("# Editor Benchmark Results\n")
    fh.write(f"# date: {dt.datetime.now().astimezone().isoformat(timespec='seconds')}\n")
    fh.write(f"# label: {label}\n")
    fh.write(f"# timestamp: {stamp}\n")
    fh.write(f"# backend: {backend}\n")
    fh.write(f"# runs: {run_count}\n")
    fh.write(f"# warmup: {warmup_count}\n")
    fh.flush()


def append_result(fh: TextIO, summary: SampleSummary) -> None:
    fh.write(format_result_line(summary) + "\n")
    fh.flush()


def read_header(path: pathlib.Path) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.startswith("#"):
            continue
        key, sep, value = line[1:].partition(":")
        if sep:
            out[key.strip()] = value.strip()
    return out


def read_results(run_dir: pathlib.Path) -> List[SampleSummary]:
    path = pathlib.Path(run_dir) / RESULTS_FILENAME
    if not path.exists():
        raise FileNotFoundError(f"missing {RESULTS_FILENAME} in {run_dir}")
    out: List[SampleSummary] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        summary = parse_result_line(line)
        if summary is not None:
            out.append(summary)
    return out


# ---------- run directories ----------

def new_stamp(now: Optional[dt.datetime] = None) -> str:
    return (now or dt.datetime.now()).strftime(TIMESTAMP_FORMAT)


def run_dir_name(label: str, stamp: str) -> str:
    return f"{label}_{stamp}"


def validate_label(label: str) -> str:
    text = (label or "").strip()
    if not text:
        raise ValueError("label must not be empty")
    if text in (".", "..") or "/" in text or "\\" in text:
        raise ValueError(f"label must be a plain name, got {label!r}")
    return text


def _suffix_key(suffix: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in suffix.split("_") if part)


def runs_for_label(results_root: pathlib.Path, label: str) -> List[pathlib.Path]:
    """Run directories for ``label``, oldest first."""
    root = pathlib.Path(results_root)
    if not root.is_dir():
        return []
    prefix = f"{label}_"
    found: List[Tuple[Tuple[int, ...], str, pathlib.Path]] = []
    for child in root.iterdir():
        if not child.is_dir() or not child.name.startswith(prefix):
            continue
        suffix = child.name[len(prefix):]
        # A whole stamp only; "after" must not pick up "after_2_<stamp>" or "after_v2_<stamp>".
        if not _SUFFIX_RE.match(suffix):
            continue
        found.append((_suffix_key(suffix), child.name, child))
    found.sort()
    return [path for _, _, path in found]


def find_latest_run(results_root: pathlib.Path, label: str) -> pathlib.Path:
    runs = runs_for_label(results_root, label)
    if not runs:
        raise FileNotFoundError(f"no runs found for label {label!r} under {results_root}")
    return runs[-1]
