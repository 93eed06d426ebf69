"""Latency aggregation shared by the timing backends and the comparison.

All values are milliseconds. ``None`` stands for "not measured" and renders as
``NA``; it is never coerced to zero.
"""
from __future__ import annotations

import math
import statistics
from typing import Any, Dict, Optional, Sequence


def percentile_nearest_rank(samples: Sequence[float], p: float) -> Optional[float]:
    """Smallest sample with at least ``p`` (0..1) of the samples at or below it."""
    ranked = sorted(map(float, samples))
    if not ranked:
        return None
    p = min(1.0, max(0.0, float(p)))
    idx = max(0, math.ceil(p * len(ranked)) - 1)
    return ranked[min(idx, len(ranked) - 1)]


def summarize(samples: Sequence[float]) -> Dict[str, Any]:
    """Aggregate per-invocation latencies (ms). Empty input yields all-None stats."""
    if not samples:
        return {
            "n": 0,
            "mean_ms": None,
            "median_ms": None,
            "stddev_ms": None,
            "min_ms": None,
            "max_ms": None,
            "p95_ms": None,
        }
    xs = sorted(map(float, samples))
    return {
        "n": len(xs),
        "mean_ms": float(sum(xs) / len(xs)),
        "median_ms": float(statistics.median(xs)),
        "stddev_ms": float(statistics.stdev(xs)) if len(xs) > 1 else None,
        "min_ms": xs[0],
        "max_ms": xs[-1],
        "p95_ms": percentile_nearest_rank(xs, 0.95),
    }


def numeric(v: Any) -> Optional[float]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, (int, float)):
        x = float(v)
        if math.isnan(x) or math.isinf(x):
            return None
        return x
    if isinstance(v, str):
        s = v.strip()
        if not s or s.upper() == "NA":
            return None
        try:
            x = float(s)
        except ValueError:
            return None
        if math.isnan(x) or math.isinf(x):
            return None
        return x
    return None


def delta_ms(before: Optional[float], after: Optional[float]) -> Optional[float]:
    if before is None or after is None:
        return None
    return after - before


def delta_pct(before: Optional[float], after: Optional[float]) -> Optional[float]:
    # Relative change is undefined against a zero or missing baseline.
    if before is None or after is None or before == 0:
        return None
    return (after - before) / before * 100.0


def fmt_ms(v: Any, digits: int = 2) -> str:
    if v is None:
        return "NA"
    if isinstance(v, float):
        return f"{v:.{digits}f}"
    return str(v)
