"""Latency summaries for stored series."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import numpy as np


def summarize(values: Iterable[Optional[float]]) -> Dict[str, Any]:
    """Count, loss and latency percentiles (ms) of a list of samples.

    ``None`` entries are lost probes; they count toward ``loss_pct`` only.
    """
    values = list(values)
    total = len(values)
    arr = np.asarray([v for v in values if v is not None], dtype=np.float64)
    lost = total - int(arr.size)
    out: Dict[str, Any] = {
        "count": total,
        "lost": lost,
        "loss_pct": round(100.0 * lost / total, 2) if total else 0.0,
        "min": None,
        "median": None,
        "p90": None,
        "max": None,
    }
    if arr.size:
        out.update(
            min=float(arr.min()),
            median=float(np.median(arr)),
            p90=float(np.percentile(arr, 90)),
            max=float(arr.max()),
        )
    return out


def summarize_rows(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Overall and per-worker summaries of ``fetch_series`` rows."""
    by_worker: Dict[str, List[Optional[float]]] = {}
    for row in rows:
        by_worker.setdefault(row["worker"], []).append(row["value"])
    return {
        "all": summarize(row["value"] for row in rows),
        "workers": {worker: summarize(vals) for worker, vals in sorted(by_worker.items())},
    }
