"""
Result batch parsing and storage fan-out for NetSmog Web.

A batch is ``{group: {target: [ms, ...]}}`` where ``null`` marks a lost probe.
Each (group, target) list becomes one storage write on series ``group.target``.
"""
from __future__ import annotations

import json
import math
from typing import Dict, List, Optional

from netsmog.errors import ProtocolError, StorageError
from netsmog.util.logging import get_logger, log_exception
from netsmog_web.storage import COLUMNS, SampleStore

logger = get_logger(__name__)

ResultBatch = Dict[str, Dict[str, List[Optional[float]]]]


def _sample(value, where: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"{where}: samples must be numbers or null")
    value = float(value)
    if not math.isfinite(value):
        raise ProtocolError(f"{where}: samples must be finite")
    return value


def parse_result_batch(raw: bytes) -> ResultBatch:
    """
    Decode and validate a POSTed result batch.

    Raises:
        ProtocolError: Body is not JSON or does not have the batch shape.
    """
    try:
        doc = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"results are not valid JSON: {exc}") from exc
    if not isinstance(doc, dict):
        raise ProtocolError("results must be a JSON object")

    batch: ResultBatch = {}
    for group, targets in doc.items():
        if not isinstance(targets, dict):
            raise ProtocolError(f"group {group!r} must map target names to sample lists")
        batch[group] = {}
        for target, samples in targets.items():
            where = f"{group}.{target}"
            if not isinstance(samples, list):
                raise ProtocolError(f"{where}: samples must be a list")
            batch[group][target] = [_sample(v, where) for v in samples]
    return batch


def store_results(store: SampleStore, worker: str, batch: ResultBatch) -> int:
    """
    Write every sample list of ``batch`` labelled with ``worker``.

    Storage failures are logged per series and do not stop the other writes.

    Returns:
        Number of rows written.
    """
    written = 0
    for group, targets in batch.items():
        for target, samples in targets.items():
            series = f"{group}.{target}"
            rows = [[worker, value] for value in samples]
            try:
                written += store.write_series(series, COLUMNS, rows)
            except StorageError:
                log_exception(logger, f"error writing series {series}", error_type="storage_write",
                              worker=worker, series=series)
    return written
