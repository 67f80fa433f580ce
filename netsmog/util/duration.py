"""Duration parsing helpers for config values and CLI arguments."""

from __future__ import annotations

from typing import Any, Optional


_MULTIPLIERS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_duration_to_seconds(spec: Optional[Any]) -> Optional[float]:
    """Parse values like 30, '30', '500ms', '10m', '2h', returning seconds as float.

    Raises ValueError for unparseable values, which argparse also reports as
    an invalid argument when used as a ``type=`` callable.
    """

    if spec is None:
        return None
    if isinstance(spec, bool):
        raise ValueError(f"Invalid duration {spec!r}")
    if isinstance(spec, (int, float)):
        return float(spec)
    text = str(spec).strip().lower()
    if not text:
        return None
    if text.endswith("ms"):
        unit, value_part = "ms", text[:-2]
    elif text[-1].isalpha():
        unit, value_part = text[-1], text[:-1]
    else:
        unit, value_part = "s", text
    if unit not in _MULTIPLIERS:
        raise ValueError(f"Unsupported duration suffix '{unit}'")
    try:
        value = float(value_part)
    except ValueError as exc:
        raise ValueError(f"Invalid duration '{spec}'") from exc
    return value * _MULTIPLIERS[unit]
