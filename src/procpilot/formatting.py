"""Formatting utilities for consistent CPU and memory text across CLI output."""

import math
from collections.abc import Iterable
from typing import NamedTuple

HIGH_CPU_THRESHOLD = 50.0
MEDIUM_CPU_THRESHOLD = 20.0
HIGH_MEMORY_THRESHOLD_MB = 1000.0
MEDIUM_MEMORY_THRESHOLD_MB = 500.0
MEMORY_DISPLAY_SWITCH_MB = 1000.0

# Rich styles per usage level
LEVEL_STYLES = {"low": "green", "medium": "yellow", "high": "red"}


class MemoryValue(NamedTuple):
    """Formatted memory figure split into value text, unit and raw number."""

    value: str
    unit: str
    numeric: float


def _normalized(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, value)


def _format(value: float, precision: int) -> str:
    return f"{value:.{max(0, precision)}f}"


def _deduplicated(values: Iterable[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        if value and value not in result:
            result.append(value)
    return result


def cpu_level(usage: float) -> str:
    """Return "low", "medium" or "high" for a CPU percentage."""
    if usage > HIGH_CPU_THRESHOLD:
        return "high"
    if usage > MEDIUM_CPU_THRESHOLD:
        return "medium"
    return "low"


def memory_level(usage_mb: float) -> str:
    """Return "low", "medium" or "high" for a memory figure in MB."""
    if usage_mb > HIGH_MEMORY_THRESHOLD_MB:
        return "high"
    if usage_mb > MEDIUM_MEMORY_THRESHOLD_MB:
        return "medium"
    return "low"


def cpu_text(usage: float, decimal_places: int = 1, percent_sign: bool = True) -> str:
    """Format a CPU percentage, e.g. "12.3%".

    Non-finite and negative values render as zero.
    """
    value = _format(_normalized(usage), decimal_places)
    return f"{value}%" if percent_sign else value


def cpu_text_variants(usage: float) -> list[str]:
    """CPU text from most detailed to most compact: "12.3%", "12%", "12"."""
    return _deduplicated(
        [
            cpu_text(usage, 1, True),
            cpu_text(usage, 0, True),
            cpu_text(usage, 0, False),
        ]
    )


def memory_value_unit(usage_mb: float, gb_precision: int = 1, mb_precision: int = 0) -> MemoryValue:
    """Split a memory figure into value and unit.

    Figures of 1000 MB and above are shown in GB (divided by 1024).
    """
    usage = _normalized(usage_mb)
    if usage >= MEMORY_DISPLAY_SWITCH_MB:
        gb = usage / 1024
        return MemoryValue(_format(gb, gb_precision), "GB", gb)
    return MemoryValue(_format(usage, mb_precision), "MB", usage)


def memory_text_variants(usage_mb: float, gb_precision: int = 1, mb_precision: int = 0) -> list[str]:
    """Memory text from most detailed to most compact: "1.2 GB", "1.2GB", "1G"."""
    value, unit, numeric = memory_value_unit(usage_mb, gb_precision, mb_precision)
    short_unit = "G" if unit == "GB" else "M"
    return _deduplicated(
        [
            f"{value} {unit}",
            f"{value}{unit}",
            f"{_format(numeric, 0)}{short_unit}",
        ]
    )


def memory_text(usage_mb: float, gb_precision: int = 1, mb_precision: int = 0) -> str:
    """Primary memory text, e.g. "824 MB" or "1.50 GB"."""
    variants = memory_text_variants(usage_mb, gb_precision, mb_precision)
    return variants[0] if variants else "0 MB"
