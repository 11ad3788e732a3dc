"""Tests for CPU and memory display text."""

import math

import pytest

from procpilot.formatting import (
    cpu_level,
    cpu_text,
    cpu_text_variants,
    memory_level,
    memory_text,
    memory_text_variants,
    memory_value_unit,
)


def test_cpu_text() -> None:
    """CPU renders with one decimal and a percent sign by default."""
    assert cpu_text(12.345) == "12.3%"
    assert cpu_text(12.345, decimal_places=0, percent_sign=False) == "12"


@pytest.mark.parametrize("value", [math.nan, math.inf, -5.0])
def test_cpu_text_invalid_is_zero(value: float) -> None:
    """Non-finite and negative CPU values render as zero."""
    assert cpu_text(value) == "0.0%"


def test_cpu_text_variants_dedupe() -> None:
    """Variants shrink and never repeat."""
    assert cpu_text_variants(12.3) == ["12.3%", "12%", "12"]


def test_memory_in_mb_below_switch() -> None:
    """Figures under 1000 MB stay in MB."""
    assert memory_text(824.4) == "824 MB"
    assert memory_value_unit(999.0).unit == "MB"


def test_memory_in_gb_above_switch() -> None:
    """Figures from 1000 MB are shown in GB using 1024 MB per GB."""
    value = memory_value_unit(1536.0)

    assert value.unit == "GB"
    assert value.value == "1.5"
    assert value.numeric == pytest.approx(1.5)
    assert memory_text(1536.0, gb_precision=2) == "1.50 GB"


def test_memory_text_variants() -> None:
    """Memory variants go from spaced to compact."""
    assert memory_text_variants(2048.0) == ["2.0 GB", "2.0GB", "2G"]
    assert memory_text_variants(512.0) == ["512 MB", "512MB", "512M"]


def test_memory_invalid_is_zero() -> None:
    """NaN memory renders as zero MB."""
    assert memory_text(math.nan) == "0 MB"


@pytest.mark.parametrize(
    ("usage", "level"),
    [(5.0, "low"), (20.0, "low"), (20.1, "medium"), (50.0, "medium"), (75.0, "high")],
)
def test_cpu_level(usage: float, level: str) -> None:
    """CPU thresholds are exclusive at 20% and 50%."""
    assert cpu_level(usage) == level


@pytest.mark.parametrize(
    ("usage", "level"),
    [(100.0, "low"), (500.0, "low"), (750.0, "medium"), (1000.0, "medium"), (4096.0, "high")],
)
def test_memory_level(usage: float, level: str) -> None:
    """Memory thresholds are exclusive at 500 MB and 1000 MB."""
    assert memory_level(usage) == level
