"""Tests for the static process catalog."""

from procpilot.descriptions import (
    CRITICAL_PROCESSES,
    DEFAULT_CATALOG,
    DESCRIPTIONS,
    SYSTEM_PROCESSES,
    ProcessCatalog,
)


def test_critical_process_detection() -> None:
    """Critical names are detected, ordinary apps are not."""
    assert DEFAULT_CATALOG.is_critical_name("kernel_task")
    assert DEFAULT_CATALOG.is_critical_name("WindowServer")
    assert not DEFAULT_CATALOG.is_critical_name("Safari")


def test_system_process_prefix_detection() -> None:
    """System names match exactly or by prefix."""
    assert DEFAULT_CATALOG.is_system_name("mds_stores.501")
    assert DEFAULT_CATALOG.is_system_name("launchd")
    assert not DEFAULT_CATALOG.is_system_name("Google Chrome")


def test_critical_is_subset_of_system() -> None:
    """Every critical process is also a system process."""
    assert CRITICAL_PROCESSES <= SYSTEM_PROCESSES


def test_exact_description() -> None:
    """Exact dictionary keys resolve directly."""
    assert DEFAULT_CATALOG.describe_static("Safari") == "Safari web browser"


def test_prefix_prefers_longest_key() -> None:
    """Prefix matches try longer keys first."""
    assert DEFAULT_CATALOG.describe_static("mdworker_shared.2") == DESCRIPTIONS["mdworker_shared"]
    assert DEFAULT_CATALOG.describe_static("mdworker.1") == DESCRIPTIONS["mdworker"]


def test_truncated_name_matches_longer_key() -> None:
    """A name that is a prefix of a key matches that key (ps truncation)."""
    assert DEFAULT_CATALOG.describe_static("backupd-hel") == DESCRIPTIONS["backupd-helper"]


def test_unknown_returns_none() -> None:
    """Misses return None so callers can fall back."""
    assert DEFAULT_CATALOG.describe_static("unknown-process") is None
    assert DEFAULT_CATALOG.describe_static("") is None


def test_custom_catalog() -> None:
    """A catalog can be built from other tables."""
    catalog = ProcessCatalog(
        descriptions={"widgetd": "Widget daemon"},
        system_processes=frozenset({"widgetd"}),
        critical_processes=frozenset(),
    )
    assert catalog.describe_static("WIDGETD") == "Widget daemon"
    assert catalog.is_system_name("widgetd")
    assert not catalog.is_critical_name("widgetd")
