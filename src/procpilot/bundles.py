"""macOS bundle path helpers and Info.plist access."""

import plistlib
from pathlib import PurePosixPath

import structlog

from procpilot.models import BUNDLE_MARKERS, BUNDLE_SUFFIXES

log = structlog.get_logger()

# Search order for the icon bundle path
_ICON_MARKERS = (".app/", ".appex/", ".xpc/")


def bundle_root(executable_path: str) -> str | None:
    """Walk upward from an executable to the innermost enclosing bundle.

    Returns:
        Normalized bundle directory path, or None if no ancestor is a bundle.
    """
    current = PurePosixPath(executable_path)
    root = PurePosixPath("/")
    while current != root and str(current) != ".":
        if str(current).lower().endswith(BUNDLE_SUFFIXES):
            return str(current)
        current = current.parent
    return None


def app_bundle_path(executable_path: str) -> str | None:
    """Return the outermost bundle path used for icon lookups.

    The path is cut after the first bundle marker; a path that itself ends
    with a bundle suffix is returned unchanged.
    """
    lower = executable_path.lower()
    for marker in _ICON_MARKERS:
        index = lower.find(marker)
        if index >= 0:
            return executable_path[: index + len(marker) - 1]
    if lower.endswith(BUNDLE_SUFFIXES):
        return executable_path
    return None


def has_bundle_marker(path: str) -> bool:
    """Return True if the path passes through a bundle directory."""
    lower = path.lower()
    return any(m in lower for m in BUNDLE_MARKERS)


def read_info_plist(bundle_path: str) -> dict | None:
    """Read <bundle>/Contents/Info.plist.

    Returns:
        The plist dictionary, or None if the file is missing or malformed.
    """
    plist_path = PurePosixPath(bundle_path) / "Contents" / "Info.plist"
    try:
        with open(plist_path, "rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        log.debug("info_plist_unreadable", bundle=bundle_path, error=str(e))
        return None
    return data if isinstance(data, dict) else None


def describe_bundle(info: dict) -> str | None:
    """Build "Name (Identifier)", "Name" or "Identifier" from Info.plist keys."""
    name = info.get("CFBundleDisplayName")
    if not isinstance(name, str) or not name:
        name = info.get("CFBundleName")
    identifier = info.get("CFBundleIdentifier")

    has_name = isinstance(name, str) and bool(name)
    has_identifier = isinstance(identifier, str) and bool(identifier)
    if has_name and has_identifier:
        return f"{name} ({identifier})"
    if has_name:
        return name
    if has_identifier:
        return identifier
    return None
