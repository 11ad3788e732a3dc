"""Application icon lookup for executables living inside bundles.

An executable path maps to its outermost bundle; the icon is the file named
by CFBundleIconFile (or CFBundleIconName) under Contents/Resources. Results
and misses are cached per bundle path, and async loads for the same bundle
are coalesced.
"""

from pathlib import Path

import structlog

from procpilot.bundles import app_bundle_path, read_info_plist
from procpilot.cache import AsyncBoundedCache, BoundedCache

log = structlog.get_logger()

ICON_KEYS = ("CFBundleIconFile", "CFBundleIconName")
DEFAULT_ICON_EXTENSION = ".icns"


def resolve_icon_file(bundle_path: str) -> str | None:
    """Return the icon file path for a bundle directory, or None."""
    bundle = Path(bundle_path)
    if not bundle.is_dir():
        return None

    info = read_info_plist(bundle_path)
    if info is None:
        return None

    resources = bundle / "Contents" / "Resources"
    for key in ICON_KEYS:
        name = info.get(key)
        if not isinstance(name, str) or not name:
            continue
        candidate = resources / name
        if not candidate.suffix:
            candidate = candidate.with_name(candidate.name + DEFAULT_ICON_EXTENSION)
        if candidate.is_file():
            return str(candidate)
    return None


class IconProvider:
    """Cached executable path to icon file resolution.

    Args:
        cache_capacity: Max bundles held in each of the hit and miss sets
    """

    def __init__(self, cache_capacity: int = 1024) -> None:
        self.cache: BoundedCache[str, str] = BoundedCache(cache_capacity)
        self._async_cache = AsyncBoundedCache(self.cache)

    @staticmethod
    def bundle_for(executable_path: str | None) -> str | None:
        if not executable_path:
            return None
        trimmed = executable_path.strip()
        if not trimmed:
            return None
        return app_bundle_path(trimmed)

    def cached_icon(self, executable_path: str | None) -> str | None:
        """Icon path if already cached; never touches the filesystem."""
        bundle = self.bundle_for(executable_path)
        if bundle is None:
            return None
        return self.cache.get(bundle)

    def icon(self, executable_path: str | None) -> str | None:
        """Icon path, loading synchronously on a cache miss."""
        bundle = self.bundle_for(executable_path)
        if bundle is None:
            return None

        cached = self.cache.get(bundle)
        if cached is not None:
            return cached
        if self.cache.is_miss(bundle):
            return None
        return self._load(bundle)

    async def load_icon(self, executable_path: str | None) -> str | None:
        """Icon path, loading in the default executor; concurrent calls share a load."""
        bundle = self.bundle_for(executable_path)
        if bundle is None:
            return None
        return await self._async_cache.get_or_load(bundle, resolve_icon_file)

    def _load(self, bundle: str) -> str | None:
        icon_file = resolve_icon_file(bundle)
        if icon_file is None:
            self.cache.mark_miss(bundle)
            log.debug("icon_missing", bundle=bundle)
            return None
        self.cache.put(bundle, icon_file)
        return icon_file
