"""Process classification: system/critical flags, source tag, description.

Classification never fails. Unknown names fall back to a fixed description
and an "unknown" source. Bundle metadata lookups are the only expensive
step; their results (including misses) go through a BoundedCache keyed by
the bundle root path.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace

import structlog

from procpilot.bundles import bundle_root, describe_bundle, has_bundle_marker, read_info_plist
from procpilot.cache import BoundedCache, CacheState
from procpilot.descriptions import DEFAULT_CATALOG, UNKNOWN_DESCRIPTION, ProcessCatalog
from procpilot.models import ProcessRecord, Source, looks_like_bundle

log = structlog.get_logger()

SYSTEM_PATH_PREFIXES = ("/System/", "/usr/libexec/", "/usr/sbin/", "/sbin/")
COMMAND_LINE_PATH_PREFIXES = (
    "/usr/bin/",
    "/bin/",
    "/usr/local/",
    "/opt/homebrew/",
    "/opt/local/",
    "/Library/Developer/CommandLineTools/",
)


def is_system_path(path: str | None) -> bool:
    """Return True for executables under the fixed system directories."""
    return bool(path) and path.startswith(SYSTEM_PATH_PREFIXES)  # type: ignore[union-attr]


@dataclass(frozen=True)
class Classification:
    """Result of classifying one process."""

    is_system: bool
    is_critical: bool
    description: str
    source: Source


class ProcessClassifier:
    """Classifies processes against a shared, immutable ProcessCatalog.

    Args:
        catalog: Static tables (descriptions, system and critical sets)
        bundle_cache: Cache for bundle descriptions, shared across threads
        app_aliases: Parent app names that mean "this application"
        app_bundle_name: This application's bundle directory name
    """

    def __init__(
        self,
        catalog: ProcessCatalog = DEFAULT_CATALOG,
        bundle_cache: BoundedCache[str, str] | None = None,
        app_aliases: Iterable[str] = ("ProcessPilot", "procpilot"),
        app_bundle_name: str = "ProcessPilot.app",
    ) -> None:
        self.catalog = catalog
        self.bundle_cache: BoundedCache[str, str] = (
            bundle_cache if bundle_cache is not None else BoundedCache(2048)
        )
        self._app_aliases = frozenset(alias.casefold() for alias in app_aliases)
        self.app_bundle_name = app_bundle_name

    def classify(
        self,
        name: str,
        executable_path: str | None = None,
        parent_app: str | None = None,
    ) -> Classification:
        """Classify a process by name and resolved path."""
        is_system = self.catalog.is_system_name(name) or is_system_path(executable_path)
        return Classification(
            is_system=is_system,
            is_critical=self.catalog.is_critical_name(name),
            description=self.describe(name, executable_path),
            source=self.resolve_source(is_system, executable_path, parent_app),
        )

    def resolve_source(
        self,
        is_system: bool,
        executable_path: str | None,
        parent_app: str | None,
    ) -> Source:
        """Tag where a process comes from; the first matching rule wins."""
        if is_system:
            return Source.SYSTEM
        if parent_app and parent_app.casefold() in self._app_aliases:
            return Source.CURRENT_APP
        if not executable_path:
            return Source.UNKNOWN
        if is_system_path(executable_path):
            return Source.SYSTEM
        if has_bundle_marker(executable_path):
            if self.app_bundle_name and self.app_bundle_name in executable_path:
                return Source.CURRENT_APP
            return Source.APPLICATION
        if executable_path.startswith(COMMAND_LINE_PATH_PREFIXES):
            return Source.COMMAND_LINE
        return Source.UNKNOWN

    def describe(self, name: str, executable_path: str | None = None) -> str:
        """Human description: dictionary, prefix match, bundle metadata, fallback."""
        static = self.catalog.describe_static(name)
        if static is not None:
            return static
        if executable_path and looks_like_bundle(executable_path):
            bundle = self.bundle_description(executable_path)
            if bundle is not None:
                return bundle
        return UNKNOWN_DESCRIPTION

    def bundle_description(self, executable_path: str) -> str | None:
        """Describe the bundle enclosing an executable, cached by bundle root."""
        root = bundle_root(executable_path)
        if root is None:
            return None

        state, cached = self.bundle_cache.lookup(root)
        if state is CacheState.HIT:
            return cached
        if state is CacheState.MISS:
            return None

        info = read_info_plist(root)
        description = describe_bundle(info) if info is not None else None
        if description is None:
            self.bundle_cache.mark_miss(root)
            return None

        self.bundle_cache.put(root, description)
        log.debug("bundle_described", bundle=root, description=description)
        return description

    def apply(self, records: Iterable[ProcessRecord]) -> list[ProcessRecord]:
        """Return copies of the records with classification fields filled in."""
        classified = []
        for record in records:
            c = self.classify(record.name, record.executable_path, record.parent_app)
            classified.append(
                replace(
                    record,
                    is_system=c.is_system,
                    is_critical=c.is_critical,
                    description=c.description,
                    source=c.source,
                )
            )
        return classified
