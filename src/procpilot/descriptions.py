"""Static process knowledge: descriptions, system and critical name sets.

Everything here is built once at import time and never mutated. The
ProcessCatalog bundles the tables with a prefix index so classifiers can
share one instance by reference.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

UNKNOWN_DESCRIPTION = "Unknown process"

DESCRIPTIONS: Mapping[str, str] = MappingProxyType(
    {
        # Kernel and core system
        "kernel_task": "macOS kernel, the core of the system (cannot be terminated)",
        "launchd": "System and service management daemon (cannot be terminated)",
        "WindowServer": "Screen drawing and window management (cannot be terminated)",
        "loginwindow": "Login window and session management",
        "SystemUIServer": "Menu bar and system UI management",
        "Dock": "Dock and application switching",
        "Finder": "File management and desktop",
        # Spotlight
        "mds": "Spotlight metadata server",
        "mds_stores": "Spotlight index builder",
        "mdworker": "Spotlight indexing worker",
        "mdworker_shared": "Spotlight shared indexing worker",
        # Audio and video
        "coreaudiod": "System audio management",
        "audioclocksyncd": "Audio clock synchronization service",
        "VDCAssistant": "Camera (FaceTime) control",
        "avconferenced": "Video conferencing service",
        # Network
        "networkd": "Network connection management",
        "mDNSResponder": "Bonjour and local network discovery",
        "configd": "System configuration daemon",
        "airportd": "Wi-Fi management",
        "WiFiAgent": "Wi-Fi connection assistant",
        "bluetoothd": "Bluetooth management",
        # Security
        "securityd": "Security framework",
        "trustd": "Certificate trust evaluation service",
        "keybagd": "Encryption key management",
        "TouchBarServer": "Touch Bar management",
        "biomed": "Biometric authentication management",
        "secd": "Security daemon",
        # iCloud and sync
        "cloudd": "iCloud sync service",
        "cloudpaird": "iCloud pairing",
        "cloudphotod": "iCloud Photos sync",
        "bird": "iCloud Drive sync",
        "nsurlsessiond": "Background downloads",
        "assistantd": "Siri assistant",
        # Notifications and messaging
        "apsd": "Apple Push Notification Service",
        "notificationcenter": "Notification Center",
        "usernoted": "User notification daemon",
        "UserNotificationCenter": "Notification display management",
        "imagent": "iMessage daemon",
        "identityservicesd": "Apple ID authentication service",
        # Graphics and GPU
        "MTLCompilerService": "Metal shader compiler",
        "gpuinfod": "GPU information service",
        "distnoted": "Distributed notification service",
        # Power and performance
        "powerd": "Power management daemon",
        "thermalmonitord": "Thermal monitoring service",
        "coreduetd": "Battery optimization",
        "dasd": "Duet activity scheduler",
        # Input and accessibility
        "hidd": "Human interface device management",
        "universalaccessd": "Accessibility service",
        "talagent": "Text input assistant",
        # Storage and disks
        "fseventsd": "File system event monitor",
        "diskarbitrationd": "Disk mount management",
        "diskmanagementd": "Disk management service",
        "fsck_apfs": "APFS file system check",
        # Application services
        "lsd": "Launch Services daemon",
        "coreservicesd": "Core services management",
        "pbs": "Pasteboard service",
        "sharedfilelistd": "Shared file list management",
        "iconservicesagent": "Icon cache service",
        # Time Machine
        "backupd": "Time Machine backup",
        "backupd-helper": "Time Machine helper",
        # Xcode and developer tools
        "Xcode": "Integrated development environment",
        "sourcekit-servi": "Swift language service",
        "SourceKitService": "Code completion and analysis",
        "swiftc": "Swift compiler",
        "clang": "C/C++/Objective-C compiler",
        "lldb": "Debugger",
        "Simulator": "iOS/watchOS simulator",
        "IBAgent": "Interface Builder agent",
        "xcrun": "Xcode command line tool runner",
        # Browsers
        "Safari": "Safari web browser",
        "com.apple.WebKi": "Safari rendering engine",
        "Safari Web Cont": "Safari web content",
        "Google Chrome": "Chrome web browser",
        "Google Chrome H": "Chrome helper process",
        "firefox": "Firefox web browser",
        # Common applications
        "Mail": "Mail client",
        "Calendar": "Calendar app",
        "Notes": "Notes app",
        "Reminders": "Reminders app",
        "Music": "Music app",
        "Photos": "Photos app",
        "Preview": "File preview",
        "TextEdit": "Text editor",
        "Terminal": "Terminal",
        "Activity Monito": "Activity Monitor",
        "System Preferen": "System Preferences",
        "App Store": "App Store",
        # Runtimes
        "node": "Node.js runtime",
        "python": "Python interpreter",
        "python3": "Python 3 interpreter",
        "ruby": "Ruby interpreter",
        "java": "Java virtual machine",
        "docker": "Docker container engine",
        "code": "Visual Studio Code",
        "code-helper": "VS Code helper",
        # Other
        "cfprefsd": "Preferences file management",
        "logd": "System logging service",
        "syslogd": "System log daemon",
        "cron": "Scheduled job runner",
        "cupsd": "Printing service",
        "locationd": "Location services",
        "mediaremoted": "Media remote control",
        "softwareupdated": "Software update",
        "syspolicyd": "System policy management",
        "commerce": "App Store purchase service",
        "storeaccountd": "App Store account management",
        "storeassetd": "App Store asset management",
    }
)

# Processes whose termination may destabilize the system
SYSTEM_PROCESSES = frozenset(
    {
        "kernel_task",
        "launchd",
        "WindowServer",
        "loginwindow",
        "SystemUIServer",
        "Dock",
        "Finder",
        "mds",
        "mds_stores",
        "coreaudiod",
        "networkd",
        "securityd",
        "trustd",
        "keybagd",
        "configd",
        "powerd",
        "thermalmonitord",
        "hidd",
        "fseventsd",
        "diskarbitrationd",
        "lsd",
        "coreservicesd",
        "cfprefsd",
        "logd",
        "syslogd",
        "apsd",
        "cloudd",
        "identityservicesd",
        "bluetoothd",
        "airportd",
        "locationd",
    }
)

# Processes that must never be terminated
CRITICAL_PROCESSES = frozenset({"kernel_task", "launchd", "WindowServer"})


def _build_prefix_index(
    descriptions: Mapping[str, str],
) -> Mapping[str, tuple[tuple[str, str], ...]]:
    """Index lowercased keys by first character, longest key first."""
    buckets: dict[str, list[tuple[str, str]]] = {}
    for key, value in descriptions.items():
        normalized = key.lower()
        if not normalized:
            continue
        buckets.setdefault(normalized[0], []).append((normalized, value))
    return MappingProxyType(
        {
            initial: tuple(sorted(candidates, key=lambda c: len(c[0]), reverse=True))
            for initial, candidates in buckets.items()
        }
    )


def _matches_set(name: str, names: frozenset[str]) -> bool:
    return name in names or any(name.startswith(n) for n in names)


@dataclass(frozen=True, eq=False)
class ProcessCatalog:
    """Immutable lookup tables shared by every classifier."""

    descriptions: Mapping[str, str] = field(default_factory=lambda: DESCRIPTIONS)
    system_processes: frozenset[str] = SYSTEM_PROCESSES
    critical_processes: frozenset[str] = CRITICAL_PROCESSES
    _prefix_index: Mapping[str, tuple[tuple[str, str], ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_prefix_index", _build_prefix_index(self.descriptions))

    def is_system_name(self, name: str) -> bool:
        """Exact or prefix match against the system set ("mds_stores.501" matches)."""
        return _matches_set(name, self.system_processes)

    def is_critical_name(self, name: str) -> bool:
        """Exact or prefix match against the critical set."""
        return _matches_set(name, self.critical_processes)

    def describe_static(self, name: str) -> str | None:
        """Look a name up in the dictionary, then by prefix in either direction.

        Returns:
            Description, or None if neither lookup matches.
        """
        name = name.strip()
        exact = self.descriptions.get(name)
        if exact is not None:
            return exact

        normalized = name.lower()
        if not normalized:
            return None
        for key, value in self._prefix_index.get(normalized[0], ()):
            if normalized.startswith(key) or key.startswith(normalized):
                return value
        return None


DEFAULT_CATALOG = ProcessCatalog()
