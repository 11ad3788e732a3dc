"""Configuration system for procpilot."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit


@dataclass
class SamplingConfig:
    """Refresh cadence configuration."""

    refresh_interval: float = 2.0  # Seconds between refreshes in watch mode
    warmup_interval: float = 1.0  # Seconds the warmup loop sleeps before each pass
    warmup_passes: int = 3  # Max warmup passes before giving up on a valid delta
    min_delta_interval: float = 0.1  # Shorter elapsed wall time yields 0% CPU


@dataclass
class SmoothingConfig:
    """Moving-average window configuration."""

    window_size: int = 3  # Samples per process (and for the system group)


@dataclass
class HistoryConfig:
    """Bottom-bar history configuration."""

    max_samples: int = 60  # Points kept for CPU and memory pressure graphs


@dataclass
class CacheConfig:
    """Bounded lookup cache sizes."""

    bundle_description_capacity: int = 2048
    icon_capacity: int = 1024


@dataclass
class ClassifierConfig:
    """Process classification configuration.

    app_aliases: parent app names treated as "this application"
    app_bundle_name: bundle directory name of this application
    """

    app_aliases: list[str] = field(default_factory=lambda: ["ProcessPilot", "procpilot"])
    app_bundle_name: str = "ProcessPilot.app"


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "info"
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


_VALID_LEVELS = {"debug", "info", "warning", "error"}


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procpilot"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procpilot"

    @property
    def log_path(self) -> Path:
        """JSON Lines log path."""
        return self.state_dir / "procpilot.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ["sampling", "smoothing", "history", "cache", "classifier", "logging"]:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.

        Raises:
            ValueError: If the file cannot be parsed or a value is out of range.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(data.get("sampling", {})),
            smoothing=_load_smoothing_config(data.get("smoothing", {})),
            history=_load_history_config(data.get("history", {})),
            cache=_load_cache_config(data.get("cache", {})),
            classifier=_load_classifier_config(data.get("classifier", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, using dataclass defaults for missing fields."""
    d = SamplingConfig()
    refresh_interval = data.get("refresh_interval", d.refresh_interval)
    warmup_interval = data.get("warmup_interval", d.warmup_interval)
    warmup_passes = data.get("warmup_passes", d.warmup_passes)
    min_delta_interval = data.get("min_delta_interval", d.min_delta_interval)

    if refresh_interval <= 0:
        raise ValueError(f"refresh_interval must be > 0, got {refresh_interval}")
    if warmup_interval < 0:
        raise ValueError(f"warmup_interval must be >= 0, got {warmup_interval}")
    if warmup_passes < 0:
        raise ValueError(f"warmup_passes must be >= 0, got {warmup_passes}")
    if min_delta_interval < 0:
        raise ValueError(f"min_delta_interval must be >= 0, got {min_delta_interval}")

    return SamplingConfig(
        refresh_interval=refresh_interval,
        warmup_interval=warmup_interval,
        warmup_passes=warmup_passes,
        min_delta_interval=min_delta_interval,
    )


def _load_smoothing_config(data: dict) -> SmoothingConfig:
    """Load smoothing config from TOML data."""
    window_size = data.get("window_size", SmoothingConfig().window_size)
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    return SmoothingConfig(window_size=window_size)


def _load_history_config(data: dict) -> HistoryConfig:
    """Load history config from TOML data."""
    max_samples = data.get("max_samples", HistoryConfig().max_samples)
    if max_samples < 1:
        raise ValueError(f"max_samples must be >= 1, got {max_samples}")
    return HistoryConfig(max_samples=max_samples)


def _load_cache_config(data: dict) -> CacheConfig:
    """Load cache config from TOML data."""
    d = CacheConfig()
    bundle_capacity = data.get("bundle_description_capacity", d.bundle_description_capacity)
    icon_capacity = data.get("icon_capacity", d.icon_capacity)

    if bundle_capacity < 1:
        raise ValueError(f"bundle_description_capacity must be >= 1, got {bundle_capacity}")
    if icon_capacity < 1:
        raise ValueError(f"icon_capacity must be >= 1, got {icon_capacity}")

    return CacheConfig(
        bundle_description_capacity=bundle_capacity,
        icon_capacity=icon_capacity,
    )


def _load_classifier_config(data: dict) -> ClassifierConfig:
    """Load classifier config from TOML data."""
    d = ClassifierConfig()
    return ClassifierConfig(
        app_aliases=list(data.get("app_aliases", d.app_aliases)),
        app_bundle_name=data.get("app_bundle_name", d.app_bundle_name),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = data.get("level", d.level)
    if level not in _VALID_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {_VALID_LEVELS}")
    return LoggingConfig(
        level=level,
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )
