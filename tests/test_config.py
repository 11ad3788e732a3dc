"""Tests for configuration system."""

import pytest

from procpilot.config import (
    CacheConfig,
    ClassifierConfig,
    Config,
    HistoryConfig,
    SamplingConfig,
    SmoothingConfig,
)


def test_sampling_config_defaults():
    """SamplingConfig has correct defaults."""
    config = SamplingConfig()
    assert config.refresh_interval == 2.0
    assert config.warmup_interval == 1.0
    assert config.warmup_passes == 3
    assert config.min_delta_interval == 0.1


def test_smoothing_and_history_defaults():
    """Window and history caps have correct defaults."""
    assert SmoothingConfig().window_size == 3
    assert HistoryConfig().max_samples == 60


def test_cache_config_defaults():
    """CacheConfig has correct capacities."""
    config = CacheConfig()
    assert config.bundle_description_capacity == 2048
    assert config.icon_capacity == 1024


def test_classifier_config_defaults():
    """ClassifierConfig lists the app's own aliases."""
    config = ClassifierConfig()
    assert "ProcessPilot" in config.app_aliases
    assert config.app_bundle_name == "ProcessPilot.app"


def test_classifier_aliases_not_shared():
    """Each ClassifierConfig gets its own alias list."""
    a, b = ClassifierConfig(), ClassifierConfig()
    a.app_aliases.append("Other")
    assert "Other" not in b.app_aliases


def test_config_paths():
    """Config provides correct paths."""
    config = Config()
    assert "procpilot" in str(config.config_dir)
    assert config.config_path.name == "config.toml"
    assert config.log_path.name == "procpilot.log"
    assert config.log_path.parent == config.state_dir


def test_config_save_preserves_values(tmp_path):
    """Config.save() writes correct TOML values."""
    config_path = tmp_path / "config.toml"
    config = Config()
    config.sampling.refresh_interval = 5.0
    config.smoothing.window_size = 4
    config.logging.level = "debug"
    config.save(config_path)

    content = config_path.read_text()
    assert "[sampling]" in content
    assert "refresh_interval = 5.0" in content
    assert "window_size = 4" in content
    assert 'level = "debug"' in content


def test_config_save_creates_parent_dirs(tmp_path):
    """Config.save() creates missing directories."""
    config_path = tmp_path / "nested" / "dir" / "config.toml"
    Config().save(config_path)
    assert config_path.exists()


def test_config_round_trip(tmp_path):
    """Saved values load back unchanged."""
    config_path = tmp_path / "config.toml"
    config = Config()
    config.cache.icon_capacity = 64
    config.classifier.app_aliases = ["Pilot"]
    config.history.max_samples = 10
    config.save(config_path)

    loaded = Config.load(config_path)
    assert loaded == config


def test_config_load_reads_values(tmp_path):
    """Config.load() reads values from file, keeping defaults for the rest."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("""
[sampling]
refresh_interval = 1.5

[smoothing]
window_size = 5

[classifier]
app_aliases = ["Pilot", "pp"]
""")

    config = Config.load(config_path)
    assert config.sampling.refresh_interval == 1.5
    assert config.sampling.warmup_passes == 3  # Default preserved
    assert config.smoothing.window_size == 5
    assert config.classifier.app_aliases == ["Pilot", "pp"]
    assert config.cache.icon_capacity == 1024


def test_config_load_missing_file_returns_defaults(tmp_path):
    """Config.load() returns defaults when file doesn't exist."""
    config = Config.load(tmp_path / "nonexistent.toml")
    assert config == Config()


def test_config_load_invalid_toml(tmp_path):
    """Unparseable files raise ValueError."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("[sampling\nrefresh_interval = ")

    with pytest.raises(ValueError, match="Failed to parse"):
        Config.load(config_path)


@pytest.mark.parametrize(
    ("toml", "field"),
    [
        ("[sampling]\nrefresh_interval = 0", "refresh_interval"),
        ("[sampling]\nwarmup_passes = -1", "warmup_passes"),
        ("[sampling]\nmin_delta_interval = -0.5", "min_delta_interval"),
        ("[smoothing]\nwindow_size = 0", "window_size"),
        ("[history]\nmax_samples = 0", "max_samples"),
        ("[cache]\nicon_capacity = 0", "icon_capacity"),
        ("[cache]\nbundle_description_capacity = 0", "bundle_description_capacity"),
        ('[logging]\nlevel = "loud"', "log level"),
    ],
)
def test_config_load_rejects_out_of_range(tmp_path, toml, field):
    """Out-of-range values raise ValueError naming the field."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(toml)

    with pytest.raises(ValueError, match=field):
        Config.load(config_path)
