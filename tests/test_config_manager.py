"""Tests for TOML-backed configuration."""

from pathlib import Path

import pytest
import toml

from ripple import config
from ripple.config_manager import (
    AnalysisConfig,
    load_analysis_config,
    load_full_config,
    save_analysis_config,
)


def test_missing_file_gives_defaults(temp_dir: Path):
    cfg = load_analysis_config(temp_dir / "absent.toml")

    assert cfg.max_depth == config.DEFAULT_MAX_DEPTH
    assert cfg.cache_max_entries == 1000
    assert cfg.cache_ttl_seconds == 300
    assert cfg.debounce_ms == 500
    assert cfg.is_language_enabled("python")


def test_sections_are_read(temp_dir: Path):
    path = temp_dir / "config.toml"
    path.write_text(
        "[analysis]\nmax_depth = 2\ninclude_transitive = false\n"
        "[cache]\nmax_entries = 10\nttl_minutes = 1\n"
        "[languages.python]\nenabled = false\n"
        "[logging]\nlevel = \"DEBUG\"\n"
    )

    cfg = load_analysis_config(path)

    assert cfg.max_depth == 2
    assert cfg.include_transitive is False
    assert cfg.cache_max_entries == 10
    assert cfg.cache_ttl_seconds == 60
    assert not cfg.is_language_enabled("python")
    assert cfg.log_level == "DEBUG"


def test_malformed_file_gives_defaults(temp_dir: Path):
    path = temp_dir / "config.toml"
    path.write_text("[analysis\nmax_depth = ")

    assert load_full_config(path) == {}
    assert load_analysis_config(path).max_depth == config.DEFAULT_MAX_DEPTH


def test_default_path_follows_config_module(temp_dir: Path):
    """The autouse fixture points CONFIG_FILE into the temp dir."""
    config.CONFIG_FILE.parent.mkdir(parents=True)
    config.CONFIG_FILE.write_text("[analysis]\nmax_depth = 7\n")

    assert load_analysis_config().max_depth == 7


def test_save_round_trip_preserves_other_sections(temp_dir: Path):
    path = temp_dir / "nested" / "config.toml"
    path.parent.mkdir()
    path.write_text("[custom]\nkeep = true\n")
    cfg = AnalysisConfig(max_depth=3, languages={"python": True})

    assert save_analysis_config(cfg, path)

    data = toml.load(path)
    assert data["custom"] == {"keep": True}
    assert data["analysis"]["max_depth"] == 3
    assert load_analysis_config(path).max_depth == 3


@pytest.mark.parametrize(
    "kwargs",
    [{"max_depth": -1}, {"cache_max_entries": 0}, {"cache_ttl_minutes": -5}, {"debounce_ms": -1}],
)
def test_invalid_values_raise(kwargs):
    with pytest.raises(ValueError):
        AnalysisConfig(**kwargs)
