"""Configuration manager for ripple using TOML files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config


@dataclass
class AnalysisConfig:
    """Settings consumed by the engine; loaded from ``config.toml``."""
    max_depth: int = config.DEFAULT_MAX_DEPTH
    include_transitive: bool = config.DEFAULT_INCLUDE_TRANSITIVE
    cache_max_entries: int = config.DEFAULT_CACHE_MAX_ENTRIES
    cache_ttl_minutes: float = config.DEFAULT_CACHE_TTL_MINUTES
    debounce_ms: int = config.DEFAULT_DEBOUNCE_MS
    max_file_size: int = config.DEFAULT_MAX_FILE_SIZE
    log_level: str = config.DEFAULT_LOG_LEVEL
    languages: Dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.cache_max_entries <= 0:
            raise ValueError("cache_max_entries must be positive")
        if self.cache_ttl_minutes < 0:
            raise ValueError("cache_ttl_minutes must be >= 0")
        if self.debounce_ms < 0:
            raise ValueError("debounce_ms must be >= 0")

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_minutes * 60

    def is_language_enabled(self, language: str) -> bool:
        return self.languages.get(language, True)


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    path = path or config.CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError):
        return {}


def load_analysis_config(path: Optional[Path] = None) -> AnalysisConfig:
    """Build an :class:`AnalysisConfig` from the TOML file.

    Missing sections or keys fall back to the defaults in
    :mod:`ripple.config`.
    """
    full = load_full_config(path)
    analysis = full.get("analysis", {})
    cache = full.get("cache", {})
    performance = full.get("performance", {})
    logging_section = full.get("logging", {})
    languages = {
        name: bool(section.get("enabled", True))
        for name, section in full.get("languages", {}).items()
        if isinstance(section, dict)
    }
    return AnalysisConfig(
        max_depth=int(analysis.get("max_depth", config.DEFAULT_MAX_DEPTH)),
        include_transitive=bool(
            analysis.get("include_transitive", config.DEFAULT_INCLUDE_TRANSITIVE)
        ),
        debounce_ms=int(analysis.get("debounce_ms", config.DEFAULT_DEBOUNCE_MS)),
        cache_max_entries=int(cache.get("max_entries", config.DEFAULT_CACHE_MAX_ENTRIES)),
        cache_ttl_minutes=float(cache.get("ttl_minutes", config.DEFAULT_CACHE_TTL_MINUTES)),
        max_file_size=int(performance.get("max_file_size", config.DEFAULT_MAX_FILE_SIZE)),
        log_level=str(logging_section.get("level", config.DEFAULT_LOG_LEVEL)),
        languages=languages,
    )


def save_analysis_config(cfg: AnalysisConfig, path: Optional[Path] = None) -> bool:
    """Write *cfg* to the TOML file, preserving unrelated sections."""
    path = path or config.CONFIG_FILE
    full = load_full_config(path)
    full["analysis"] = {
        "max_depth": cfg.max_depth,
        "include_transitive": cfg.include_transitive,
        "debounce_ms": cfg.debounce_ms,
    }
    full["cache"] = {
        "max_entries": cfg.cache_max_entries,
        "ttl_minutes": cfg.cache_ttl_minutes,
    }
    full["performance"] = {"max_file_size": cfg.max_file_size}
    full["logging"] = {"level": cfg.log_level}
    if cfg.languages:
        full["languages"] = {
            name: {"enabled": enabled} for name, enabled in cfg.languages.items()
        }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            toml.dump(full, f)
        return True
    except OSError:
        return False
