"""Configuration paths and analysis defaults."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("RIPPLE_HOME", str(Path.home() / ".ripple"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_MAX_DEPTH = 5
DEFAULT_INCLUDE_TRANSITIVE = True
DEFAULT_CACHE_MAX_ENTRIES = 1000
DEFAULT_CACHE_TTL_MINUTES = 5
DEFAULT_DEBOUNCE_MS = 500
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_LOG_LEVEL = "WARNING"
