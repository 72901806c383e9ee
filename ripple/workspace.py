"""Workspace file discovery."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Set, Union

SKIP_DIRS: Set[str] = {
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs", ".ripple",
}


def find_source_files(root: Union[str, Path], extensions: Iterable[str]) -> List[Path]:
    """Every file under *root* with one of *extensions*, skipping vendor dirs."""
    root = Path(root)
    wanted = {ext.lower() for ext in extensions}
    found: List[Path] = []
    for path in root.rglob("*"):
        if path.suffix.lower() not in wanted or not path.is_file():
            continue
        rel_parts = path.relative_to(root).parts[:-1]
        if any(part in SKIP_DIRS or part.endswith(".egg-info") for part in rel_parts):
            continue
        found.append(path)
    return sorted(found)

