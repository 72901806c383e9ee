"""Tests for workspace scanning helpers."""

from pathlib import Path

from ripple.workspace import find_source_files


def test_find_source_files_skips_vendor_dirs(temp_dir: Path):
    for rel in ("a.py", "pkg/b.py", "pkg/notes.txt", ".venv/lib/c.py",
                "node_modules/d.py", "pkg/__pycache__/e.py", "x.egg-info/f.py"):
        path = temp_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")

    found = find_source_files(temp_dir, [".py"])

    assert [p.relative_to(temp_dir).as_posix() for p in found] == ["a.py", "pkg/b.py"]


def test_find_source_files_in_sample_project(sample_project_path: Path):
    names = [p.name for p in find_source_files(sample_project_path, [".PY"])]

    assert names == ["inventory.py", "pricing.py", "report.py"]
