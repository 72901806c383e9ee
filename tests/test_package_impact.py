"""Tests for package install/remove impact analysis."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ripple.cli import app
from ripple.engine import ImpactEngine
from ripple.package_impact import (
    PackageBreakingChange,
    PackageConflict,
    imported_package,
    normalize_package_name,
    package_risk_score,
)

PYPROJECT = """[project]
name = "shop"
dependencies = [
    "requests>=2.31",
    "typer[all]>=0.9; python_version >= '3.8'",
]

[project.optional-dependencies]
test = ["pytest>=7.0"]
"""

CLIENT_PY = """import requests
from requests.adapters import HTTPAdapter


def fetch(url):
    return requests.get(url)
"""

COMMANDS_PY = """import typer

from . import client

app = typer.Typer()
"""

INDEX_TS = """import React from "react";
import { Button } from "@scope/ui/button";

export function render() {
  return React.createElement(Button);
}
"""


@pytest.fixture
def shop(temp_dir: Path) -> Path:
    root = temp_dir / "shop"
    (root / "web").mkdir(parents=True)
    (root / "pyproject.toml").write_text(PYPROJECT)
    (root / "client.py").write_text(CLIENT_PY)
    (root / "commands.py").write_text(COMMANDS_PY)
    (root / "web" / "index.ts").write_text(INDEX_TS)
    (root / "package.json").write_text(json.dumps({"dependencies": {"react": "^18.2.0"}}))
    return root


@pytest.fixture
def engine(shop: Path) -> ImpactEngine:
    engine = ImpactEngine(shop)
    engine.index_workspace()
    return engine


class TestInstall:
    """What installing a package touches."""

    def test_already_declared_package_conflicts(self, engine: ImpactEngine):
        impact = engine.analyze_install("requests", "2.32")

        assert impact.type == "install"
        assert impact.conflicts == [
            PackageConflict("requests", "Already installed with version >=2.31", "warning"),
        ]
        assert [(f.file, f.action) for f in impact.affected_files] == [("client.py", "verify")]
        assert impact.breaking_changes == []
        assert impact.migration_steps == [
            "Install requests@2.32",
            "Review 1 potentially affected files",
            "Update imports if needed",
            "Test affected functionality",
        ]
        assert impact.risk_score == 17
        assert impact.estimated_effort == "low"

    def test_new_package(self, engine: ImpactEngine):
        impact = engine.analyze_install("httpx", "0.27")

        assert impact.conflicts == []
        assert impact.affected_files == []
        assert impact.migration_steps == ["Install httpx@0.27"]
        assert impact.risk_score == 0

    def test_names_are_normalised(self, engine: ImpactEngine):
        impact = engine.analyze_install("Typer", "1.0")

        assert impact.conflicts[0].reason == "Already installed with version >=0.9"
        assert [f.file for f in impact.affected_files] == ["commands.py"]

    def test_optional_dependencies_are_declared(self, engine: ImpactEngine):
        assert engine.analyze_install("pytest", "8.0").conflicts[0].severity == "warning"


class TestRemove:
    """What removing a package breaks."""

    def test_used_package(self, engine: ImpactEngine):
        impact = engine.analyze_remove("requests")

        assert impact.type == "remove"
        assert impact.version == ""
        assert [(f.file, f.reason, f.action) for f in impact.affected_files] == [
            ("client.py", 'Imports or requires "requests"', "remove"),
        ]
        assert impact.breaking_changes == [
            PackageBreakingChange('File uses removed package "requests"', ("client.py",)),
        ]
        assert impact.migration_steps == [
            "Warning: 1 files use this package",
            "Remove or replace imports in affected files",
            "Remove requests from pyproject.toml",
            "Run tests to verify nothing breaks",
        ]
        assert impact.risk_score == 22

    def test_unused_package(self, engine: ImpactEngine):
        impact = engine.analyze_remove("left-pad")

        assert impact.affected_files == []
        assert impact.breaking_changes == []
        assert impact.migration_steps == [
            "Remove left-pad from pyproject.toml",
            "No files appear to use this package",
        ]
        assert impact.risk_score == 0

    def test_javascript_package_names_its_manifest(self, engine: ImpactEngine):
        impact = engine.analyze_remove("react")

        assert [f.file for f in impact.affected_files] == ["web/index.ts"]
        assert "Remove react from package.json" in impact.migration_steps

    def test_scoped_package(self, engine: ImpactEngine):
        assert engine.package_impact.files_importing("@scope/ui") == ["web/index.ts"]

    def test_to_dict(self, engine: ImpactEngine):
        payload = engine.analyze_remove("requests").to_dict()

        assert payload["breaking_changes"][0]["affected_files"] == ("client.py",)
        assert payload["estimated_effort"] == "low"


class TestManifests:
    """Reading declared dependencies."""

    def test_poetry_dependencies(self, shop: Path, engine: ImpactEngine):
        (shop / "pyproject.toml").write_text(
            '[tool.poetry.dependencies]\npython = "^3.9"\n'
            'Flask = {version = "^3.0", extras = ["async"]}\n'
        )

        declared = engine.package_impact.declared_dependencies()

        assert declared["flask"] == ("pyproject.toml", "^3.0")
        assert "python" not in declared

    def test_malformed_pyproject_is_ignored(self, shop: Path, engine: ImpactEngine):
        (shop / "pyproject.toml").write_text("[project\n")

        assert engine.analyze_install("requests", "2.32").conflicts == []

    def test_no_manifests(self, temp_dir: Path):
        engine = ImpactEngine(temp_dir)

        assert engine.package_impact.declared_dependencies() == {}


class TestHelpers:
    def test_imported_package(self):
        assert imported_package("requests.adapters", "python") == "requests"
        assert imported_package(".pricing", "python") is None
        assert imported_package("react/jsx-runtime", "typescript") == "react"
        assert imported_package("@scope/ui/button", "javascript") == "@scope/ui"
        assert imported_package("./local", "javascript") is None

    def test_normalize_package_name(self):
        assert normalize_package_name("Python-Dateutil") == "python_dateutil"
        assert normalize_package_name("zope.interface") == "zope_interface"

    def test_risk_score(self):
        conflicts = [PackageConflict("a", "x", "critical"), PackageConflict("a", "y", "info")]
        assert package_risk_score(conflicts, [], 40) == 60

        breaking = [PackageBreakingChange("b", ("f",))] * 5
        assert package_risk_score([], breaking, 10) == 100


def test_package_command_json(shop: Path):
    result = CliRunner().invoke(app, ["package", "remove", "requests", "--root", str(shop), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["risk_score"] == 22
    assert payload["affected_files"][0]["file"] == "client.py"


def test_package_command_rejects_unknown_action(shop: Path):
    result = CliRunner().invoke(app, ["package", "upgrade", "requests", "--root", str(shop)])

    assert result.exit_code != 0
