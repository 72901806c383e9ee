"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from ripple import __version__
from ripple.cli import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


class TestIndexCommand:
    """Tests for 'ripple index'."""

    def test_index_project(self, workspace: Path):
        result = runner.invoke(app, ["index", str(workspace)])

        assert result.exit_code == 0
        assert "Indexed" in result.stdout
        assert "Files: 3" in result.stdout
        assert "Errors: 0" in result.stdout

    def test_index_nonexistent_path(self):
        result = runner.invoke(app, ["index", "/nonexistent/path"])

        assert result.exit_code != 0


class TestImpactCommand:
    """Tests for 'ripple impact'."""

    def test_impact_json(self, workspace: Path):
        result = runner.invoke(app, [
            "impact", str(workspace / "pricing.py"), "11", "1",
            "--removed", "70", "--root", str(workspace), "--json",
        ])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["type"] == "delete"
        assert payload["symbol"]["name"] == "discount"
        assert payload["risk_score"] == 70
        assert len(payload["affected_files"]) == 2

    def test_impact_table(self, workspace: Path):
        result = runner.invoke(app, [
            "impact", str(workspace / "pricing.py"), "7", "5",
            "--text", "x", "--removed", "3", "--root", str(workspace),
        ])

        assert result.exit_code == 0
        assert "apply_tax" in result.stdout
        assert "Affected modules" in result.stdout

    def test_impact_outside_symbol(self, workspace: Path):
        result = runner.invoke(app, [
            "impact", str(workspace / "pricing.py"), "2", "1", "--text", "x", "--root", str(workspace),
        ])

        assert result.exit_code == 0
        assert "No impact" in result.stdout


class TestDependentsCommand:
    """Tests for 'ripple dependents'."""

    def test_direct_dependents(self, workspace: Path):
        result = runner.invoke(app, [
            "dependents", str(workspace / "pricing.py"), "apply_tax", "--root", str(workspace),
        ])

        assert result.exit_code == 0
        assert "build_report" in result.stdout
        assert "function main" not in result.stdout

    def test_transitive_dependents(self, workspace: Path):
        result = runner.invoke(app, [
            "dependents", str(workspace / "pricing.py"), "apply_tax",
            "--depth", "3", "--root", str(workspace),
        ])

        assert result.exit_code == 0
        assert "function main" in result.stdout

    def test_unknown_symbol(self, workspace: Path):
        result = runner.invoke(app, [
            "dependents", str(workspace / "pricing.py"), "nope", "--root", str(workspace),
        ])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_invalid_kind(self, workspace: Path):
        result = runner.invoke(app, [
            "dependents", str(workspace / "pricing.py"), "apply_tax", "--kind", "gadget",
            "--root", str(workspace),
        ])

        assert result.exit_code != 0


class TestExportCommand:
    """Tests for 'ripple export'."""

    def test_export_to_file(self, workspace: Path, temp_dir: Path):
        output = temp_dir / "graph.json"

        result = runner.invoke(app, ["export", str(workspace), "--output", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert {"nodes", "edges"} == set(data)
        assert any(n["name"] == "apply_tax" for n in data["nodes"])

    def test_export_to_stdout(self, workspace: Path):
        result = runner.invoke(app, ["export", str(workspace)])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["edges"]


def test_config_option_is_honoured(workspace: Path, temp_dir: Path):
    cfg = temp_dir / "custom.toml"
    cfg.write_text("[languages.python]\nenabled = false\n")

    result = runner.invoke(app, ["--config", str(cfg), "index", str(workspace)])

    assert result.exit_code == 0
    assert "Files: 0" in result.stdout


def test_verbose_flag_runs_command(workspace: Path):
    result = runner.invoke(app, ["--verbose", "index", str(workspace)])

    assert result.exit_code == 0
    assert "Files: 3" in result.stdout
