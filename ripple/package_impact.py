"""What installing or removing a third-party package does to the workspace.

Declared dependencies come from the workspace manifests (``pyproject.toml``
through :mod:`toml`, ``package.json`` as plain JSON). Usage comes from the
imports every tracked file recorded on its last parse, so the workspace
must be indexed first.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import toml

from .graph_manager import DependencyGraphManager
from .models import EffortTier
from .realtime import estimate_effort

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
PackageChange = Literal["install", "remove", "update"]
ConflictSeverity = Literal["critical", "warning", "info"]
FileAction = Literal["update", "add", "remove", "verify"]

PYPROJECT = "pyproject.toml"
PACKAGE_JSON = "package.json"
_PACKAGE_JSON_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


@dataclass(frozen=True)
class PackageConflict:
    package: str
    reason: str
    severity: ConflictSeverity


@dataclass(frozen=True)
class PackageFile:
    file: str
    reason: str
    action: FileAction


@dataclass(frozen=True)
class PackageBreakingChange:
    description: str
    affected_files: Tuple[str, ...]


@dataclass
class PackageImpact:
    package_name: str
    version: str
    type: PackageChange
    conflicts: List[PackageConflict] = field(default_factory=list)
    affected_files: List[PackageFile] = field(default_factory=list)
    breaking_changes: List[PackageBreakingChange] = field(default_factory=list)
    migration_steps: List[str] = field(default_factory=list)
    risk_score: int = 0
    estimated_effort: EffortTier = "low"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_package_name(name: str) -> str:
    """Compare form of a distribution or import name (``Foo-Bar`` -> ``foo_bar``)."""
    return re.sub(r"[-_.]+", "_", name).lower()


def imported_package(specifier: str, language: str) -> Optional[str]:
    """Top-level package an import specifier refers to, or None for relative ones."""
    if not specifier or specifier.startswith("."):
        return None
    if language == "python":
        return specifier.split(".")[0]
    if specifier.startswith("/"):
        return None
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def package_risk_score(
    conflicts: List[PackageConflict],
    breaking_changes: List[PackageBreakingChange],
    affected_file_count: int,
) -> int:
    score = 0
    for conflict in conflicts:
        if conflict.severity == "critical":
            score += 30
        elif conflict.severity == "warning":
            score += 15
    score += len(breaking_changes) * 20
    score += min(affected_file_count * 2, 30)
    return min(score, 100)


class PackageImpactAnalyzer:
    """Answers "what if I install / remove this package" for one workspace."""

    def __init__(self, graph_manager: DependencyGraphManager, workspace_root: PathLike) -> None:
        self.graph_manager = graph_manager
        self.workspace_root = Path(workspace_root)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def analyze_install(self, package_name: str, version: str) -> PackageImpact:
        declared = self.declared_dependencies()
        conflicts: List[PackageConflict] = []
        existing = self._lookup(declared, package_name)
        if existing is not None:
            conflicts.append(PackageConflict(
                package_name, f"Already installed with version {existing[1] or '*'}", "warning",
            ))

        affected = [
            PackageFile(path, f'May use or import "{package_name}"', "verify")
            for path in self.files_importing(package_name)
        ]
        steps = [f"Install {package_name}@{version}"]
        if affected:
            steps.append(f"Review {len(affected)} potentially affected files")
            steps.append("Update imports if needed")
            steps.append("Test affected functionality")

        risk = package_risk_score(conflicts, [], len(affected))
        logger.debug("Install %s@%s: %d conflicts, %d files", package_name, version, len(conflicts), len(affected))
        return PackageImpact(
            package_name=package_name,
            version=version,
            type="install",
            conflicts=conflicts,
            affected_files=affected,
            migration_steps=steps,
            risk_score=risk,
            estimated_effort=estimate_effort(risk, len(affected)),
        )

    def analyze_remove(self, package_name: str) -> PackageImpact:
        files = self.files_importing(package_name)
        affected = [PackageFile(path, f'Imports or requires "{package_name}"', "remove") for path in files]
        breaking = [
            PackageBreakingChange(f'File uses removed package "{package_name}"', (path,))
            for path in files
        ]

        existing = self._lookup(self.declared_dependencies(), package_name)
        manifest = existing[0] if existing is not None else PYPROJECT
        if files:
            steps = [
                f"Warning: {len(files)} files use this package",
                "Remove or replace imports in affected files",
                f"Remove {package_name} from {manifest}",
                "Run tests to verify nothing breaks",
            ]
        else:
            steps = [
                f"Remove {package_name} from {manifest}",
                "No files appear to use this package",
            ]

        risk = package_risk_score([], breaking, len(affected))
        logger.debug("Remove %s: %d files affected", package_name, len(affected))
        return PackageImpact(
            package_name=package_name,
            version="",
            type="remove",
            affected_files=affected,
            breaking_changes=breaking,
            migration_steps=steps,
            risk_score=risk,
            estimated_effort=estimate_effort(risk, len(affected)),
        )

    # ------------------------------------------------------------------
    # Workspace facts
    # ------------------------------------------------------------------

    def files_importing(self, package_name: str) -> List[str]:
        """Tracked files whose last parse imported *package_name*."""
        wanted = normalize_package_name(package_name)
        files = []
        for result in self.graph_manager.parse_results():
            for specifier in result.imports:
                package = imported_package(specifier, result.language)
                if package is not None and normalize_package_name(package) == wanted:
                    files.append(result.file_path)
                    break
        return files

    def declared_dependencies(self) -> Dict[str, Tuple[str, str]]:
        """Normalised name -> (manifest, version spec) for every declared package."""
        declared: Dict[str, Tuple[str, str]] = {}
        for name, spec in self._pyproject_dependencies().items():
            declared.setdefault(normalize_package_name(name), (PYPROJECT, spec))
        for name, spec in self._package_json_dependencies().items():
            declared.setdefault(normalize_package_name(name), (PACKAGE_JSON, spec))
        return declared

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(self, declared: Dict[str, Tuple[str, str]], package_name: str) -> Optional[Tuple[str, str]]:
        return declared.get(normalize_package_name(package_name))

    def _pyproject_dependencies(self) -> Dict[str, str]:
        path = self.workspace_root / PYPROJECT
        if not path.exists():
            return {}
        try:
            with open(path, "r") as f:
                data = toml.load(f)
        except (OSError, toml.TomlDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return {}

        deps: Dict[str, str] = {}
        project = data.get("project", {})
        requirements = list(project.get("dependencies", []))
        for extra in project.get("optional-dependencies", {}).values():
            requirements.extend(extra)
        for requirement in requirements:
            name, spec = _split_requirement(requirement)
            if name:
                deps.setdefault(name, spec)

        poetry = data.get("tool", {}).get("poetry", {})
        for section in ("dependencies", "dev-dependencies"):
            for name, value in poetry.get(section, {}).items():
                if name.lower() == "python":
                    continue
                if isinstance(value, dict):
                    value = value.get("version", "")
                deps.setdefault(name, str(value))
        return deps

    def _package_json_dependencies(self) -> Dict[str, str]:
        path = self.workspace_root / PACKAGE_JSON
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return {}

        deps: Dict[str, str] = {}
        for section in _PACKAGE_JSON_SECTIONS:
            for name, spec in (data.get(section) or {}).items():
                deps.setdefault(name, str(spec))
        return deps


def _split_requirement(requirement: str) -> Tuple[str, str]:
    """``"typer[all]>=0.9; python_version>'3.8'"`` -> ``("typer", ">=0.9")``."""
    match = _REQUIREMENT_NAME.match(requirement)
    if not match:
        return "", ""
    rest = requirement[match.end():].split(";", 1)[0]
    rest = re.sub(r"^\s*\[[^\]]*\]", "", rest)
    return match.group(1), rest.strip()
