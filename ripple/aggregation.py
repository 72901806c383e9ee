"""Grouping and summarising impacts for presentation layers."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, List, Sequence, Tuple, TypeVar

from .models import EditImpact, EffortTier, Severity, Symbol

T = TypeVar("T")

_SKIP_DIRS = ("src", "lib", "app", "packages")
_SEVERITY_RANK: Dict[str, int] = {"safe": 0, "warning": 1, "critical": 2}


@dataclass(frozen=True)
class Impact:
    file: str
    symbol: Symbol
    dependent_count: int
    severity: Severity


@dataclass(frozen=True)
class ModuleImpact:
    module: str
    count: int
    files: Tuple[Impact, ...]
    risk_level: EffortTier


@dataclass(frozen=True)
class FileSummary:
    file: str
    count: int
    severity: Severity


class ImpactAggregator:
    def group_by_module(self, impacts: Sequence[Impact]) -> List[ModuleImpact]:
        groups: "OrderedDict[str, List[Impact]]" = OrderedDict()
        for impact in impacts:
            groups.setdefault(module_of(impact.file), []).append(impact)
        return [
            ModuleImpact(
                module=module,
                count=len(files),
                files=tuple(files),
                risk_level=module_risk(files),
            )
            for module, files in groups.items()
        ]

    @staticmethod
    def summarize_list(items: Sequence[T], max_visible: int = 5) -> Tuple[List[T], int]:
        return list(items[:max_visible]), max(0, len(items) - max_visible)

    def top_impacted_files(self, impacts: Sequence[Impact], limit: int = 10) -> List[FileSummary]:
        counts: "OrderedDict[str, int]" = OrderedDict()
        worst: Dict[str, Severity] = {}
        for impact in impacts:
            counts[impact.file] = counts.get(impact.file, 0) + impact.dependent_count
            current = worst.get(impact.file)
            if current is None or _SEVERITY_RANK[impact.severity] > _SEVERITY_RANK[current]:
                worst[impact.file] = impact.severity
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
        return [FileSummary(file, count, worst[file]) for file, count in ranked[:limit]]

    def impacts_from_edit(self, edit: EditImpact) -> List[Impact]:
        """One :class:`Impact` per affected file, counting its call sites."""
        if edit.symbol is None:
            return []
        counts: "OrderedDict[str, int]" = OrderedDict()
        worst: Dict[str, Severity] = {}
        for affected in edit.affected_files:
            counts[affected.file] = counts.get(affected.file, 0) + 1
            current = worst.get(affected.file)
            if current is None or _SEVERITY_RANK[affected.severity] > _SEVERITY_RANK[current]:
                worst[affected.file] = affected.severity
        return [Impact(file, edit.symbol, count, worst[file]) for file, count in counts.items()]


def module_of(file_path: str) -> str:
    """First meaningful directory of *file_path*, or ``root``."""
    dirs = PurePosixPath(file_path.replace("\\", "/")).parts[:-1]
    for part in dirs:
        if part not in _SKIP_DIRS:
            return part
    return "root"


def module_risk(files: Sequence[Impact]) -> EffortTier:
    total = sum(f.dependent_count for f in files)
    if any(f.severity == "critical" for f in files) or total > 50:
        return "critical"
    if any(f.severity == "warning" for f in files) or total > 20:
        return "high"
    if total > 10:
        return "medium"
    return "low"
