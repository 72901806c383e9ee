"""Per-edit impact pipeline: edit -> symbol -> dependents -> risk report."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .change_detector import ChangeDetector
from .config import DEFAULT_MAX_DEPTH
from .errors import ErrorLog
from .graph_manager import DependencyGraphManager
from .impact_analyzer import ImpactAnalyzer
from .models import (
    AffectedFile,
    BreakingChange,
    ContentChange,
    EditImpact,
    EditType,
    EffortTier,
    Location,
    Severity,
    Symbol,
)
from .parser import symbol_at

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

EDIT_TYPE_WEIGHT = {"delete": 50, "modify": 30, "add": 10}
PER_FILE_WEIGHT = 5
MAX_FILE_WEIGHT = 30
BREAKING_CHANGE_WEIGHT = 10
CRITICAL_DEPENDENT_WEIGHT = 5
MAX_RISK_SCORE = 100


def detect_edit_type(change: ContentChange) -> EditType:
    """Classify an edit by shape: inserted only, removed only, or both."""
    removed = change.range_length > 0
    inserted = len(change.text) > 0
    if inserted and not removed:
        return "add"
    if removed and not inserted:
        return "delete"
    return "modify"


def dependent_severity(edit_type: EditType, symbol: Symbol) -> Severity:
    if edit_type == "delete":
        return "critical"
    if edit_type == "modify" and symbol.kind == "function":
        return "warning"
    return "safe"


def dependent_reason(edit_type: EditType, symbol: Symbol) -> str:
    if edit_type == "delete":
        return f'Calls deleted {symbol.kind} "{symbol.name}"'
    if edit_type == "modify":
        return f'Uses modified {symbol.kind} "{symbol.name}"'
    if edit_type == "add":
        return f'May need to use new {symbol.kind} "{symbol.name}"'
    return f"Depends on {symbol.name}"


def calculate_risk_score(
    edit_type: EditType,
    affected_files: Sequence[AffectedFile],
    breaking_changes: Sequence[BreakingChange],
) -> int:
    score = EDIT_TYPE_WEIGHT.get(edit_type, EDIT_TYPE_WEIGHT["add"])
    score += min(len(affected_files) * PER_FILE_WEIGHT, MAX_FILE_WEIGHT)
    score += len(breaking_changes) * BREAKING_CHANGE_WEIGHT
    score += sum(1 for f in affected_files if f.severity == "critical") * CRITICAL_DEPENDENT_WEIGHT
    return min(score, MAX_RISK_SCORE)


def estimate_effort(risk_score: int, affected_file_count: int) -> EffortTier:
    if risk_score >= 85 or affected_file_count > 50:
        return "critical"
    if risk_score >= 60 or affected_file_count > 20:
        return "high"
    if risk_score >= 30 or affected_file_count > 10:
        return "medium"
    return "low"


class RealTimeImpactAnalyzer:
    """Computes an :class:`~ripple.models.EditImpact` for one edit.

    Any failure while analysing degrades to ``None`` ("no impact"); the
    error is logged and kept in the error log.
    """

    def __init__(
        self,
        graph_manager: DependencyGraphManager,
        impact_analyzer: ImpactAnalyzer,
        change_detector: ChangeDetector,
        error_log: Optional[ErrorLog] = None,
        include_transitive: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.graph_manager = graph_manager
        self.impact_analyzer = impact_analyzer
        self.change_detector = change_detector
        self.error_log = error_log if error_log is not None else graph_manager.error_log
        self.include_transitive = include_transitive
        self.max_depth = max_depth

    def analyze(
        self,
        file_path: PathLike,
        change: ContentChange,
        content: Optional[str] = None,
    ) -> Optional[EditImpact]:
        if detect_edit_type(change) == "delete":
            return self.analyze_delete(file_path, change)
        return self.analyze_edit(file_path, change, content)

    def analyze_edit(
        self,
        file_path: PathLike,
        change: ContentChange,
        content: Optional[str] = None,
    ) -> Optional[EditImpact]:
        try:
            parser = self.graph_manager.get_parser_for_file(file_path)
            if parser is None:
                return None
            symbol = parser.find_symbol_at_position(file_path, change.line, change.column, content)
            if symbol is None:
                return None

            edit_type = detect_edit_type(change)
            affected = self._affected_files(edit_type, symbol)

            breaking: List[BreakingChange] = []
            old_symbol = self.change_detector.get_last_symbol(symbol)
            if old_symbol is not None:
                verdict = self.impact_analyzer.detect_breaking_changes(
                    old_symbol,
                    symbol,
                    [Location(f.file, f.line, 0) for f in affected],
                )
                if verdict is not None:
                    breaking.append(verdict)

            location = Location(parser.relative_path(file_path), change.line, change.column)
            return self._report(edit_type, location, symbol, affected, breaking)
        except Exception as exc:
            logger.exception("Error analyzing edit impact for %s", file_path)
            self.error_log.record(exc, "realtime", "analyze_edit", {"file": str(file_path)})
            return None

    def analyze_delete(self, file_path: PathLike, change: ContentChange) -> Optional[EditImpact]:
        try:
            parser = self.graph_manager.get_parser_for_file(file_path)
            if parser is None:
                return None
            rel = parser.relative_path(file_path)
            # The graph still holds the pre-edit symbols for this file.
            symbol = symbol_at(self.graph_manager.graph.nodes_for_file(rel), change.line, change.column)
            if symbol is None:
                symbol = parser.find_symbol_at_position(file_path, change.line, change.column)
            if symbol is None:
                return None

            affected = self._affected_files("delete", symbol)
            return self._report("delete", Location(rel, change.line, change.column), symbol, affected, [])
        except Exception as exc:
            logger.exception("Error analyzing delete impact for %s", file_path)
            self.error_log.record(exc, "realtime", "analyze_delete", {"file": str(file_path)})
            return None

    def _affected_files(self, edit_type: EditType, symbol: Symbol) -> List[AffectedFile]:
        severity = dependent_severity(edit_type, symbol)
        reason = dependent_reason(edit_type, symbol)
        return [
            AffectedFile(
                file=edge.source.file_path,
                line=edge.location.line,
                reason=reason,
                severity=severity,
            )
            for edge in self.graph_manager.graph.get_incoming_edges(symbol)
        ]

    def _report(
        self,
        edit_type: EditType,
        location: Location,
        symbol: Symbol,
        affected: List[AffectedFile],
        breaking: List[BreakingChange],
    ) -> EditImpact:
        score = calculate_risk_score(edit_type, affected, breaking)
        transitive: List[Symbol] = []
        if self.include_transitive:
            transitive = self.graph_manager.get_transitive_dependents(symbol, self.max_depth)
        return EditImpact(
            type=edit_type,
            location=location,
            symbol=symbol,
            affected_files=affected,
            breaking_changes=breaking,
            risk_score=score,
            estimated_effort=estimate_effort(score, len(affected)),
            transitive_dependents=transitive,
        )
