"""Core data models shared by parsing, graph, history, and impact layers."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

SymbolKind = Literal[
    "function", "class", "method", "variable",
    "interface", "type", "constant", "module",
]
DependencyType = Literal["imports", "calls", "extends", "implements", "references"]
Severity = Literal["critical", "warning", "safe"]
EditType = Literal["delete", "modify", "add", "rename"]
EffortTier = Literal["low", "medium", "high", "critical"]
ChangeType = Literal["added", "modified", "removed", "signature", "visibility", "type"]
BreakingChangeType = Literal["signature", "removal", "visibility", "type", "parameter"]

SYMBOL_KINDS: Tuple[str, ...] = (
    "function", "class", "method", "variable",
    "interface", "type", "constant", "module",
)
DEPENDENCY_TYPES: Tuple[str, ...] = ("imports", "calls", "extends", "implements", "references")


@dataclass(frozen=True)
class Location:
    """A position in a source file (1-based line and column)."""
    file: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Parameter:
    name: str
    type: Optional[str] = None
    optional: bool = False
    default: Optional[str] = None


@dataclass(frozen=True)
class Symbol:
    """A uniquely addressable code entity.

    Identity is ``(file_path, name, kind)``; every other attribute may
    differ between two observations of the same entity.  Instances are
    immutable: a changed symbol is a new value, never an edit.
    """
    name: str
    kind: SymbolKind
    file_path: str
    start_line: int
    end_line: int
    start_column: int = 0
    end_column: int = 0
    signature: Optional[str] = None
    parameters: Optional[Tuple[Parameter, ...]] = None
    return_type: Optional[str] = None
    modifiers: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in SYMBOL_KINDS:
            raise ValueError(f"Unknown symbol kind: {self.kind!r}")
        if self.parameters is not None and not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))
        if not isinstance(self.modifiers, tuple):
            object.__setattr__(self, "modifiers", tuple(self.modifiers))

    @property
    def key(self) -> str:
        return symbol_key(self.file_path, self.name, self.kind)

    @property
    def location(self) -> Location:
        return Location(self.file_path, self.start_line, self.start_column)

    def contains(self, line: int, column: int) -> bool:
        """Return True if ``(line, column)`` falls inside this symbol's span."""
        if line < self.start_line or line > self.end_line:
            return False
        if line == self.start_line and column < self.start_column:
            return False
        if line == self.end_line and self.end_column and column > self.end_column:
            return False
        return True

    def parameters_json(self) -> str:
        """Serialized parameter list, used to detect parameter edits."""
        if self.parameters is None:
            return "null"
        return json.dumps([asdict(p) for p in self.parameters], sort_keys=True)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["parameters"] = (
            [asdict(p) for p in self.parameters] if self.parameters is not None else None
        )
        payload["modifiers"] = list(self.modifiers)
        return payload


def symbol_key(file_path: str, name: str, kind: str) -> str:
    return f"{file_path}:{name}:{kind}"


@dataclass(frozen=True)
class Dependency:
    """A relationship as reported by a parser, endpoints given as identity keys."""
    source: str
    target: str
    type: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(frozen=True)
class GraphEdge:
    """A typed directed edge between two symbols in the dependency graph."""
    source: Symbol
    target: Symbol
    type: DependencyType
    location: Location

    @property
    def triple(self) -> Tuple[str, str, str]:
        return (self.source.key, self.target.key, self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.source.key,
            "to": self.target.key,
            "type": self.type,
            "location": asdict(self.location),
        }


@dataclass(frozen=True)
class ParseError:
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    severity: Literal["error", "warning"] = "error"


@dataclass
class ParseResult:
    file_path: str
    language: str
    symbols: List[Symbol] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    parse_time_ms: float = 0.0
    errors: List[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(e.severity == "error" for e in self.errors)


@dataclass(frozen=True)
class CodeChange:
    symbol: Symbol
    change_type: ChangeType
    timestamp: float
    old_symbol: Optional[Symbol] = None


@dataclass(frozen=True)
class EstimatedImpact:
    files_affected: int
    call_sites_affected: int
    estimated_loc: int


@dataclass(frozen=True)
class BreakingChange:
    symbol: Symbol
    change_type: BreakingChangeType
    severity: Severity
    description: str
    affected_locations: Tuple[Location, ...]
    estimated_impact: EstimatedImpact


@dataclass(frozen=True)
class AffectedFile:
    file: str
    line: int
    reason: str
    severity: Severity


@dataclass(frozen=True)
class ContentChange:
    """One text edit: a replaced range plus the text inserted in its place.

    ``line`` and ``column`` are 1-based.  ``range_length`` is the number of
    characters removed; ``text`` is what was inserted.
    """
    line: int
    column: int
    range_length: int = 0
    text: str = ""


@dataclass
class EditImpact:
    type: EditType
    location: Location
    symbol: Optional[Symbol]
    affected_files: List[AffectedFile]
    breaking_changes: List[BreakingChange]
    risk_score: int
    estimated_effort: EffortTier
    transitive_dependents: List[Symbol] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "location": asdict(self.location),
            "symbol": self.symbol.to_dict() if self.symbol else None,
            "affected_files": [asdict(f) for f in self.affected_files],
            "breaking_changes": [
                {
                    "symbol": bc.symbol.key,
                    "change_type": bc.change_type,
                    "severity": bc.severity,
                    "description": bc.description,
                    "affected_locations": [asdict(loc) for loc in bc.affected_locations],
                    "estimated_impact": asdict(bc.estimated_impact),
                }
                for bc in self.breaking_changes
            ],
            "risk_score": self.risk_score,
            "estimated_effort": self.estimated_effort,
            "transitive_dependents": [s.key for s in self.transitive_dependents],
        }
