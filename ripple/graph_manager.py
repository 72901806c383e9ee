"""Keeps the dependency graph in step with parsed files.

Each file owns the symbols a parser reported for it.  Re-parsing a file
retracts what the previous parse contributed before adding the new
version:

1. edges whose source is one of the file's old symbols are removed;
2. old symbols absent from the new parse are removed (with every edge
   touching them);
3. surviving and new symbols replace their node values, keeping the
   edges other files point at them;
4. the new parse's dependencies are added;
5. files whose edges into a removed symbol were dropped are re-applied
   once that symbol comes back.

Dependencies that name a symbol not yet known get a placeholder node,
replaced once the owning file is parsed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from .cache_manager import CacheManager
from .change_detector import ChangeDetector
from .config import DEFAULT_MAX_DEPTH
from .errors import ErrorLog, ParsingError
from .graph import DependencyGraph
from .models import (
    DEPENDENCY_TYPES,
    SYMBOL_KINDS,
    GraphEdge,
    Location,
    ParseError,
    ParseResult,
    Symbol,
)
from .parser import Parser
from .parser_registry import ParserRegistry

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Dependency type spellings some parsers report.
_TYPE_ALIASES: Dict[str, str] = {
    "import": "imports",
    "call": "calls",
    "extend": "extends",
    "implement": "implements",
    "uses": "references",
    "reference": "references",
}


class DependencyGraphManager:
    """Builds and incrementally updates a :class:`DependencyGraph`."""

    def __init__(
        self,
        registry: ParserRegistry,
        cache: Optional[CacheManager[ParseResult]] = None,
        graph: Optional[DependencyGraph] = None,
        change_detector: Optional[ChangeDetector] = None,
        error_log: Optional[ErrorLog] = None,
    ) -> None:
        self.registry = registry
        self.cache: CacheManager[ParseResult] = cache if cache is not None else CacheManager()
        self.graph = graph if graph is not None else DependencyGraph()
        self.change_detector = change_detector if change_detector is not None else ChangeDetector()
        self.error_log = error_log if error_log is not None else ErrorLog()
        self._file_keys: Dict[str, Set[str]] = {}
        self._applied: Dict[str, ParseResult] = {}
        # Removed key -> files whose edges into it went with it.
        self._orphaned: Dict[str, Set[str]] = {}

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_file(self, file_path: PathLike, content: Optional[str] = None) -> Optional[ParseResult]:
        """Parse *file_path* (through the cache) and fold it into the graph.

        Returns None when no parser handles the file.  A file that fails
        to parse yields a result carrying the error; the graph keeps the
        file's last good contents.
        """
        parser = self.registry.get_parser_for_file(file_path)
        if parser is None:
            logger.warning("No parser available for %s", file_path)
            return None

        cache_key = str(parser.resolve(file_path))
        result = self.cache.get(cache_key) if content is None else None
        if result is None:
            result = self._parse(parser, file_path, content)
            if result.ok and content is None:
                self.cache.set(cache_key, result)

        if not result.ok:
            return result
        if self._applied.get(result.file_path) is result:
            return result
        self.apply_parse_result(result)
        return result

    def update_files(self, files: Iterable[PathLike]) -> Dict[str, int]:
        parsed = 0
        failed = 0
        skipped = 0
        for path in files:
            result = self.update_file(path)
            if result is None:
                skipped += 1
            elif result.ok:
                parsed += 1
            else:
                failed += 1
        logger.info(
            "Graph update: %d parsed, %d failed, %d skipped (%d nodes, %d edges)",
            parsed, failed, skipped, len(self.graph), self.graph.edge_count,
        )
        return {
            "files": parsed,
            "errors": failed,
            "skipped": skipped,
            "nodes": len(self.graph),
            "edges": self.graph.edge_count,
        }

    def apply_parse_result(self, result: ParseResult, record_history: bool = True) -> None:
        rel = result.file_path
        old_keys = self._file_keys.get(rel, set())
        new_keys = {s.key for s in result.symbols}

        for key in old_keys:
            node = self.graph.get_node(key)
            if node is None:
                continue
            for edge in self.graph.get_outgoing_edges(node):
                self.graph.remove_edge(edge)
        for key in old_keys - new_keys:
            self._retract(key, rel)

        local: Dict[str, Symbol] = {}
        for sym in result.symbols:
            self.graph.replace_node(sym)
            if record_history:
                self.change_detector.record_symbol(sym)
            local[sym.key] = sym

        added = 0
        for dep in result.dependencies:
            dep_type = _TYPE_ALIASES.get(dep.type, dep.type)
            if dep_type not in DEPENDENCY_TYPES:
                logger.debug("Skipping dependency of unknown type %r in %s", dep.type, rel)
                continue
            source = self._resolve(dep.source, local)
            target = self._resolve(dep.target, local)
            if source is None or target is None:
                logger.debug("Unresolvable dependency %s -> %s in %s", dep.source, dep.target, rel)
                continue
            location = Location(
                file=source.file_path or rel,
                line=dep.line or source.start_line,
                column=dep.column or source.start_column,
            )
            if self.graph.add_edge(GraphEdge(source, target, dep_type, location)):  # type: ignore[arg-type]
                added += 1

        self._file_keys[rel] = new_keys
        self._applied[rel] = result
        logger.debug("Applied %s: %d symbols, %d edges", rel, len(new_keys), added)
        self._restore_dependents(new_keys, rel)

    def remove_file(self, file_path: PathLike) -> int:
        """Drop everything *file_path* contributed.  Returns nodes removed."""
        parser = self.registry.get_parser_for_file(file_path)
        if parser is not None:
            rel = parser.relative_path(file_path)
            self.cache.invalidate(str(parser.resolve(file_path)))
        else:
            rel = Path(file_path).as_posix()
        keys = self._file_keys.pop(rel, set())
        self._applied.pop(rel, None)
        removed = sum(1 for key in keys if self._retract(key, rel))
        logger.debug("Removed %s from graph (%d nodes)", rel, removed)
        return removed

    def clear(self) -> None:
        self.graph.clear()
        self.cache.clear()
        self._file_keys.clear()
        self._applied.clear()
        self._orphaned.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_dependents(self, symbol: Symbol) -> List[Symbol]:
        return self.graph.get_dependents(symbol)

    def get_transitive_dependents(self, symbol: Symbol, max_depth: int = DEFAULT_MAX_DEPTH) -> List[Symbol]:
        return self.graph.get_transitive_dependents(symbol, max_depth)

    def get_edges_for_symbol(self, symbol: Symbol) -> List[GraphEdge]:
        return self.graph.get_edges_for_symbol(symbol)

    def get_parser_for_file(self, file_path: PathLike) -> Optional[Parser]:
        return self.registry.get_parser_for_file(file_path)

    def tracked_files(self) -> List[str]:
        return sorted(self._file_keys)

    def parse_results(self) -> List[ParseResult]:
        """Last applied parse result of every tracked file, by path."""
        return [self._applied[rel] for rel in sorted(self._applied)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse(self, parser: Parser, file_path: PathLike, content: Optional[str]) -> ParseResult:
        try:
            return parser.parse(file_path, content)
        except Exception as exc:
            logger.warning("Failed to parse %s: %s", file_path, exc)
            error = exc if isinstance(exc, ParsingError) else ParsingError(str(exc), str(file_path))
            self.error_log.record(error, "graph_manager", "update_file", {"file": str(file_path)})
            return ParseResult(
                file_path=parser.relative_path(file_path),
                language=parser.language,
                errors=[ParseError(message=str(exc))],
            )

    def _retract(self, key: str, rel: str) -> bool:
        """Remove *key*, remembering which other files had edges into it."""
        node = self.graph.get_node(key)
        if node is None:
            return False
        for edge in self.graph.get_incoming_edges(node):
            if edge.source.file_path != rel:
                self._orphaned.setdefault(key, set()).add(edge.source.file_path)
        return self.graph.remove_key(key)

    def _restore_dependents(self, keys: Iterable[str], rel: str) -> None:
        """Re-apply files whose edges into *keys* were lost when they vanished."""
        files: Set[str] = set()
        for key in keys:
            files |= self._orphaned.pop(key, set())
        for dependent in sorted(files - {rel}):
            result = self._applied.get(dependent)
            if result is not None:
                logger.debug("Restoring edges from %s", dependent)
                self.apply_parse_result(result, record_history=False)

    def _resolve(self, key: str, local: Dict[str, Symbol]) -> Optional[Symbol]:
        sym = local.get(key) or self.graph.get_node(key)
        if sym is not None:
            return sym
        return placeholder_symbol(key)


def placeholder_symbol(key: str) -> Optional[Symbol]:
    """Build a stand-in symbol from an identity key ``file:name:kind``."""
    parts = key.rsplit(":", 2)
    if len(parts) != 3 or parts[2] not in SYMBOL_KINDS or not parts[1]:
        return None
    file_path, name, kind = parts
    return Symbol(name=name, kind=kind, file_path=file_path, start_line=0, end_line=0)  # type: ignore[arg-type]
