"""Top-level engine: one set of components per workspace."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .cache_manager import CacheManager
from .change_detector import ChangeDetector
from .config_manager import AnalysisConfig
from .errors import ErrorLog, GraphBuildError, ParserNotFoundError
from .graph import DependencyGraph
from .graph_manager import DependencyGraphManager
from .impact_analyzer import ImpactAnalyzer
from .models import ContentChange, EditImpact, ParseResult, Symbol
from .package_impact import PackageImpact, PackageImpactAnalyzer
from .parser import ParserConfig
from .parser_registry import ParserRegistry, default_registry
from .realtime import RealTimeImpactAnalyzer, detect_edit_type
from .tracker import EditTracker, ImpactCallback
from .watcher import CodeChangeHandler, FileWatcher
from .workspace import find_source_files

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ImpactEngine:
    """Wires registry, cache, graph, history and analyzers for one workspace.

    Nothing here is global: two engines over two workspaces share no state.
    """

    def __init__(
        self,
        workspace_root: PathLike,
        config: Optional[AnalysisConfig] = None,
        registry: Optional[ParserRegistry] = None,
    ) -> None:
        self.workspace_root = Path(workspace_root).resolve()
        self.config = config or AnalysisConfig()
        self.registry = registry if registry is not None else default_registry(
            self.workspace_root,
            ParserConfig(max_file_size=self.config.max_file_size),
            enabled=self.config.is_language_enabled,
        )
        self.error_log = ErrorLog()
        self.change_detector = ChangeDetector()
        self.cache: CacheManager[ParseResult] = CacheManager(
            max_entries=self.config.cache_max_entries,
            ttl_seconds=self.config.cache_ttl_seconds or None,
        )
        self.graph_manager = DependencyGraphManager(
            self.registry,
            cache=self.cache,
            graph=DependencyGraph(),
            change_detector=self.change_detector,
            error_log=self.error_log,
        )
        self.impact_analyzer = ImpactAnalyzer()
        self.realtime = RealTimeImpactAnalyzer(
            self.graph_manager,
            self.impact_analyzer,
            self.change_detector,
            error_log=self.error_log,
            include_transitive=self.config.include_transitive,
            max_depth=self.config.max_depth,
        )
        self.package_impact = PackageImpactAnalyzer(self.graph_manager, self.workspace_root)

    @property
    def graph(self) -> DependencyGraph:
        return self.graph_manager.graph

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def index_workspace(self) -> Dict[str, int]:
        if not self.workspace_root.is_dir():
            raise GraphBuildError(f"Workspace root is not a directory: {self.workspace_root}")
        files = find_source_files(self.workspace_root, self.registry.supported_extensions())
        logger.info("Indexing %d files under %s", len(files), self.workspace_root)
        stats = self.graph_manager.update_files(files)
        return {
            "files": stats["files"],
            "nodes": stats["nodes"],
            "edges": stats["edges"],
            "errors": stats["errors"],
        }

    def update_file(self, file_path: PathLike, content: Optional[str] = None) -> Optional[ParseResult]:
        return self.graph_manager.update_file(self._absolute(file_path), content)

    def remove_file(self, file_path: PathLike) -> int:
        return self.graph_manager.remove_file(self._absolute(file_path))

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_edit(
        self,
        file_path: PathLike,
        change: ContentChange,
        content: Optional[str] = None,
    ) -> Optional[EditImpact]:
        """Fold the edit into the graph and report its impact.

        Deletions are analysed against the pre-edit graph, then applied;
        every other edit is applied first so the history holds both the
        previous and the current version of the edited symbol.
        """
        path = self._absolute(file_path)
        if not self.registry.can_parse(path):
            logger.warning("No parser available for %s", path)
            return None
        if detect_edit_type(change) == "delete":
            impact = self.realtime.analyze(path, change, content)
            self.graph_manager.update_file(path, content)
            return impact
        self.graph_manager.update_file(path, content)
        return self.realtime.analyze(path, change, content)

    def find_symbol(self, file_path: PathLike, name: str, kind: Optional[str] = None) -> Optional[Symbol]:
        """Look up a symbol of *file_path* by name (and kind) in the graph."""
        path = self._absolute(file_path)
        parser = self.registry.get_parser_for_file(path)
        if parser is None:
            raise ParserNotFoundError(str(file_path))
        rel = parser.relative_path(path)
        for sym in self.graph.nodes_for_file(rel):
            if sym.name == name and (kind is None or sym.kind == kind):
                return sym
        return None

    def dependents(
        self,
        symbol: Symbol,
        transitive: Optional[bool] = None,
        max_depth: Optional[int] = None,
    ) -> List[Symbol]:
        if transitive is None:
            transitive = self.config.include_transitive
        if not transitive:
            return self.graph.get_dependents(symbol)
        depth = self.config.max_depth if max_depth is None else max_depth
        return self.graph.get_transitive_dependents(symbol, depth)

    def analyze_install(self, package_name: str, version: str) -> PackageImpact:
        return self.package_impact.analyze_install(package_name, version)

    def analyze_remove(self, package_name: str) -> PackageImpact:
        return self.package_impact.analyze_remove(package_name)

    def stats(self) -> Dict[str, Any]:
        return {
            "files": len(self.graph_manager.tracked_files()),
            "nodes": len(self.graph),
            "edges": self.graph.edge_count,
            "cache": asdict(self.cache.stats()),
            "errors": len(self.error_log),
            "languages": self.registry.registered_languages(),
        }

    def export(self) -> Dict[str, Any]:
        return self.graph.to_json()

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def tracker(self, on_impact: Optional[ImpactCallback] = None) -> EditTracker:
        """An :class:`EditTracker` feeding edits into this engine."""
        return EditTracker(self.analyze_edit, debounce_ms=self.config.debounce_ms, on_impact=on_impact)

    def watcher(self) -> FileWatcher:
        handler = CodeChangeHandler(
            on_change=self.update_file,
            on_delete=self.remove_file,
            accepts=self.registry.can_parse,
            debounce_seconds=self.config.debounce_ms / 1000.0,
        )
        return FileWatcher(self.workspace_root, handler)

    def _absolute(self, file_path: PathLike) -> Path:
        path = Path(file_path)
        return path if path.is_absolute() else self.workspace_root / path
