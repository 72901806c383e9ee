"""Parser capability contract and the built-in Python implementation.

Every language backend subclasses :class:`Parser` and turns one source
file into a :class:`~ripple.models.ParseResult`: normalized symbols, the
dependencies between them (as identity-key strings), and the file's
import/export lists.  Syntax errors never raise; they are reported as
:class:`~ripple.models.ParseError` entries on an otherwise empty result.

:class:`PythonParser` uses the standard-library ``ast`` module and
resolves names only as far as the file's own definitions and its
``import`` statements allow.  It does not type-check.
"""

from __future__ import annotations

import ast
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .config import DEFAULT_MAX_FILE_SIZE
from .errors import ParsingError
from .models import Dependency, Parameter, ParseError, ParseResult, Symbol, symbol_key

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class ParserConfig:
    enabled: bool = True
    max_file_size: int = DEFAULT_MAX_FILE_SIZE


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for all language parsers."""

    def __init__(self, workspace_root: PathLike, config: Optional[ParserConfig] = None) -> None:
        self.workspace_root = Path(workspace_root)
        self.config = config or ParserConfig()

    @property
    @abstractmethod
    def language(self) -> str:
        """Language identifier, e.g. ``"python"``."""

    @abstractmethod
    def get_supported_extensions(self) -> List[str]:
        """File extensions handled, lower-case with leading dot."""

    @abstractmethod
    def parse(self, file_path: PathLike, content: Optional[str] = None) -> ParseResult:
        """Parse a file (or *content* standing in for it)."""

    @abstractmethod
    def find_symbol_at_position(
        self,
        file_path: PathLike,
        line: int,
        column: int,
        content: Optional[str] = None,
    ) -> Optional[Symbol]:
        """Innermost symbol whose span covers the 1-based position."""

    def can_parse(self, file_path: PathLike) -> bool:
        ext = Path(file_path).suffix.lower()
        return self.config.enabled and ext in self.get_supported_extensions()

    def resolve(self, file_path: PathLike) -> Path:
        path = Path(file_path)
        return path if path.is_absolute() else self.workspace_root / path

    def relative_path(self, file_path: PathLike) -> str:
        """Workspace-relative POSIX path, used as the symbol file identity."""
        path = Path(file_path)
        if path.is_absolute():
            try:
                path = path.relative_to(self.workspace_root)
            except ValueError:
                pass
        return PurePosixPath(path).as_posix()

    def read_source(self, file_path: PathLike) -> str:
        full_path = self.resolve(file_path)
        try:
            size = full_path.stat().st_size
        except OSError as exc:
            raise ParsingError(f"Cannot stat {file_path}: {exc}", str(file_path)) from exc
        if self.config.max_file_size and size > self.config.max_file_size:
            raise ParsingError(
                f"File {file_path} exceeds max size ({size} > {self.config.max_file_size})",
                str(file_path),
            )
        try:
            return full_path.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise ParsingError(f"Cannot read {file_path}: {exc}", str(file_path)) from exc


# ===================================================================
# Python (ast)
# ===================================================================

class PythonParser(Parser):
    """Extracts modules, classes, functions, methods and module-level names."""

    @property
    def language(self) -> str:
        return "python"

    def get_supported_extensions(self) -> List[str]:
        return [".py", ".pyw"]

    def parse(self, file_path: PathLike, content: Optional[str] = None) -> ParseResult:
        start = time.perf_counter()
        rel_path = self.relative_path(file_path)
        if content is None:
            content = self.read_source(file_path)

        try:
            tree = ast.parse(content, filename=rel_path)
        except SyntaxError as exc:
            logger.warning("SyntaxError in %s: %s", rel_path, exc)
            return ParseResult(
                file_path=rel_path,
                language=self.language,
                parse_time_ms=_elapsed_ms(start),
                errors=[ParseError(
                    message=exc.msg or str(exc),
                    line=exc.lineno,
                    column=exc.offset,
                )],
            )

        visitor = _SymbolVisitor(self, rel_path, content)
        visitor.visit(tree)

        exports = [
            s.name for s in visitor.symbols
            if s.kind != "module" and s.kind != "method" and not s.name.startswith("_")
        ]
        return ParseResult(
            file_path=rel_path,
            language=self.language,
            symbols=visitor.symbols,
            dependencies=visitor.dependencies,
            exports=exports,
            imports=visitor.imports,
            parse_time_ms=_elapsed_ms(start),
        )

    def find_symbol_at_position(
        self,
        file_path: PathLike,
        line: int,
        column: int,
        content: Optional[str] = None,
    ) -> Optional[Symbol]:
        result = self.parse(file_path, content)
        return symbol_at(result.symbols, line, column)

    def resolve_module(self, dotted: str, level: int, current: str) -> Optional[str]:
        """Map an import to a workspace-relative file, if it lives here."""
        if level:
            base = PurePosixPath(current).parent
            for _ in range(level - 1):
                base = base.parent
            parts = [p for p in dotted.split(".") if p] if dotted else []
            candidate = base.joinpath(*parts) if parts else base
        else:
            candidate = PurePosixPath(*dotted.split("."))
        for rel in (f"{candidate}.py", f"{candidate}/__init__.py"):
            rel = rel[2:] if rel.startswith("./") else rel
            if (self.workspace_root / rel).is_file():
                return rel
        return None


def symbol_at(symbols: Sequence[Symbol], line: int, column: int) -> Optional[Symbol]:
    """Return the innermost non-module symbol covering ``(line, column)``."""
    best: Optional[Symbol] = None
    for sym in symbols:
        if sym.kind == "module" or not sym.contains(line, column):
            continue
        if best is None or (sym.end_line - sym.start_line) <= (best.end_line - best.start_line):
            best = sym
    return best


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


# ===================================================================
# AST visitor
# ===================================================================

class _SymbolVisitor(ast.NodeVisitor):
    """Walks a module AST collecting symbols and raw dependencies."""

    def __init__(self, parser: PythonParser, rel_path: str, source: str) -> None:
        self.parser = parser
        self.rel_path = rel_path
        lines = source.splitlines()
        self.module = Symbol(
            name=PurePosixPath(rel_path).stem,
            kind="module",
            file_path=rel_path,
            start_line=1,
            end_line=max(len(lines), 1),
            end_column=len(lines[-1]) + 1 if lines else 0,
        )
        self.symbols: List[Symbol] = [self.module]
        self.dependencies: List[Dependency] = []
        self.imports: List[str] = []
        # local name -> identity key, filled by defs and imports
        self._names: Dict[str, str] = {}
        # local alias -> workspace file for ``import pkg.mod as alias``
        self._modules: Dict[str, str] = {}
        self._pending_calls: List[Tuple[str, Tuple[str, ...], int, int, Optional[str]]] = []
        self._pending_bases: List[Tuple[str, str, int, int]] = []

    # -- entry ---------------------------------------------------------

    def visit_Module(self, node: ast.Module) -> None:
        # Register top-level names first so forward references resolve.
        for stmt in node.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._names[stmt.name] = symbol_key(self.rel_path, stmt.name, "function")
            elif isinstance(stmt, ast.ClassDef):
                self._names[stmt.name] = symbol_key(self.rel_path, stmt.name, "class")
        self.generic_visit(node)
        self._flush_pending()

    # -- imports -------------------------------------------------------

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self.imports.append(alias.name)
            target = self.parser.resolve_module(alias.name, 0, self.rel_path)
            if target is None:
                continue
            self._modules[alias.asname or alias.name] = target
            self._add_dep(self.module.key, _module_key(target), "imports", node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = node.module or ""
        self.imports.append("." * node.level + module)
        target = self.parser.resolve_module(module, node.level, self.rel_path)
        for alias in node.names:
            if alias.name == "*":
                continue
            local = alias.asname or alias.name
            key = self._exported_key(target, alias.name) if target else None
            if key is not None:
                self._names[local] = key
                self._add_dep(self.module.key, key, "imports", node)
                continue
            # ``from pkg import mod`` names a submodule
            dotted = f"{module}.{alias.name}" if module else alias.name
            sub = self.parser.resolve_module(dotted, node.level, self.rel_path)
            if sub is not None:
                self._modules[local] = sub
                self._add_dep(self.module.key, _module_key(sub), "imports", node)

    # -- definitions ---------------------------------------------------

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        sym = Symbol(
            name=node.name,
            kind="class",
            file_path=self.rel_path,
            start_line=node.lineno,
            end_line=getattr(node, "end_lineno", None) or node.lineno,
            start_column=node.col_offset + 1,
            end_column=(getattr(node, "end_col_offset", None) or 0) + 1,
            signature=_class_signature(node),
        )
        self.symbols.append(sym)
        for base in node.bases:
            name = _dotted_name(base)
            if name:
                self._pending_bases.append((sym.key, name, base.lineno, base.col_offset + 1))
        for stmt in node.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._function(stmt, kind="method", owner=node.name)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._function(node, kind="function", owner=None)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._function(node, kind="function", owner=None)

    def visit_Assign(self, node: ast.Assign) -> None:
        for target in node.targets:
            if isinstance(target, ast.Name):
                self._module_name(target.id, node, None)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        if isinstance(node.target, ast.Name):
            self._module_name(node.target.id, node, ast.unparse(node.annotation))

    def _module_name(self, name: str, node: ast.stmt, annotation: Optional[str]) -> None:
        kind = "constant" if name.isupper() else "variable"
        # Reassignments keep the first binding.
        if self._names.get(name) == symbol_key(self.rel_path, name, kind):
            return
        sym = Symbol(
            name=name,
            kind=kind,
            file_path=self.rel_path,
            start_line=node.lineno,
            end_line=getattr(node, "end_lineno", None) or node.lineno,
            start_column=node.col_offset + 1,
            end_column=(getattr(node, "end_col_offset", None) or 0) + 1,
            return_type=annotation,
        )
        self.symbols.append(sym)
        self._names.setdefault(name, sym.key)

    def _function(
        self,
        node: Union[ast.FunctionDef, ast.AsyncFunctionDef],
        kind: str,
        owner: Optional[str],
    ) -> None:
        params = tuple(_parameters(node.args, skip_self=owner is not None))
        returns = ast.unparse(node.returns) if node.returns is not None else None
        name = f"{owner}.{node.name}" if owner else node.name
        sym = Symbol(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            file_path=self.rel_path,
            start_line=node.lineno,
            end_line=getattr(node, "end_lineno", None) or node.lineno,
            start_column=node.col_offset + 1,
            end_column=(getattr(node, "end_col_offset", None) or 0) + 1,
            signature=_function_signature(node, params, returns),
            parameters=params,
            return_type=returns,
            modifiers=_modifiers(node),
        )
        self.symbols.append(sym)
        for call in _collect_calls(node):
            dotted, line, col = call
            self._pending_calls.append((sym.key, tuple(dotted.split(".")), line, col, owner))

    # -- resolution ----------------------------------------------------

    def _exported_key(self, target_file: str, name: str) -> Optional[str]:
        """Identity key for top-level *name* defined in *target_file*."""
        if target_file == self.rel_path:
            return self._names.get(name)
        kind = _top_level_kind(self.parser.workspace_root / target_file, name)
        return symbol_key(target_file, name, kind) if kind else None

    def _flush_pending(self) -> None:
        methods = {s.name: s.key for s in self.symbols if s.kind == "method"}
        for src, parts, line, col, owner in self._pending_calls:
            key: Optional[str] = None
            if parts[0] == "self" and owner and len(parts) == 2:
                key = methods.get(f"{owner}.{parts[1]}")
            elif len(parts) == 1:
                key = self._names.get(parts[0])
            elif parts[0] in self._modules and len(parts) == 2:
                key = self._exported_key(self._modules[parts[0]], parts[1])
            elif parts[0] in self._names and len(parts) == 2:
                key = methods.get(f"{parts[0]}.{parts[1]}")
            if key and key != src:
                self.dependencies.append(Dependency(src, key, "calls", line, col))
        for src, name, line, col in self._pending_bases:
            key = self._names.get(name.split(".")[-1]) if "." not in name else None
            if key is None and "." in name:
                head, _, attr = name.rpartition(".")
                if head in self._modules:
                    key = self._exported_key(self._modules[head], attr)
            if key:
                self.dependencies.append(Dependency(src, key, "extends", line, col))

    def _add_dep(self, source: str, target: str, dep_type: str, node: ast.AST) -> None:
        self.dependencies.append(Dependency(
            source, target, dep_type,
            getattr(node, "lineno", None), getattr(node, "col_offset", 0) + 1,
        ))

    # Nested functions/classes are not indexed separately.
    def generic_visit(self, node: ast.AST) -> None:
        if isinstance(node, ast.Module):
            for stmt in node.body:
                self.visit(stmt)


# ===================================================================
# Helpers
# ===================================================================

def _module_key(rel_path: str) -> str:
    return symbol_key(rel_path, PurePosixPath(rel_path).stem, "module")


def _top_level_kind(path: Path, name: str) -> Optional[str]:
    try:
        tree = ast.parse(path.read_text(encoding="utf-8", errors="ignore"))
    except (OSError, SyntaxError, ValueError):
        return None
    for stmt in tree.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)) and stmt.name == name:
            return "function"
        if isinstance(stmt, ast.ClassDef) and stmt.name == name:
            return "class"
        if isinstance(stmt, ast.Assign):
            for t in stmt.targets:
                if isinstance(t, ast.Name) and t.id == name:
                    return "constant" if name.isupper() else "variable"
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            if stmt.target.id == name:
                return "constant" if name.isupper() else "variable"
    return None


def _parameters(args: ast.arguments, skip_self: bool) -> List[Parameter]:
    params: List[Parameter] = []
    positional = list(args.posonlyargs) + list(args.args)
    defaults: List[Optional[ast.expr]] = (
        [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
    )
    for i, (arg, default) in enumerate(zip(positional, defaults)):
        if skip_self and i == 0 and arg.arg in ("self", "cls"):
            continue
        params.append(_param(arg, default))
    if args.vararg is not None:
        params.append(_param(args.vararg, None, optional=True, prefix="*"))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(_param(arg, default))
    if args.kwarg is not None:
        params.append(_param(args.kwarg, None, optional=True, prefix="**"))
    return params


def _param(
    arg: ast.arg,
    default: Optional[ast.expr],
    optional: bool = False,
    prefix: str = "",
) -> Parameter:
    return Parameter(
        name=prefix + arg.arg,
        type=ast.unparse(arg.annotation) if arg.annotation is not None else None,
        optional=optional or default is not None,
        default=ast.unparse(default) if default is not None else None,
    )


def _render_param(p: Parameter) -> str:
    text = p.name
    if p.type:
        text += f": {p.type}"
    if p.default is not None:
        text += f" = {p.default}" if p.type else f"={p.default}"
    return text


def _function_signature(node: ast.AST, params: Sequence[Parameter], returns: Optional[str]) -> str:
    prefix = "async def" if isinstance(node, ast.AsyncFunctionDef) else "def"
    rendered = f"{prefix} {getattr(node, 'name')}({', '.join(_render_param(p) for p in params)})"
    return f"{rendered} -> {returns}" if returns else rendered


def _class_signature(node: ast.ClassDef) -> str:
    bases = [ast.unparse(b) for b in node.bases]
    return f"class {node.name}({', '.join(bases)})" if bases else f"class {node.name}"


def _modifiers(node: Union[ast.FunctionDef, ast.AsyncFunctionDef]) -> Tuple[str, ...]:
    mods: List[str] = []
    if isinstance(node, ast.AsyncFunctionDef):
        mods.append("async")
    for dec in node.decorator_list:
        name = _dotted_name(dec)
        if name in ("staticmethod", "classmethod", "property"):
            mods.append(name)
    mods.append("private" if node.name.startswith("_") and not node.name.endswith("__") else "public")
    return tuple(mods)


def _collect_calls(node: ast.AST) -> List[Tuple[str, int, int]]:
    calls: List[Tuple[str, int, int]] = []

    class _CV(ast.NodeVisitor):
        def visit_Call(self, call_node: ast.Call) -> None:
            name = _dotted_name(call_node.func)
            if name:
                calls.append((name, call_node.lineno, call_node.col_offset + 1))
            self.generic_visit(call_node)

    for stmt in getattr(node, "body", []):
        _CV().visit(stmt)
    return calls


def _dotted_name(expr: ast.AST) -> Optional[str]:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        parts: List[str] = []
        current: ast.AST = expr
        while isinstance(current, ast.Attribute):
            parts.append(current.attr)
            current = current.value
        if isinstance(current, ast.Name):
            parts.append(current.id)
            return ".".join(reversed(parts))
        return None
    if isinstance(expr, ast.Call):
        return _dotted_name(expr.func)
    return None
