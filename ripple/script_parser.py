"""JavaScript and TypeScript parsing on tree-sitter grammars.

Tree-sitter produces a concrete syntax tree for every file, so extraction
works from node types and named fields alone.  Names resolve the same way
:class:`~ripple.parser.PythonParser` resolves them: the file's own
top-level declarations plus relative ``import`` statements.  Bare package
specifiers (``"react"``) are recorded as imports but produce no edges.
"""

from __future__ import annotations

import logging
import posixpath
import time
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language
from tree_sitter import Parser as TSParser

from .errors import ParsingError
from .models import Dependency, Parameter, ParseError, ParseResult, Symbol, symbol_key
from .parser import Parser, ParserConfig, PathLike, _elapsed_ms, symbol_at

logger = logging.getLogger(__name__)

JAVASCRIPT_EXTENSIONS = [".js", ".jsx", ".mjs", ".cjs"]
TYPESCRIPT_EXTENSIONS = [".ts", ".tsx", ".mts", ".cts"]

# Tried in order when an import specifier has no extension.
_RESOLVE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")

_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_MODIFIER_TOKENS = {"async", "static", "get", "set", "readonly", "abstract", "accessibility_modifier"}
_TYPE_NAMES = {"identifier", "type_identifier", "member_expression", "nested_type_identifier", "generic_type"}


def _load_grammars() -> Dict[str, TSParser]:
    javascript = Language(tree_sitter_javascript.language())
    typescript = Language(tree_sitter_typescript.language_typescript())
    tsx = Language(tree_sitter_typescript.language_tsx())
    parsers = {ext: TSParser(javascript) for ext in JAVASCRIPT_EXTENSIONS}
    for ext in (".ts", ".mts", ".cts"):
        parsers[ext] = TSParser(typescript)
    parsers[".tsx"] = TSParser(tsx)
    return parsers


class ScriptParser(Parser):
    """Symbols and dependencies for JavaScript or TypeScript sources.

    Both instances load every grammar so a TypeScript file importing a
    ``.js`` module (or the reverse) can still see the target's
    declarations; *language* only decides which extensions are claimed.
    """

    def __init__(
        self,
        workspace_root: PathLike,
        config: Optional[ParserConfig] = None,
        language: str = "javascript",
    ) -> None:
        if language not in ("javascript", "typescript"):
            raise ValueError(f"Unsupported script language: {language!r}")
        super().__init__(workspace_root, config)
        self._language = language
        self._parsers = _load_grammars()
        logger.debug("Loaded tree-sitter grammars for %s", language)

    @property
    def language(self) -> str:
        return self._language

    def get_supported_extensions(self) -> List[str]:
        if self._language == "javascript":
            return list(JAVASCRIPT_EXTENSIONS)
        return list(TYPESCRIPT_EXTENSIONS)

    def parse(self, file_path: PathLike, content: Optional[str] = None) -> ParseResult:
        start = time.perf_counter()
        rel_path = self.relative_path(file_path)
        if content is None:
            content = self.read_source(file_path)
        source = content.encode("utf-8")
        tree = self._tree(rel_path, source)

        error = _first_error(tree.root_node)
        if error is not None:
            line, column = error.start_point[0] + 1, error.start_point[1] + 1
            logger.warning("Syntax error in %s at %d:%d", rel_path, line, column)
            return ParseResult(
                file_path=rel_path,
                language=self.language,
                parse_time_ms=_elapsed_ms(start),
                errors=[ParseError(message="Syntax error", line=line, column=column)],
            )

        walker = _ScriptWalker(self, rel_path, source)
        walker.walk(tree.root_node)
        return ParseResult(
            file_path=rel_path,
            language=self.language,
            symbols=walker.symbols,
            dependencies=walker.dependencies,
            exports=walker.exports,
            imports=walker.imports,
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

    def resolve_module(self, specifier: str, current: str) -> Optional[str]:
        """Map a relative import specifier to a workspace file, if any."""
        if not specifier.startswith("."):
            return None
        base = posixpath.normpath(posixpath.join(posixpath.dirname(current) or ".", specifier))
        if base.startswith(".."):
            return None
        candidates = [base]
        candidates += [base + suffix for suffix in _RESOLVE_SUFFIXES]
        candidates += [f"{base}/index{suffix}" for suffix in _RESOLVE_SUFFIXES]
        for rel in candidates:
            if PurePosixPath(rel).suffix.lower() not in self._parsers:
                continue
            if (self.workspace_root / rel).is_file():
                return rel
        return None

    def declared_kinds(self, rel_path: str) -> Dict[str, str]:
        """Top-level declaration name -> symbol kind for a workspace file."""
        try:
            source = (self.workspace_root / rel_path).read_bytes()
        except OSError:
            return {}
        tree = self._tree(rel_path, source)
        kinds: Dict[str, str] = {}
        for node in tree.root_node.named_children:
            for name, kind in _declarations(node, source):
                kinds.setdefault(name, kind)
        return kinds

    def _tree(self, rel_path: str, source: bytes) -> Any:
        parser = self._parsers.get(PurePosixPath(rel_path).suffix.lower())
        if parser is None:
            raise ParsingError(f"No grammar for {rel_path}", rel_path)
        return parser.parse(source)


# ===================================================================
# Tree walker
# ===================================================================

class _ScriptWalker:
    """Collects symbols and raw dependencies from one syntax tree."""

    def __init__(self, parser: ScriptParser, rel_path: str, source: bytes) -> None:
        self.parser = parser
        self.rel_path = rel_path
        self.source = source
        lines = source.decode("utf-8", errors="ignore").splitlines()
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
        self.exports: List[str] = []
        self.imports: List[str] = []
        self._seen = {self.module.key}
        # local name -> identity key, filled by declarations and imports
        self._names: Dict[str, str] = {}
        # namespace alias -> workspace file for ``import * as alias``
        self._modules: Dict[str, str] = {}
        self._kinds: Dict[str, Dict[str, str]] = {}
        self._pending_calls: List[Tuple[str, Tuple[str, ...], int, int, Optional[str]]] = []
        self._pending_heritage: List[Tuple[str, str, str, int, int]] = []

    def walk(self, root: Any) -> None:
        # Register top-level names first so forward references resolve.
        for node in root.named_children:
            for name, kind in _declarations(node, self.source):
                self._names.setdefault(name, symbol_key(self.rel_path, name, kind))
        for node in root.named_children:
            self._statement(node, exported=False)
        self._flush_pending()

    # -- statements ----------------------------------------------------

    def _statement(self, node: Any, exported: bool) -> None:
        kind = node.type
        if kind == "export_statement":
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                self._statement(declaration, exported=True)
        elif kind == "import_statement":
            self._import(node)
        elif kind in _FUNCTION_DECLARATIONS:
            self._function(node, node.child_by_field_name("name"), "function", None, exported)
        elif kind in _CLASS_DECLARATIONS:
            self._class(node, exported)
        elif kind == "interface_declaration":
            self._named(node, "interface", exported)
        elif kind in ("type_alias_declaration", "enum_declaration"):
            self._named(node, "type", exported)
        elif kind in ("lexical_declaration", "variable_declaration"):
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name_node = declarator.child_by_field_name("name")
                if name_node is None or name_node.type != "identifier":
                    continue
                value = declarator.child_by_field_name("value")
                if value is not None and value.type in _FUNCTION_VALUES:
                    self._function(value, name_node, "function", None, exported, span=declarator)
                else:
                    self._variable(declarator, name_node, exported)

    def _import(self, node: Any) -> None:
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return
        specifier = _unquote(self._text(source_node))
        self.imports.append(specifier)
        target = self.parser.resolve_module(specifier, self.rel_path)
        if target is None:
            return
        module_key = symbol_key(target, PurePosixPath(target).stem, "module")
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is None:
            self._add_dep(self.module.key, module_key, "imports", node)
            return
        for child in clause.named_children:
            if child.type == "namespace_import":
                alias = next((c for c in child.named_children if c.type == "identifier"), None)
                if alias is not None:
                    self._modules[self._text(alias)] = target
                self._add_dep(self.module.key, module_key, "imports", node)
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    alias_node = spec.child_by_field_name("alias")
                    if name_node is None:
                        continue
                    name = self._text(name_node)
                    key = self._exported_key(target, name)
                    if key is None:
                        continue
                    self._names[self._text(alias_node) if alias_node is not None else name] = key
                    self._add_dep(self.module.key, key, "imports", node)
            else:
                # default import: only the module itself is known
                self._add_dep(self.module.key, module_key, "imports", node)

    # -- declarations --------------------------------------------------

    def _function(
        self,
        func: Any,
        name_node: Optional[Any],
        kind: str,
        owner: Optional[str],
        exported: bool,
        span: Optional[Any] = None,
    ) -> None:
        if name_node is None:
            return
        span = span if span is not None else func
        name = self._text(name_node)
        qualified = f"{owner}.{name}" if owner else name
        body = func.child_by_field_name("body")
        sym = self._symbol(
            span, qualified, kind,
            signature=self._header(span, body),
            parameters=tuple(self._parameters(func)),
            return_type=self._type_text(func.child_by_field_name("return_type")),
            modifiers=self._modifiers(func, name),
        )
        if sym is None:
            return
        if exported and owner is None:
            self.exports.append(qualified)
        if body is not None:
            for parts, line, column in _collect_calls(body, self.source):
                self._pending_calls.append((sym.key, parts, line, column, owner))

    def _class(self, node: Any, exported: bool) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = self._text(name_node)
        body = node.child_by_field_name("body")
        sym = self._symbol(node, name, "class", signature=self._header(node, body))
        if sym is None:
            return
        if exported:
            self.exports.append(name)
        for child in node.children:
            if child.type == "class_heritage":
                self._heritage(sym.key, child)
        if body is None:
            return
        for member in body.named_children:
            if member.type in ("method_definition", "abstract_method_signature"):
                self._function(member, member.child_by_field_name("name"), "method", name, False)

    def _named(self, node: Any, kind: str, exported: bool) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = self._text(name_node)
        sym = self._symbol(node, name, kind, signature=self._header(node, node.child_by_field_name("body")))
        if sym is None:
            return
        if exported:
            self.exports.append(name)
        for child in node.named_children:
            if child.type == "extends_type_clause":
                for target in child.named_children:
                    self._queue_heritage(sym.key, target, "extends")

    def _variable(self, declarator: Any, name_node: Any, exported: bool) -> None:
        name = self._text(name_node)
        kind = "constant" if name.isupper() else "variable"
        sym = self._symbol(
            declarator, name, kind,
            return_type=self._type_text(declarator.child_by_field_name("type")),
        )
        if sym is not None and exported:
            self.exports.append(name)

    def _heritage(self, class_key: str, node: Any) -> None:
        for child in node.named_children:
            if child.type == "extends_clause":
                for target in child.named_children:
                    self._queue_heritage(class_key, target, "extends")
            elif child.type == "implements_clause":
                for target in child.named_children:
                    self._queue_heritage(class_key, target, "implements")
            else:
                self._queue_heritage(class_key, child, "extends")

    def _queue_heritage(self, source_key: str, node: Any, dep_type: str) -> None:
        if node.type not in _TYPE_NAMES:
            return
        if node.type == "generic_type":
            name_node = node.child_by_field_name("name")
            node = name_node if name_node is not None else node.named_children[0]
        self._pending_heritage.append((
            source_key, self._text(node), dep_type,
            node.start_point[0] + 1, node.start_point[1] + 1,
        ))

    def _symbol(self, span: Any, name: str, kind: str, **attrs: Any) -> Optional[Symbol]:
        key = symbol_key(self.rel_path, name, kind)
        # Redeclarations keep the first binding.
        if key in self._seen:
            return None
        sym = Symbol(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            file_path=self.rel_path,
            start_line=span.start_point[0] + 1,
            end_line=span.end_point[0] + 1,
            start_column=span.start_point[1] + 1,
            end_column=span.end_point[1] + 1,
            **attrs,
        )
        self._seen.add(key)
        self.symbols.append(sym)
        return sym

    # -- details -------------------------------------------------------

    def _parameters(self, func: Any) -> List[Parameter]:
        params_node = func.child_by_field_name("parameters")
        if params_node is None:
            single = func.child_by_field_name("parameter")
            return [Parameter(name=self._text(single))] if single is not None else []
        params: List[Parameter] = []
        for param in params_node.named_children:
            if param.type in ("required_parameter", "optional_parameter"):
                pattern = param.child_by_field_name("pattern")
                value = param.child_by_field_name("value")
                rest = pattern is not None and pattern.type == "rest_pattern"
                params.append(Parameter(
                    name=self._text(pattern if pattern is not None else param),
                    type=self._type_text(param.child_by_field_name("type")),
                    optional=param.type == "optional_parameter" or value is not None or rest,
                    default=self._text(value) if value is not None else None,
                ))
            elif param.type == "assignment_pattern":
                params.append(Parameter(
                    name=self._text(param.child_by_field_name("left")),
                    optional=True,
                    default=self._text(param.child_by_field_name("right")),
                ))
            elif param.type == "rest_pattern":
                params.append(Parameter(name=self._text(param), optional=True))
            elif param.type != "comment":
                params.append(Parameter(name=self._text(param)))
        return params

    def _modifiers(self, func: Any, name: str) -> Tuple[str, ...]:
        mods = [self._text(c) for c in func.children if c.type in _MODIFIER_TOKENS]
        if not any(m in ("private", "protected", "public") for m in mods):
            mods.append("private" if name.startswith("#") or name.startswith("_") else "public")
        return tuple(mods)

    def _header(self, span: Any, body: Optional[Any]) -> str:
        end = body.start_byte if body is not None else span.end_byte
        text = " ".join(self.source[span.start_byte:end].decode("utf-8", errors="ignore").split())
        if text.endswith("=>"):
            text = text[:-2].rstrip()
        return text

    def _type_text(self, node: Optional[Any]) -> Optional[str]:
        if node is None:
            return None
        text = self._text(node)
        if text.startswith(":"):
            text = text[1:]
        return text.strip() or None

    def _text(self, node: Any) -> str:
        return _node_text(node, self.source)

    # -- resolution ----------------------------------------------------

    def _exported_key(self, target_file: str, name: str) -> Optional[str]:
        if target_file == self.rel_path:
            return self._names.get(name)
        if target_file not in self._kinds:
            self._kinds[target_file] = self.parser.declared_kinds(target_file)
        kind = self._kinds[target_file].get(name)
        return symbol_key(target_file, name, kind) if kind else None

    def _flush_pending(self) -> None:
        methods = {s.name: s.key for s in self.symbols if s.kind == "method"}
        for src, parts, line, column, owner in self._pending_calls:
            key: Optional[str] = None
            if parts[0] == "this" and owner and len(parts) == 2:
                key = methods.get(f"{owner}.{parts[1]}")
            elif len(parts) == 1:
                key = self._names.get(parts[0])
            elif parts[0] in self._modules:
                key = self._exported_key(self._modules[parts[0]], parts[1])
            elif parts[0] in self._names:
                key = methods.get(f"{parts[0]}.{parts[1]}")
            if key and key != src:
                self.dependencies.append(Dependency(src, key, "calls", line, column))
        for src, name, dep_type, line, column in self._pending_heritage:
            head, _, attr = name.rpartition(".")
            if not head:
                key = self._names.get(name)
            elif head in self._modules:
                key = self._exported_key(self._modules[head], attr)
            else:
                key = None
            if key and key != src:
                self.dependencies.append(Dependency(src, key, dep_type, line, column))

    def _add_dep(self, source: str, target: str, dep_type: str, node: Any) -> None:
        self.dependencies.append(Dependency(
            source, target, dep_type, node.start_point[0] + 1, node.start_point[1] + 1,
        ))


# ===================================================================
# Helpers
# ===================================================================

def _declarations(node: Any, source: bytes) -> Iterator[Tuple[str, str]]:
    """(name, kind) pairs declared by one top-level statement."""
    if node.type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            yield from _declarations(declaration, source)
        return
    name_node = node.child_by_field_name("name")
    if node.type in _FUNCTION_DECLARATIONS and name_node is not None:
        yield _node_text(name_node, source), "function"
    elif node.type in _CLASS_DECLARATIONS and name_node is not None:
        yield _node_text(name_node, source), "class"
    elif node.type == "interface_declaration" and name_node is not None:
        yield _node_text(name_node, source), "interface"
    elif node.type in ("type_alias_declaration", "enum_declaration") and name_node is not None:
        yield _node_text(name_node, source), "type"
    elif node.type in ("lexical_declaration", "variable_declaration"):
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            target = declarator.child_by_field_name("name")
            if target is None or target.type != "identifier":
                continue
            name = _node_text(target, source)
            value = declarator.child_by_field_name("value")
            if value is not None and value.type in _FUNCTION_VALUES:
                yield name, "function"
            else:
                yield name, "constant" if name.isupper() else "variable"


def _collect_calls(body: Any, source: bytes) -> List[Tuple[Tuple[str, ...], int, int]]:
    calls: List[Tuple[Tuple[str, ...], int, int]] = []
    stack = [body]
    while stack:
        node = stack.pop()
        if node.type in ("call_expression", "new_expression"):
            callee = node.child_by_field_name("function")
            if callee is None:
                callee = node.child_by_field_name("constructor")
            parts = _callee_parts(callee, source) if callee is not None else None
            if parts:
                calls.append((parts, node.start_point[0] + 1, node.start_point[1] + 1))
        stack.extend(reversed(node.named_children))
    return calls


def _callee_parts(node: Any, source: bytes) -> Optional[Tuple[str, ...]]:
    if node.type == "identifier":
        return (_node_text(node, source),)
    if node.type == "member_expression":
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        if obj.type == "this":
            return ("this", _node_text(prop, source))
        if obj.type == "identifier":
            return (_node_text(obj, source), _node_text(prop, source))
    return None


def _first_error(root: Any) -> Optional[Any]:
    if not root.has_error:
        return None
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        stack.extend(reversed(node.children))
    return root


def _node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="ignore")


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text
