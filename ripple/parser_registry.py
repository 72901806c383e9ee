"""Registry mapping file extensions to language parsers.

Parsers can be registered eagerly (an instance) or lazily (a factory
called the first time a file of that language is requested).  A factory
runs at most once per language; a factory that raises is logged and the
language is treated as unavailable.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from .parser import Parser, ParserConfig, PythonParser

logger = logging.getLogger(__name__)

ParserFactory = Callable[[], Parser]

SCRIPT_LANGUAGES: Dict[str, List[str]] = {
    "javascript": [".js", ".jsx", ".mjs", ".cjs"],
    "typescript": [".ts", ".tsx", ".mts", ".cts"],
}


class ParserRegistry:
    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}
        self._factories: Dict[str, ParserFactory] = {}
        self._extensions: Dict[str, str] = {}

    def register(self, parser: Parser) -> None:
        language = parser.language
        self._parsers[language] = parser
        self._factories.pop(language, None)
        for ext in parser.get_supported_extensions():
            self._extensions[ext.lower()] = language

    def register_lazy(
        self,
        language: str,
        extensions: Iterable[str],
        factory: ParserFactory,
    ) -> None:
        self._factories[language] = factory
        for ext in extensions:
            self._extensions[ext.lower()] = language

    def get_parser(self, language: str) -> Optional[Parser]:
        parser = self._parsers.get(language)
        if parser is not None:
            return parser
        factory = self._factories.pop(language, None)
        if factory is None:
            return None
        try:
            parser = factory()
        except Exception as exc:
            logger.warning("Failed to load parser for %s: %s", language, exc)
            return None
        logger.debug("Loaded %s parser", language)
        self.register(parser)
        return parser

    def get_parser_for_file(self, file_path: Union[str, Path]) -> Optional[Parser]:
        language = self.language_for(file_path)
        if language is None:
            return None
        return self.get_parser(language)

    def language_for(self, file_path: Union[str, Path]) -> Optional[str]:
        return self._extensions.get(Path(file_path).suffix.lower())

    def can_parse(self, file_path: Union[str, Path]) -> bool:
        return self.language_for(file_path) is not None

    def registered_languages(self) -> List[str]:
        return sorted(set(self._parsers) | set(self._factories))

    def supported_extensions(self) -> List[str]:
        return sorted(self._extensions)

    def unregister(self, language: str) -> None:
        self._parsers.pop(language, None)
        self._factories.pop(language, None)
        for ext in [e for e, lang in self._extensions.items() if lang == language]:
            del self._extensions[ext]

    def clear(self) -> None:
        self._parsers.clear()
        self._factories.clear()
        self._extensions.clear()


def default_registry(
    workspace_root: Union[str, Path],
    config: Optional[ParserConfig] = None,
    enabled: Optional[Callable[[str], bool]] = None,
) -> ParserRegistry:
    """Registry with the built-in parsers registered lazily."""
    registry = ParserRegistry()
    if enabled is None or enabled("python"):
        registry.register_lazy(
            "python", [".py", ".pyw"],
            lambda: PythonParser(workspace_root, config),
        )
    for language, extensions in SCRIPT_LANGUAGES.items():
        if enabled is None or enabled(language):
            registry.register_lazy(
                language, extensions,
                lambda language=language: _script_parser(workspace_root, config, language),
            )
    return registry


def _script_parser(workspace_root: Union[str, Path], config: Optional[ParserConfig], language: str) -> Parser:
    # Grammars load on first use; a missing tree-sitter install only
    # disables these languages.
    from .script_parser import ScriptParser

    return ScriptParser(workspace_root, config, language)
