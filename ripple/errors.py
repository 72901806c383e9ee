"""Error taxonomy and a bounded in-memory error log."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_ERROR_LOG_SIZE = 100


class RippleError(Exception):
    """Base class for errors raised by the analysis engine."""


class ParsingError(RippleError):
    """A single file could not be read or parsed."""

    def __init__(self, message: str, filename: str) -> None:
        super().__init__(message)
        self.filename = filename


class GraphBuildError(RippleError):
    """The dependency graph could not be built for a workspace."""


class ParserNotFoundError(RippleError):
    """No parser is registered for a file's extension."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No parser available for {path}")
        self.path = path


@dataclass
class ErrorLogEntry:
    error: BaseException
    component: str
    operation: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ErrorLog:
    """Keeps the most recent errors, oldest dropped first."""

    def __init__(self, max_size: int = DEFAULT_ERROR_LOG_SIZE) -> None:
        self._entries: Deque[ErrorLogEntry] = deque(maxlen=max_size)

    def record(
        self,
        error: BaseException,
        component: str,
        operation: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ErrorLogEntry:
        entry = ErrorLogEntry(
            error=error,
            component=component,
            operation=operation,
            metadata=dict(metadata or {}),
        )
        self._entries.append(entry)
        logger.debug(
            "Recorded %s in %s.%s: %s",
            type(error).__name__, component, operation, error,
        )
        return entry

    def entries(self) -> List[ErrorLogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
