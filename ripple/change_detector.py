"""Per-symbol version history and change classification."""

from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional

from .models import ChangeType, CodeChange, Symbol


class ChangeDetector:
    """Records successive versions of each symbol identity.

    Every call to :meth:`record_symbol` appends a version.  When the new
    version differs from the previous one in signature, parameters or
    return type, a :class:`~ripple.models.CodeChange` is logged.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._history: Dict[str, List[Symbol]] = {}
        self._changes: List[CodeChange] = []
        self._clock = clock

    def record_symbol(self, symbol: Symbol) -> Optional[CodeChange]:
        history = self._history.setdefault(symbol.key, [])
        change: Optional[CodeChange] = None
        if history and _has_changed(history[-1], symbol):
            change = CodeChange(
                symbol=symbol,
                old_symbol=history[-1],
                change_type=detect_change_type(history[-1], symbol),
                timestamp=self._clock(),
            )
            self._changes.append(change)
        history.append(symbol)
        return change

    def get_last_symbol(self, symbol: Symbol) -> Optional[Symbol]:
        """Return the version recorded just before the current one."""
        history = self._history.get(symbol.key)
        if not history or len(history) < 2:
            return None
        return history[-2]

    def get_history(self, symbol: Symbol) -> List[Symbol]:
        return list(self._history.get(symbol.key, ()))

    def get_changes(self) -> List[CodeChange]:
        return list(self._changes)

    def get_changes_for_symbol(self, symbol: Symbol) -> List[CodeChange]:
        key = symbol.key
        return [c for c in self._changes if c.symbol.key == key]

    def clear_changes(self) -> None:
        self._changes.clear()

    def __len__(self) -> int:
        return len(self._history)


def _has_changed(old: Symbol, new: Symbol) -> bool:
    return (
        old.signature != new.signature
        or old.parameters_json() != new.parameters_json()
        or old.return_type != new.return_type
    )


def detect_change_type(old: Symbol, new: Symbol) -> ChangeType:
    if not old.signature and new.signature:
        return "added"
    if old.signature and not new.signature:
        return "removed"
    if old.signature != new.signature:
        return "signature"
    if old.return_type != new.return_type:
        return "type"
    return "modified"
