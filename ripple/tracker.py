"""Debounced, per-file coalescing of edit events.

Edits for a file are buffered until the file has been quiet for the
debounce window, then a single consumer task runs one analysis for the
drained burst (on its most recent edit and content).  Each file carries
a generation counter; an analysis whose generation was superseded while
it ran is dropped instead of overwriting the newer state.

Per-file phase: ``idle -> buffered -> resolved -> computed -> reported``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Literal, Optional, Tuple

from .config import DEFAULT_DEBOUNCE_MS
from .models import ContentChange, EditImpact

logger = logging.getLogger(__name__)

EditPhase = Literal["idle", "buffered", "resolved", "computed", "reported"]
Analyze = Callable[[str, ContentChange, Optional[str]], Optional[EditImpact]]
ImpactCallback = Callable[[str, EditImpact], None]

DEFAULT_MAX_BUFFERED = 256


@dataclass
class _FileState:
    buffer: Deque[Tuple[ContentChange, Optional[str]]]
    generation: int = 0
    phase: EditPhase = "idle"
    timer: Optional[asyncio.TimerHandle] = None
    last_impact: Optional[EditImpact] = None
    analyses: int = 0


class EditTracker:
    def __init__(
        self,
        analyze: Analyze,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        on_impact: Optional[ImpactCallback] = None,
        max_buffered: int = DEFAULT_MAX_BUFFERED,
    ) -> None:
        self._analyze = analyze
        self.debounce_seconds = debounce_ms / 1000.0
        self._on_impact = on_impact
        self._max_buffered = max_buffered
        self._files: Dict[str, _FileState] = {}
        self._queue: "Optional[asyncio.Queue[Tuple[str, int]]]" = None
        self._consumer: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if self._consumer is not None and not self._consumer.done():
            return
        self._queue = asyncio.Queue()
        self._consumer = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        for state in self._files.values():
            if state.timer is not None:
                state.timer.cancel()
                state.timer = None
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def submit(self, file_path: str, change: ContentChange, content: Optional[str] = None) -> None:
        """Buffer *change* and (re)arm the quiescence timer for *file_path*."""
        if self._queue is None:
            raise RuntimeError("EditTracker.start() must be called first")
        state = self._files.get(file_path)
        if state is None:
            state = _FileState(buffer=deque(maxlen=self._max_buffered))
            self._files[file_path] = state
        state.buffer.append((change, content))
        state.generation += 1
        state.phase = "buffered"
        if state.timer is not None:
            state.timer.cancel()
        state.timer = asyncio.get_running_loop().call_later(
            self.debounce_seconds, self._queue.put_nowait, (file_path, state.generation),
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def phase(self, file_path: str) -> EditPhase:
        state = self._files.get(file_path)
        return state.phase if state else "idle"

    def last_impact(self, file_path: str) -> Optional[EditImpact]:
        state = self._files.get(file_path)
        return state.last_impact if state else None

    def pending(self, file_path: str) -> int:
        state = self._files.get(file_path)
        return len(state.buffer) if state else 0

    def analyses(self, file_path: str) -> int:
        state = self._files.get(file_path)
        return state.analyses if state else 0

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        queue = self._queue
        if queue is None:
            raise RuntimeError("EditTracker.start() must be called first")
        while True:
            file_path, generation = await queue.get()
            try:
                await self._drain(file_path, generation)
            finally:
                queue.task_done()

    async def _drain(self, file_path: str, generation: int) -> None:
        state = self._files.get(file_path)
        if state is None or generation != state.generation or not state.buffer:
            return
        state.timer = None
        change, content = state.buffer[-1]
        state.buffer.clear()
        state.phase = "resolved"

        try:
            impact = self._analyze(file_path, change, content)
        except Exception:
            logger.exception("Edit analysis failed for %s", file_path)
            impact = None
        state.analyses += 1
        # Let newer submissions land before deciding whether this result is stale.
        await asyncio.sleep(0)
        if generation != state.generation:
            logger.debug("Dropping superseded analysis for %s", file_path)
            return

        state.phase = "computed"
        if impact is None or (impact.type != "delete" and not impact.affected_files):
            state.phase = "idle"
            return
        state.last_impact = impact
        state.phase = "reported"
        if self._on_impact is not None:
            self._on_impact(file_path, impact)
