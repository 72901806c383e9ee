"""Filesystem watching: keep the engine's graph in step with disk."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Literal, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

FileEvent = Literal["changed", "deleted"]


class CodeChangeHandler(FileSystemEventHandler):
    """Collect file events and flush them once the tree has been quiet.

    Events for the same path collapse into the latest one.  ``flush`` is
    called by the owner on a timer; pending paths are only handed to the
    callbacks after ``debounce_seconds`` without a new event.
    """

    def __init__(
        self,
        on_change: Callable[[Path], object],
        on_delete: Callable[[Path], object],
        accepts: Callable[[Path], bool],
        debounce_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.on_change = on_change
        self.on_delete = on_delete
        self.accepts = accepts
        self.debounce_seconds = debounce_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Dict[str, FileEvent] = {}
        self._last_event = 0.0

    def on_created(self, event: FileSystemEvent) -> None:
        self._record(event.src_path, "changed", event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._record(event.src_path, "changed", event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._record(event.src_path, "deleted", event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._record(event.src_path, "deleted", event.is_directory)
        self._record(getattr(event, "dest_path", ""), "changed", event.is_directory)

    @property
    def pending(self) -> Dict[str, FileEvent]:
        with self._lock:
            return dict(self._pending)

    def flush(self, force: bool = False) -> int:
        """Apply pending events if quiet long enough.  Returns events applied."""
        with self._lock:
            if not self._pending:
                return 0
            if not force and self._clock() - self._last_event < self.debounce_seconds:
                return 0
            batch = self._pending
            self._pending = {}

        for src, kind in batch.items():
            path = Path(src)
            try:
                if kind == "deleted":
                    self.on_delete(path)
                else:
                    self.on_change(path)
            except Exception:
                logger.exception("Failed to apply %s event for %s", kind, path)
        return len(batch)

    def _record(self, src_path: Union[str, bytes], kind: FileEvent, is_directory: bool) -> None:
        if is_directory or not src_path:
            return
        if isinstance(src_path, bytes):
            src_path = src_path.decode()
        path = Path(src_path)
        # Editor swap files and hidden directories.
        if any(part.startswith(".") for part in path.parts[-2:]):
            return
        if not self.accepts(path):
            return
        with self._lock:
            self._pending[str(path)] = kind
            self._last_event = self._clock()


class FileWatcher:
    """Owns a watchdog observer feeding a :class:`CodeChangeHandler`."""

    def __init__(
        self,
        root: Union[str, Path],
        handler: CodeChangeHandler,
        poll_interval: float = 0.25,
    ) -> None:
        self.root = Path(root).resolve()
        self.handler = handler
        self.poll_interval = poll_interval
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s", self.root)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        self.handler.flush(force=True)

    def run_forever(self) -> None:
        """Block, flushing debounced events until interrupted."""
        self.start()
        try:
            while True:
                time.sleep(self.poll_interval)
                self.handler.flush()
        finally:
            self.stop()
