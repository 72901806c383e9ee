"""Tests for filesystem watching."""

from pathlib import Path

from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from ripple.engine import ImpactEngine
from ripple.watcher import CodeChangeHandler, FileWatcher


class Calls:
    def __init__(self):
        self.changed = []
        self.deleted = []


def _handler(fake_clock, calls):
    return CodeChangeHandler(
        on_change=calls.changed.append,
        on_delete=calls.deleted.append,
        accepts=lambda p: p.suffix == ".py",
        debounce_seconds=0.5,
        clock=fake_clock,
    )


class TestCodeChangeHandler:
    """Event filtering and debounced flushing."""

    def test_flush_waits_for_quiet_period(self, fake_clock, temp_dir: Path):
        calls = Calls()
        handler = _handler(fake_clock, calls)
        handler.on_modified(FileModifiedEvent(str(temp_dir / "a.py")))

        assert handler.flush() == 0
        fake_clock.advance(0.6)
        assert handler.flush() == 1
        assert calls.changed == [temp_dir / "a.py"]

    def test_repeated_events_collapse(self, fake_clock, temp_dir: Path):
        calls = Calls()
        handler = _handler(fake_clock, calls)
        path = str(temp_dir / "a.py")
        handler.on_created(FileCreatedEvent(path))
        handler.on_modified(FileModifiedEvent(path))
        handler.on_deleted(FileDeletedEvent(path))

        assert handler.pending == {path: "deleted"}
        assert handler.flush(force=True) == 1
        assert calls.deleted == [Path(path)]
        assert calls.changed == []

    def test_ignored_events(self, fake_clock, temp_dir: Path):
        calls = Calls()
        handler = _handler(fake_clock, calls)
        handler.on_modified(DirModifiedEvent(str(temp_dir / "pkg")))
        handler.on_modified(FileModifiedEvent(str(temp_dir / "notes.txt")))
        handler.on_modified(FileModifiedEvent(str(temp_dir / ".hidden" / "a.py")))

        assert handler.pending == {}

    def test_move_is_delete_plus_change(self, fake_clock, temp_dir: Path):
        calls = Calls()
        handler = _handler(fake_clock, calls)
        handler.on_moved(FileMovedEvent(str(temp_dir / "old.py"), str(temp_dir / "new.py")))

        handler.flush(force=True)

        assert calls.deleted == [temp_dir / "old.py"]
        assert calls.changed == [temp_dir / "new.py"]

    def test_callback_failure_does_not_stop_flush(self, fake_clock, temp_dir: Path):
        seen = []

        def on_change(path):
            seen.append(path.name)
            raise RuntimeError("reindex failed")

        handler = CodeChangeHandler(on_change, lambda p: None, lambda p: True, clock=fake_clock)
        handler.on_modified(FileModifiedEvent(str(temp_dir / "a.py")))
        handler.on_modified(FileModifiedEvent(str(temp_dir / "b.py")))

        assert handler.flush(force=True) == 2
        assert sorted(seen) == ["a.py", "b.py"]


class TestEngineWatcher:
    """The engine's watcher keeps the graph in step with disk."""

    def test_created_and_deleted_files(self, workspace: Path):
        engine = ImpactEngine(workspace)
        engine.index_workspace()
        watcher = engine.watcher()
        helper = workspace / "helper.py"
        helper.write_text("from .pricing import apply_tax\n\n\ndef gross(x):\n    return apply_tax(x)\n")

        watcher.handler.on_created(FileCreatedEvent(str(helper)))
        watcher.handler.flush(force=True)

        assert engine.graph.get_node("helper.py:gross:function") is not None

        (workspace / "pricing.py").unlink()
        watcher.handler.on_deleted(FileDeletedEvent(str(workspace / "pricing.py")))
        watcher.handler.flush(force=True)

        assert engine.graph.get_node("pricing.py:apply_tax:function") is None
        assert "pricing.py" not in engine.graph_manager.tracked_files()

    def test_non_source_files_are_ignored(self, workspace: Path):
        engine = ImpactEngine(workspace)
        watcher = engine.watcher()

        watcher.handler.on_created(FileCreatedEvent(str(workspace / "README.md")))

        assert watcher.handler.pending == {}


def test_file_watcher_lifecycle(temp_dir: Path, fake_clock):
    calls = Calls()
    watcher = FileWatcher(temp_dir, _handler(fake_clock, calls))

    watcher.start()
    watcher.start()
    watcher.stop()
    watcher.stop()

    assert watcher.root == temp_dir
