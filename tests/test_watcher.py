"""Tests for the path watcher."""

import asyncio
from pathlib import Path

import pytest
from watchfiles import Change

from hotreloader.events import Event, EventBus, EventType
from hotreloader.reload.watcher import ChangeEvent, ChangeKind, PathWatcher


@pytest.fixture
def watcher(tmp_path: Path) -> PathWatcher:
    (tmp_path / "pkg").mkdir()
    watcher = PathWatcher([tmp_path])
    watcher._scan_dirs([tmp_path])
    return watcher


class TestToEvent:
    """Tests for mapping watchfiles changes to change kinds."""

    def test_added_file(self, watcher: PathWatcher, tmp_path: Path):
        (tmp_path / "new.py").write_text("")
        event = watcher.to_event(Change.added, str(tmp_path / "new.py"))
        assert event == ChangeEvent(kind=ChangeKind.ADD, path=tmp_path / "new.py")

    def test_added_directory(self, watcher: PathWatcher, tmp_path: Path):
        (tmp_path / "sub").mkdir()
        event = watcher.to_event(Change.added, str(tmp_path / "sub"))
        assert event.kind is ChangeKind.ADD_DIR

    def test_modified_file(self, watcher: PathWatcher, tmp_path: Path):
        (tmp_path / "a.py").write_text("")
        event = watcher.to_event(Change.modified, str(tmp_path / "a.py"))
        assert event.kind is ChangeKind.CHANGE

    def test_modified_directory_is_dropped(self, watcher: PathWatcher, tmp_path: Path):
        assert watcher.to_event(Change.modified, str(tmp_path / "pkg")) is None

    def test_deleted_file(self, watcher: PathWatcher, tmp_path: Path):
        event = watcher.to_event(Change.deleted, str(tmp_path / "gone.py"))
        assert event.kind is ChangeKind.UNLINK

    def test_deleted_known_directory(self, watcher: PathWatcher, tmp_path: Path):
        """Directories seen at startup are reported as unlinkDir once gone."""
        (tmp_path / "pkg").rmdir()
        event = watcher.to_event(Change.deleted, str(tmp_path / "pkg"))
        assert event.kind is ChangeKind.UNLINK_DIR

    def test_paths_are_absolute(self, watcher: PathWatcher, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "rel.py").write_text("")
        event = watcher.to_event(Change.modified, "rel.py")
        assert event.path == tmp_path / "rel.py"


class TestEvents:
    """Tests for the event stream over a real directory."""

    async def test_missing_targets_still_become_ready(self, tmp_path: Path):
        """Without any existing target the watcher reports and idles until stopped."""
        bus = EventBus()
        seen: list[Event] = []
        bus.add_callback(seen.append)
        watcher = PathWatcher([tmp_path / "nope"], bus=bus)

        async def consume():
            return [event async for event in watcher.events()]

        task = asyncio.create_task(consume())
        await asyncio.wait_for(watcher.ready.wait(), timeout=5)
        watcher.stop()

        assert await asyncio.wait_for(task, timeout=5) == []
        assert EventType.WATCHER_ERROR in [e.type for e in seen]
        assert EventType.WATCHER_READY in [e.type for e in seen]

    async def test_reports_written_file(self, tmp_path: Path):
        """Writing a file after ready yields an event for it."""
        ready_calls: list[bool] = []
        watcher = PathWatcher(
            [tmp_path],
            debounce_ms=50,
            ready_timeout_ms=50,
            on_ready=lambda: ready_calls.append(True),
        )
        target = tmp_path / "app.py"

        async def first_event() -> ChangeEvent:
            async for event in watcher.events():
                if event.path == target:
                    watcher.stop()
                    return event
            raise AssertionError("watcher stopped without an event")

        task = asyncio.create_task(first_event())
        await asyncio.wait_for(watcher.ready.wait(), timeout=5)
        target.write_text("VALUE = 1\n")

        event = await asyncio.wait_for(task, timeout=10)
        assert event.kind in (ChangeKind.ADD, ChangeKind.CHANGE)
        assert ready_calls == [True]

    async def test_notifier_failure_is_reported_and_restarted(self, tmp_path: Path, monkeypatch):
        """A crashed notifier emits watcher.error and the stream keeps going."""
        target = tmp_path / "app.py"
        target.write_text("VALUE = 1\n")
        calls: list[int] = []

        async def flaky_awatch(*roots, **kwargs):
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("inotify watch limit reached")
            yield {(Change.modified, str(target))}
            await kwargs["stop_event"].wait()

        monkeypatch.setattr("hotreloader.reload.watcher.awatch", flaky_awatch)
        bus = EventBus()
        seen: list[Event] = []
        bus.add_callback(seen.append)
        watcher = PathWatcher([tmp_path], restart_delay=0, bus=bus)

        async def first_event() -> ChangeEvent:
            async for event in watcher.events():
                watcher.stop()
                return event
            raise AssertionError("watcher stopped without an event")

        event = await asyncio.wait_for(first_event(), timeout=5)

        assert event == ChangeEvent(kind=ChangeKind.CHANGE, path=target)
        assert calls == [0, 1]
        errors = [e for e in seen if e.type is EventType.WATCHER_ERROR]
        assert len(errors) == 1
        assert "inotify watch limit reached" in errors[0].data["error"]
        assert watcher.ready.is_set()
