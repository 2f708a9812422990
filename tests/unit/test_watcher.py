import threading
import time

import pytest
from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileMovedEvent

from domains.file_ingest.collectors.lifecycle import LifecycleCoordinator
from domains.file_ingest.collectors.watcher import DirectoryWatcher, ProcessDirHandler
from domains.file_ingest.models import ArchiveStatus, Stage
from domains.file_ingest.paths import stage_dir
from domains.file_ingest.processors.loader import BatchLoader
from domains.file_ingest.staging import archive_status, store_upload


class RecordingCoordinator:
    def __init__(self):
        self.calls = []
        self.called = threading.Event()

    def handle(self, target, path):
        self.calls.append((target, path))
        self.called.set()


class BlockingCoordinator:
    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def handle(self, target, path):
        self.started.set()
        self.release.wait(10)


def _handler_for(watcher, target):
    """A handler wired like the ones the watcher schedules."""
    for watch, registration in watcher.registrations.items():
        if registration.target == target:
            handler = ProcessDirHandler(watcher.events, registration.directory)
            handler.watch = watch
            return handler
    raise AssertionError(f"{target} not registered")


def _drain(watcher):
    while not watcher.events.empty():
        watcher.dispatch(*watcher.events.get_nowait())


def _wait_for(condition, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return False


def test_only_readable_process_directories_are_registered(ingest_root, log_messages):
    (ingest_root / "no-process").mkdir()

    watcher = DirectoryWatcher(ingest_root, ["books", "no-process", "missing"], RecordingCoordinator())

    assert [r.target for r in watcher.registrations.values()] == ["books"]
    registration = next(iter(watcher.registrations.values()))
    assert registration.directory == stage_dir(ingest_root, "books", Stage.PROCESS)
    assert sum("Skipping" in m for m in log_messages) == 2
    watcher.stop(timeout=1)


def test_created_file_is_handed_to_coordinator(ingest_root):
    coordinator = RecordingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator)
    handler = _handler_for(watcher, "books")
    process = stage_dir(ingest_root, "books", Stage.PROCESS)

    handler.on_created(FileCreatedEvent(str(process / "a.zip")))
    _drain(watcher)

    assert coordinator.calls == [("books", process / "a.zip")]
    watcher.stop(timeout=1)


def test_rename_into_directory_counts_as_arrival(ingest_root):
    coordinator = RecordingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator)
    handler = _handler_for(watcher, "books")
    process = stage_dir(ingest_root, "books", Stage.PROCESS)

    handler.on_moved(FileMovedEvent(str(process / "a.zip.part"), str(process / "a.zip")))
    _drain(watcher)

    assert coordinator.calls == [("books", process / "a.zip")]
    watcher.stop(timeout=1)


def test_rename_out_of_directory_is_ignored(ingest_root):
    watcher = DirectoryWatcher(ingest_root, ["books"], RecordingCoordinator())
    handler = _handler_for(watcher, "books")
    process = stage_dir(ingest_root, "books", Stage.PROCESS)
    done = stage_dir(ingest_root, "books", Stage.DONE)

    handler.on_moved(FileMovedEvent(str(process / "a.zip"), str(done / "a.zip")))
    handler.on_moved(FileMovedEvent(str(process / "a.zip"), str(process / "sub" / "a.zip")))

    assert watcher.events.empty()
    watcher.stop(timeout=1)


def test_directories_and_hidden_files_are_ignored(ingest_root):
    coordinator = RecordingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator)
    handler = _handler_for(watcher, "books")
    process = stage_dir(ingest_root, "books", Stage.PROCESS)

    handler.on_created(DirCreatedEvent(str(process / "a")))
    handler.on_created(FileCreatedEvent(str(process / ".a.zip.swp")))

    assert watcher.events.empty()
    watcher.stop(timeout=1)


def test_overflow_drops_and_logs(ingest_root, log_messages):
    coordinator = RecordingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator, queue_size=1)
    handler = _handler_for(watcher, "books")
    process = stage_dir(ingest_root, "books", Stage.PROCESS)

    handler.on_created(FileCreatedEvent(str(process / "a.zip")))
    handler.on_created(FileCreatedEvent(str(process / "b.zip")))
    _drain(watcher)

    assert coordinator.calls == [("books", process / "a.zip")]
    assert any("Overflow" in m for m in log_messages)
    watcher.stop(timeout=1)


def test_events_for_unknown_watch_are_ignored(ingest_root):
    coordinator = RecordingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator)

    watcher.dispatch(object(), str(ingest_root / "books" / "process" / "a.zip"))

    assert coordinator.calls == []
    watcher.stop(timeout=1)


def test_polling_watcher_delivers_new_files(ingest_root):
    coordinator = RecordingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator, polling=True, poll_interval=0.1)
    watcher.start()
    try:
        time.sleep(0.5)
        (stage_dir(ingest_root, "books", Stage.PROCESS) / "new.zip").write_bytes(b"x")

        assert coordinator.called.wait(10)
    finally:
        assert watcher.stop(timeout=5)

    assert coordinator.calls == [("books", stage_dir(ingest_root, "books", Stage.PROCESS) / "new.zip")]
    assert watcher.registrations == {}


def test_uploaded_archive_is_loaded_end_to_end(ingest_root, fake_sink, make_archive, tmp_path):
    archive = make_archive(tmp_path / "source.zip", {"a.nt": "<http://ex/1> <http://ex/p> \"one\" .\n"})
    coordinator = LifecycleCoordinator(ingest_root, BatchLoader(fake_sink))
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator, polling=True, poll_interval=0.1)
    watcher.start()
    try:
        time.sleep(0.5)
        with open(archive, "rb") as f:
            assert store_upload(ingest_root, "books", f, "upload.zip") is not None

        assert _wait_for(lambda: archive_status(ingest_root, "books", "upload.zip") == ArchiveStatus.DONE)
    finally:
        watcher.stop(timeout=5)

    assert ("http://ex/1", "http://ex/p", "one") in fake_sink.statements


def test_stop_waits_only_up_to_timeout(ingest_root):
    coordinator = BlockingCoordinator()
    watcher = DirectoryWatcher(ingest_root, ["books"], coordinator, polling=True, poll_interval=0.1)
    handler = _handler_for(watcher, "books")
    watcher.start()
    handler.on_created(FileCreatedEvent(str(stage_dir(ingest_root, "books", Stage.PROCESS) / "slow.zip")))
    assert coordinator.started.wait(5)

    started = time.monotonic()
    assert not watcher.stop(timeout=0.2)
    assert time.monotonic() - started < 5

    coordinator.release.set()
    watcher._worker.join(5)
    assert not watcher._worker.is_alive()


@pytest.mark.parametrize("queue_size", [1, 8])
def test_stop_unblocks_idle_worker(ingest_root, queue_size):
    watcher = DirectoryWatcher(ingest_root, ["books"], RecordingCoordinator(), polling=True,
                               poll_interval=0.1, queue_size=queue_size)
    watcher.start()

    assert watcher.stop(timeout=5)
