"""
Directory watcher for file ingestion.

Monitors the ``process`` directory of every target and hands newly arrived
files to the lifecycle coordinator. Uses the watchdog library for
cross-platform file system event monitoring; a single worker thread drains
the events so archives are handled strictly one after another.
"""

import os
import queue
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch
from watchdog.observers.polling import PollingObserver

from app.utils.helpers import is_hidden
from domains.file_ingest.collectors.lifecycle import LifecycleCoordinator
from domains.file_ingest.models import Stage, WatchRegistration
from domains.file_ingest.paths import stage_dir

_STOP = object()


class ProcessDirHandler(FileSystemEventHandler):
    """Forwards file arrivals in one ``process`` directory to the event queue."""

    def __init__(self, events: queue.Queue, directory: Path):
        """
        Initialize event handler.

        Args:
            events: Bounded queue drained by the watcher's worker thread
            directory: The watched ``process`` directory
        """
        super().__init__()
        self.events = events
        self.directory = Path(directory)
        self.watch: Optional[ObservedWatch] = None

    def should_process(self, event: FileSystemEvent, path: str) -> bool:
        """Skip directories (our own extraction directories) and hidden files."""
        return not event.is_directory and not is_hidden(Path(path))

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if self.should_process(event, event.src_path):
            self.forward(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        """Handle a rename that lands inside the watched directory."""
        if Path(event.dest_path).parent != self.directory:
            return
        if self.should_process(event, event.dest_path):
            self.forward(event.dest_path)

    def forward(self, path: str):
        try:
            self.events.put_nowait((self.watch, path))
        except queue.Full:
            logger.error(f"Overflow: event queue full, notification for {path} lost")


class DirectoryWatcher:
    """Watches every target's ``process`` directory from one worker thread."""

    def __init__(
        self,
        root: Path,
        targets: Iterable[str],
        coordinator: LifecycleCoordinator,
        polling: bool = False,
        poll_interval: float = 1.0,
        queue_size: int = 1024,
    ):
        """
        Initialize directory watcher and register every usable target.

        Args:
            root: Root of the ingestion tree
            targets: Known target names
            coordinator: Receives (target, path) for each new file
            polling: Use the polling observer instead of native events
            poll_interval: Seconds between polls when polling
            queue_size: Events buffered before notifications are dropped
        """
        self.root = Path(root)
        self.coordinator = coordinator
        self.events: queue.Queue = queue.Queue(maxsize=queue_size)
        self.observer = PollingObserver(timeout=poll_interval) if polling else Observer()
        self.registrations: Dict[ObservedWatch, WatchRegistration] = {}

        self._stopping = threading.Event()
        self._worker: Optional[threading.Thread] = None

        for target in targets:
            self._register(target)

        logger.info(f"Directory watcher initialized for {len(self.registrations)} targets")

    def _register(self, target: str):
        directory = stage_dir(self.root, target, Stage.PROCESS)
        if not directory.is_dir() or not os.access(directory, os.R_OK | os.X_OK):
            logger.warning(f"Skipping {target}, {directory} is not a readable directory")
            return

        handler = ProcessDirHandler(self.events, directory)
        try:
            watch = self.observer.schedule(handler, str(directory), recursive=False)
        except OSError as e:
            logger.warning(f"Skipping {target}, cannot watch {directory}: {e}")
            return

        handler.watch = watch
        self.registrations[watch] = WatchRegistration(target, directory, watch)
        logger.info(f"Watching {directory}")

    def dispatch(self, watch: Optional[ObservedWatch], path: str):
        """Resolve the originating directory and hand the file to the coordinator."""
        registration = self.registrations.get(watch)
        if registration is None:
            logger.warning(f"Event for unregistered watch, {path} ignored")
            return

        file = registration.directory / Path(path).name
        target = registration.directory.parent.name
        logger.info(f"New file {file} for {target}")
        self.coordinator.handle(target, file)

    def run(self):
        """Blocking event loop; returns once the watcher is stopped."""
        logger.info("Running directory watcher")
        while not self._stopping.is_set():
            item = self.events.get()
            if item is _STOP:
                break
            self.dispatch(*item)
        logger.info("Done watching")

    def start(self):
        """Start the observer and the worker thread."""
        self.observer.start()
        self._worker = threading.Thread(target=self.run, name="ingest-watcher", daemon=True)
        self._worker.start()
        logger.success("Directory watcher started")

    def stop(self, timeout: float = 30.0) -> bool:
        """
        Stop watching and wait for the worker.

        An archive being processed is allowed to finish; the worker is never
        killed, only waited for up to ``timeout`` seconds.

        Returns:
            True if the worker has finished
        """
        logger.info("Stopping directory watcher...")
        if self.observer.is_alive():
            # Unschedules every watch before the thread exits
            self.observer.stop()
            self.observer.join()

        self._stopping.set()
        try:
            self.events.put_nowait(_STOP)
        except queue.Full:
            pass  # worker is busy and checks the stop flag before its next event

        finished = True
        if self._worker is not None:
            self._worker.join(timeout)
            finished = not self._worker.is_alive()
            if not finished:
                logger.warning(f"Worker still busy after {timeout}s, leaving it to finish")

        self.registrations.clear()
        logger.info("Directory watcher stopped")
        return finished
