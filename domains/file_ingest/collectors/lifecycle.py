"""
Lifecycle coordinator.

Takes a file reported in a target's ``process`` directory through
extraction and loading, then parks the archive in ``done`` or ``failed``.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from domains.file_ingest.jobs import IngestionJob
from domains.file_ingest.models import Stage
from domains.file_ingest.paths import ARCHIVE_SUFFIX, template_dir
from domains.file_ingest.processors import archive
from domains.file_ingest.processors.loader import BatchLoader


class LifecycleCoordinator:
    """Drives one archive at a time through the stage directories."""

    def __init__(self, root: Path, loader: BatchLoader):
        """
        Initialize coordinator.

        Args:
            root: Root of the ingestion tree
            loader: Loader applying extracted entries to a target
        """
        self.root = Path(root)
        self.loader = loader

    def handle(self, target: str, path: Path) -> Optional[IngestionJob]:
        """
        Process one file reported by the watcher.

        Never raises: failures are logged and end with the archive in
        ``failed`` or, for filesystem faults, left where it was.

        Returns:
            The job in its last reached stage, or None on unexpected errors
        """
        try:
            return self._process(target, Path(path))
        except Exception:
            logger.exception(f"Unexpected error handling {path} for {target}")
            return None

    def _process(self, target: str, path: Path) -> IngestionJob:
        job = IngestionJob.incoming(self.root, target, path)

        if not job.advance(Stage.PROCESS):
            return job
        if not job.location.is_file():
            logger.warning(f"{job.location} disappeared before processing")
            return job
        if not job.archive_name.endswith(ARCHIVE_SUFFIX):
            logger.warning(f"{job.location} is not an archive, leaving it in place")
            return job

        try:
            loaded = self._extract_and_load(job)
        finally:
            archive.cleanup(job.location)
            job.extraction_dir = None

        outcome = Stage.DONE if loaded else Stage.FAILED
        if job.advance(outcome):
            logger.info(f"{job.archive_name} for {target} finished: {outcome.value}")
        return job

    def _extract_and_load(self, job: IngestionJob) -> bool:
        job.extraction_dir = archive.extract(job.location)
        if job.extraction_dir is None:
            logger.error(f"Unzip of {job.archive_name} failed")
            return False

        entries = archive.list_entries(job.extraction_dir)
        return self.loader.load(job.target, entries, [template_dir(self.root, job.target)])
