"""
Ingestion job record.

The stage directories are the only durable state: a job is the in-memory
view of one archive, and every stage change is a single atomic rename, so
the archive name never exists in two stage directories at once.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from domains.file_ingest.models import Stage
from domains.file_ingest.paths import stage_path

_TRANSITIONS = {
    Stage.UPLOAD: {Stage.PROCESS},
    Stage.PROCESS: {Stage.DONE, Stage.FAILED},
    Stage.DONE: set(),
    Stage.FAILED: set(),
}


@dataclass
class IngestionJob:
    """One archive moving through upload -> process -> done/failed."""

    root: Path
    target: str
    archive_name: str
    stage: Stage
    location: Path
    extraction_dir: Optional[Path] = field(default=None, compare=False)

    @classmethod
    def incoming(cls, root: Path, target: str, path: Path) -> "IngestionJob":
        """Job for a file reported by the watcher, not yet claimed for processing."""
        path = Path(path)
        return cls(
            root=Path(root),
            target=target,
            archive_name=path.name,
            stage=Stage.UPLOAD,
            location=path,
        )

    def path_for(self, stage: Stage) -> Path:
        return stage_path(self.root, self.target, stage, self.archive_name)

    def advance(self, stage: Stage) -> bool:
        """
        Move the archive into ``stage`` with one atomic rename.

        Returns False, leaving the record untouched, when the rename fails or
        would overwrite an archive already in ``stage``.

        Raises:
            ValueError: if the lifecycle does not allow the transition
        """
        if stage not in _TRANSITIONS[self.stage]:
            raise ValueError(f"Illegal transition {self.stage.value} -> {stage.value}")

        destination = self.path_for(stage)
        if destination != self.location:
            if destination.exists():
                logger.error(f"Not moving {self.location}, {destination} already exists")
                return False
            try:
                self.location.replace(destination)
            except OSError as e:
                logger.error(f"Moving {self.location} to {destination} failed: {e}")
                return False
            logger.info(f"Moved {self.location} to {destination}")

        self.stage = stage
        self.location = destination
        return True
