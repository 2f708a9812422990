"""Shared data models for file ingestion."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class Stage(str, Enum):
    """Lifecycle stage of an archive; the value is the stage directory name."""

    UPLOAD = "upload"
    PROCESS = "process"
    DONE = "done"
    FAILED = "failed"


class ArchiveStatus(str, Enum):
    """Status of an uploaded archive as seen from the stage directories."""

    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class WatchRegistration:
    """One watched ``process`` directory and the handle the observer gave it."""

    target: str
    directory: Path
    handle: Any
