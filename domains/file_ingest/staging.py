"""
Filesystem side of uploads and status queries.

Uploads are written completely into ``upload`` first and only then renamed
into ``process``, so the watcher never sees a partially written archive.
Status is derived purely from which stage directory holds the archive.
"""

import os
import shutil
from pathlib import Path
from typing import BinaryIO, Optional

from loguru import logger

from app.utils.helpers import sanitize_filename, timestamp_name
from domains.file_ingest.models import ArchiveStatus, Stage
from domains.file_ingest.paths import ARCHIVE_SUFFIX, stage_dir, stage_path, template_dir

_STATUS_BY_STAGE = (
    (Stage.PROCESS, ArchiveStatus.PROCESSING),
    (Stage.DONE, ArchiveStatus.DONE),
    (Stage.FAILED, ArchiveStatus.FAILED),
)


def ensure_layout(root: Path, target: str) -> None:
    """Create the stage directories and the default template directory of ``target``."""
    for stage in Stage:
        stage_dir(root, target, stage).mkdir(parents=True, exist_ok=True)
    template_dir(root, target).mkdir(parents=True, exist_ok=True)


def store_upload(root: Path, target: str, stream: BinaryIO, name: str = None) -> Optional[Path]:
    """
    Store an uploaded archive and make it visible to the watcher.

    Args:
        root: Root of the ingestion tree
        target: Target name
        stream: Binary stream with the archive contents
        name: Desired file name; a timestamped ``.zip`` name when omitted

    Returns:
        Path of the file in ``process``, or None if storing failed
    """
    name = sanitize_filename(name) if name else timestamp_name(ARCHIVE_SUFFIX)
    if not name:
        logger.error("Upload rejected, empty file name")
        return None
    if archive_status(root, target, name) != ArchiveStatus.NOT_FOUND:
        logger.error(f"Upload rejected, {name} already exists for {target}")
        return None

    upload = stage_path(root, target, Stage.UPLOAD, name)
    destination = stage_path(root, target, Stage.PROCESS, name)
    logger.info(f"Uploading {destination}")

    try:
        with open(upload, "wb") as f:
            shutil.copyfileobj(stream, f)
            f.flush()
            os.fsync(f.fileno())
        upload.replace(destination)
    except OSError as e:
        logger.error(f"Error creating upload file {upload}: {e}")
        upload.unlink(missing_ok=True)
        return None

    return destination


def archive_status(root: Path, target: str, name: str) -> ArchiveStatus:
    """Report which stage currently holds the archive ``name``."""
    for stage, status in _STATUS_BY_STAGE:
        if stage_path(root, target, stage, name).is_file():
            return status
    return ArchiveStatus.NOT_FOUND
