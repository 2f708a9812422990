"""
Canonical locations inside the ingestion tree.

Every target ``T`` under a root ``R`` owns ``R/T/upload``, ``R/T/process``,
``R/T/done``, ``R/T/failed`` and optionally ``R/T/query``. Nothing here
touches the filesystem.
"""

from pathlib import Path
from typing import Optional, Union

from domains.file_ingest.models import Stage

ARCHIVE_SUFFIX = ".zip"
BULK_SUFFIX = ".nt"
DATA_SUFFIX = ".csv"
TEMPLATE_SUFFIX = ".qr"

QUERY_DIR = "query"

PathLike = Union[str, Path]


def target_dir(root: PathLike, target: str) -> Path:
    """Directory holding every stage of ``target``."""
    return Path(root) / target


def stage_dir(root: PathLike, target: str, stage: Stage) -> Path:
    """Directory of one lifecycle stage, e.g. ``R/T/process``."""
    return target_dir(root, target) / stage.value


def stage_path(root: PathLike, target: str, stage: Stage, file: PathLike) -> Path:
    """Canonical path ``R/T/stage/filename``; only the name of ``file`` is kept."""
    return stage_dir(root, target, stage) / Path(file).name


def template_dir(root: PathLike, target: str) -> Path:
    """Default update template directory of ``target``."""
    return target_dir(root, target) / QUERY_DIR


def extraction_dir(archive: PathLike) -> Optional[Path]:
    """
    Directory an archive is unpacked into: the archive path minus its suffix.

    Returns None when ``archive`` is not a zip file.
    """
    archive = Path(archive)
    stem = _strip_suffix(archive.name, ARCHIVE_SUFFIX)
    if stem is None:
        return None
    return archive.with_name(stem)


def template_name(data_file: PathLike) -> Optional[str]:
    """Name of the update template paired with an identifier file (x.csv -> x.qr)."""
    stem = _strip_suffix(Path(data_file).name, DATA_SUFFIX)
    if stem is None:
        return None
    return stem + TEMPLATE_SUFFIX


def _strip_suffix(name: str, suffix: str) -> Optional[str]:
    if not name.endswith(suffix) or len(name) == len(suffix):
        return None
    return name[: -len(suffix)]
