"""
Archive extraction.

An archive ``process/name.zip`` is unpacked into the sibling directory
``process/name``. Extraction is all or nothing: if any entry cannot be
copied the partially filled directory is removed again.
"""

import shutil
import zipfile
from pathlib import Path
from typing import List, Optional

from loguru import logger

from domains.file_ingest.errors import ExtractionError
from domains.file_ingest.paths import extraction_dir


def extract(archive: Path) -> Optional[Path]:
    """
    Unpack ``archive`` into its extraction directory.

    Args:
        archive: Path to a ``.zip`` file

    Returns:
        The extraction directory, or None if extraction failed
    """
    archive = Path(archive)
    target = extraction_dir(archive)
    if target is None:
        logger.error(f"Not an archive: {archive}")
        return None

    logger.info(f"Unzipping {archive}")

    try:
        target.mkdir()
    except OSError as e:
        # Includes an existing directory: never unpack over it
        logger.error(f"Cannot create extraction directory {target}: {e}")
        return None

    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                _copy_entry(zf, info, target)
    except Exception as e:
        # Decompressors raise their own errors (zlib.error, lzma.LZMAError)
        logger.error(f"Error unzipping {archive}: {e}")
        _remove_tree(target)
        return None

    return target


def cleanup(archive: Path) -> None:
    """Remove the extraction directory of ``archive``; absent directories are fine."""
    target = extraction_dir(Path(archive))
    if target is None or not target.exists():
        return

    logger.info(f"Removing {target}")
    _remove_tree(target)


def list_entries(directory: Path) -> List[Path]:
    """Files below ``directory``, ordered by their relative name."""
    directory = Path(directory)
    return sorted(
        (p for p in directory.rglob("*") if p.is_file()),
        key=lambda p: p.relative_to(directory).as_posix(),
    )


def _copy_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path) -> None:
    destination = (target / info.filename).resolve()
    if not destination.is_relative_to(target.resolve()):
        raise ExtractionError(f"Entry {info.filename} escapes {target}")

    if info.is_dir():
        destination.mkdir(parents=True, exist_ok=True)
        return

    destination.parent.mkdir(parents=True, exist_ok=True)
    # Exclusive create: duplicate entry names are a failure, not an overwrite
    with zf.open(info) as src, open(destination, "xb") as dst:
        shutil.copyfileobj(src, dst)


def _remove_tree(directory: Path) -> None:
    """Delete ``directory`` children first; errors are logged, not raised."""
    paths = sorted(directory.rglob("*"), key=lambda p: len(p.parts), reverse=True)
    for path in paths + [directory]:
        try:
            if path.is_dir() and not path.is_symlink():
                path.rmdir()
            else:
                path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.error(f"Error removing {path}: {e}")
