"""
Transactional batch loading of an extracted archive.

All entries of one archive are applied inside a single transaction on the
target, in lexicographic order, so readers see the whole upload or nothing.
"""

from pathlib import Path
from typing import Iterable, Sequence

from loguru import logger
from rdflib import Graph

from domains.file_ingest.errors import MalformedContentError
from domains.file_ingest.paths import BULK_SUFFIX, DATA_SUFFIX
from domains.file_ingest.processors.templates import (
    UpdateTemplate,
    find_template,
    read_identifiers,
)


def parse_statements(path: Path) -> Graph:
    """
    Parse an N-Triples file.

    Raises:
        MalformedContentError: if any line is not a valid statement
    """
    graph = Graph()
    try:
        graph.parse(source=str(path), format="nt")
    except Exception as e:
        raise MalformedContentError(f"Cannot parse {path.name}: {e}") from e
    return graph


class BatchLoader:
    """Loads extracted entries into a target through a transactional sink.

    The sink must provide ``transaction(target)``, a context manager yielding
    an object with ``add_statements``, ``execute`` and ``commit``; leaving the
    context without a commit must discard the work.
    """

    def __init__(self, sink):
        self.sink = sink

    def load(self, target: str, entries: Iterable[Path], template_dirs: Sequence[Path] = ()) -> bool:
        """
        Apply ``entries`` to ``target`` as one unit.

        Args:
            target: Target (database) name
            entries: Extracted files; other suffixes than .nt/.csv are ignored
            template_dirs: Where to look for templates missing from the archive

        Returns:
            True if the transaction was committed
        """
        ordered = sorted((Path(e) for e in entries), key=lambda p: p.as_posix())
        logger.info(f"Loading {len(ordered)} entries into {target}")

        try:
            with self.sink.transaction(target) as tx:
                for entry in ordered:
                    self._load_entry(tx, entry, template_dirs)
                tx.commit()
        except Exception as e:
            logger.error(f"Loading into {target} failed, nothing committed: {e}")
            return False

        logger.success(f"Committed {len(ordered)} entries into {target}")
        return True

    def _load_entry(self, tx, entry: Path, template_dirs: Sequence[Path]) -> None:
        if entry.name.endswith(BULK_SUFFIX):
            graph = parse_statements(entry)
            count = tx.add_statements(graph)
            logger.info(f"Added {count} statements from {entry.name}")
        elif entry.name.endswith(DATA_SUFFIX):
            self._run_template(tx, entry, template_dirs)
        else:
            logger.debug(f"Ignoring {entry.name}")

    def _run_template(self, tx, entry: Path, template_dirs: Sequence[Path]) -> None:
        template_path = find_template(entry, template_dirs)
        if template_path is None:
            logger.warning(f"No template for {entry.name}, skipping")
            return

        template = UpdateTemplate.load(template_path)
        count = template.execute_each(tx, read_identifiers(entry))
        logger.info(f"Executed {template_path} {count} times for {entry.name}")
