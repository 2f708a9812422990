"""
Parameterized update templates.

A template ``x.qr`` is a Cypher update referring to the placeholder ``$id``.
It is executed once per line of the identifier file ``x.csv``, with ``id``
bound to that line: ``<...>`` lines bind a resource reference, anything
else binds a literal.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Union

from loguru import logger
from rdflib import Literal, URIRef

from domains.file_ingest.errors import MalformedContentError
from domains.file_ingest.paths import template_name

PLACEHOLDER = "id"
_PLACEHOLDER_RE = re.compile(r"\$" + PLACEHOLDER + r"\b")

Binding = Union[URIRef, Literal]


def classify(value: str) -> Binding:
    """Bind angle-bracketed values as references, everything else as literals."""
    if len(value) > 2 and value.startswith("<") and value.endswith(">"):
        return URIRef(value[1:-1])
    return Literal(value)


def read_identifiers(path: Path) -> Iterator[str]:
    """Non-blank lines of an identifier file, whitespace stripped."""
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield line


def find_template(data_file: Path, search_dirs: Iterable[Path] = ()) -> Optional[Path]:
    """
    Locate the template for an identifier file.

    The archive's own copy, next to the identifier file, wins over the
    target's default template directory.

    Returns:
        Template path, or None if no template exists
    """
    name = template_name(data_file)
    if name is None:
        return None

    for directory in [Path(data_file).parent, *search_dirs]:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


class UpdateTemplate:
    """A parsed template with its current placeholder binding."""

    def __init__(self, name: str, query: str):
        if not query.strip():
            raise MalformedContentError(f"Template {name} is empty")
        if not _PLACEHOLDER_RE.search(query):
            raise MalformedContentError(f"Template {name} does not use ${PLACEHOLDER}")

        self.name = name
        self.query = query
        self._bindings: Dict[str, Binding] = {}

    @classmethod
    def load(cls, path: Path) -> "UpdateTemplate":
        """Read and validate a template file."""
        try:
            query = Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MalformedContentError(f"Template {path} is not UTF-8: {e}") from e
        return cls(Path(path).name, query)

    @property
    def bindings(self) -> Dict[str, Binding]:
        return dict(self._bindings)

    def bind(self, value: str) -> None:
        self._bindings[PLACEHOLDER] = classify(value)

    def clear_bindings(self) -> None:
        self._bindings.clear()

    def execute(self, tx) -> None:
        """Run the template in ``tx`` with the current bindings."""
        tx.execute(self.query, self.bindings)

    def execute_each(self, tx, identifiers: Iterable[str]) -> int:
        """
        Execute once per identifier, rebinding ``id`` every time.

        Returns:
            Number of executions
        """
        count = 0
        for identifier in identifiers:
            self.clear_bindings()
            self.bind(identifier)
            self.execute(tx)
            count += 1
        self.clear_bindings()

        if count == 0:
            logger.info(f"No identifiers for template {self.name}")
        return count
