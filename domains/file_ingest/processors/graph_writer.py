"""
Neo4j sink for extracted archives.

Triples become ``(:Resource {uri})`` nodes linked by ``STATEMENT``
relationships carrying the predicate. Literal objects are
``(:Literal {value, datatype, language})`` nodes. Every write is a MERGE, so
loading the same statements twice leaves the graph unchanged.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from loguru import logger
from neo4j import Transaction
from neo4j.exceptions import DriverError, Neo4jError
from rdflib import BNode, Literal
from rdflib.term import Node

from app.utils.neo4j_client import Neo4jClient
from domains.file_ingest.errors import StoreError

Triple = Tuple[Node, Node, Node]

MERGE_RESOURCE_STATEMENTS = """
UNWIND $rows AS row
MERGE (s:Resource {uri: row.subject})
MERGE (o:Resource {uri: row.object})
MERGE (s)-[:STATEMENT {predicate: row.predicate}]->(o)
"""

MERGE_LITERAL_STATEMENTS = """
UNWIND $rows AS row
MERGE (s:Resource {uri: row.subject})
MERGE (l:Literal {value: row.value, datatype: row.datatype, language: row.language})
MERGE (s)-[:STATEMENT {predicate: row.predicate}]->(l)
"""


def term_value(term: Node) -> str:
    """Neo4j representation of an RDF term."""
    if isinstance(term, BNode):
        return f"_:{term}"
    return str(term)


def statement_rows(triples: Iterable[Triple]) -> Tuple[List[Dict[str, str]], List[Dict[str, str]]]:
    """Split triples into resource rows and literal rows for UNWIND."""
    resources = []
    literals = []
    for s, p, o in triples:
        if isinstance(o, Literal):
            literals.append({
                "subject": term_value(s),
                "predicate": str(p),
                "value": str(o),
                "datatype": str(o.datatype or ""),
                "language": o.language or "",
            })
        else:
            resources.append({
                "subject": term_value(s),
                "predicate": str(p),
                "object": term_value(o),
            })
    return resources, literals


def _chunks(rows: List[Dict[str, str]], size: int) -> Iterator[List[Dict[str, str]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class GraphTransaction:
    """One open Neo4j transaction on a target database."""

    def __init__(self, tx: Transaction, batch_size: int = 1000):
        self._tx = tx
        self.batch_size = batch_size

    def _run(self, query: str, parameters: Dict[str, Any]) -> None:
        try:
            self._tx.run(query, parameters).consume()
        except (Neo4jError, DriverError) as e:
            raise StoreError(str(e)) from e

    def add_statements(self, triples: Iterable[Triple]) -> int:
        """
        Write triples in batches.

        Returns:
            Number of statements written
        """
        resources, literals = statement_rows(triples)
        for batch in _chunks(resources, self.batch_size):
            self._run(MERGE_RESOURCE_STATEMENTS, {"rows": batch})
        for batch in _chunks(literals, self.batch_size):
            self._run(MERGE_LITERAL_STATEMENTS, {"rows": batch})
        return len(resources) + len(literals)

    def execute(self, query: str, parameters: Dict[str, Node]) -> None:
        """Run one update, converting bound RDF terms to plain values."""
        self._run(query, {k: term_value(v) for k, v in parameters.items()})

    def commit(self) -> None:
        try:
            self._tx.commit()
        except (Neo4jError, DriverError) as e:
            raise StoreError(f"Commit failed: {e}") from e


class GraphSink:
    """Hands out one transaction per target database."""

    def __init__(self, client: Neo4jClient, batch_size: int = 1000):
        self.client = client
        self.batch_size = batch_size

    @contextmanager
    def transaction(self, target: str) -> Iterator[GraphTransaction]:
        """
        Open a transaction on ``target``; it is rolled back unless committed.

        Raises:
            StoreError: if the transaction cannot be opened or closed
        """
        try:
            with self.client.transaction(target) as tx:
                logger.debug(f"Transaction opened on {target}")
                yield GraphTransaction(tx, self.batch_size)
        except (Neo4jError, DriverError) as e:
            raise StoreError(f"Transaction on {target} failed: {e}") from e
