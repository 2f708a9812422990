"""
Neo4j client with connection pooling and helper functions.

Provides:
- Connection pool management
- Explicit transactions per target database
- Target database lookup
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
from neo4j import GraphDatabase, Session, Transaction
from loguru import logger

from app.utils.config import get_settings

SYSTEM_DATABASE = "system"


class Neo4jClient:
    """Neo4j database client with connection pooling."""

    def __init__(self, uri: str = None, user: str = None, password: str = None):
        """Initialize Neo4j client."""
        settings = get_settings()
        self.uri = uri or settings.neo4j_uri
        self.user = user or settings.neo4j_user
        self.password = password or settings.neo4j_password

        self._driver = None

    def connect(self):
        """Establish connection to Neo4j."""
        if self._driver is None:
            logger.info(f"Connecting to Neo4j at {self.uri}...")
            self._driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                max_connection_lifetime=3600,
                max_connection_pool_size=50,
                connection_acquisition_timeout=120
            )
            self._driver.verify_connectivity()
            logger.success("Connected to Neo4j successfully")

    def close(self):
        """Close Neo4j connection."""
        if self._driver:
            logger.info("Closing Neo4j connection...")
            self._driver.close()
            self._driver = None

    @property
    def driver(self):
        """Get driver, connecting if necessary."""
        if self._driver is None:
            self.connect()
        return self._driver

    @contextmanager
    def session(self, database: Optional[str] = None) -> Iterator[Session]:
        """Context manager for Neo4j session."""
        session = self.driver.session(database=database)
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def transaction(self, database: Optional[str] = None) -> Iterator[Transaction]:
        """
        Open one explicit write transaction.

        The caller commits; leaving the block without a commit rolls the
        transaction back.
        """
        with self.session(database) as session:
            tx = session.begin_transaction()
            try:
                yield tx
            finally:
                tx.close()

    def execute_write(
        self, query: str, parameters: Dict[str, Any] = None, database: Optional[str] = None
    ) -> None:
        """Execute write query with automatic transaction management."""
        with self.session(database) as session:
            session.run(query, parameters or {}).consume()

    def execute_read(
        self, query: str, parameters: Dict[str, Any] = None, database: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Execute read query and return results as list of dicts."""
        with self.session(database) as session:
            result = session.run(query, parameters or {})
            return [dict(record) for record in result]

    def list_databases(self) -> List[str]:
        """Names of all user databases, used as ingestion targets."""
        records = self.execute_read(
            "SHOW DATABASES YIELD name RETURN DISTINCT name ORDER BY name",
            database=SYSTEM_DATABASE,
        )
        return [r["name"] for r in records if r["name"] != SYSTEM_DATABASE]


# Global client instance
_client: Optional[Neo4jClient] = None


def get_neo4j_client() -> Neo4jClient:
    """Get global Neo4j client instance."""
    global _client
    if _client is None:
        _client = Neo4jClient()
        _client.connect()
    return _client


def close_neo4j_client():
    """Close global Neo4j client."""
    global _client
    if _client:
        _client.close()
        _client = None
