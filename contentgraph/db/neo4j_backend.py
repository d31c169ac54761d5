"""Neo4j backend implementation for contentgraph.

Wraps the neo4j Python driver (Bolt protocol) behind the GraphBackend
protocol. The backend is constructed explicitly and owns its driver:

- open: the constructor creates the driver and, unless disabled, verifies
  connectivity
- verify: health_check() runs a trivial statement
- close: close() releases the driver; the backend is also a context manager

Every statement runs inside a scoped session that is closed on exit,
including when the statement raises. Driver exceptions are translated into
GraphUnavailableError (connection level) or GraphStoreError (statement level).
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from neo4j import GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError, ServiceUnavailable, SessionExpired

from contentgraph.db.graph_protocol import BaseGraphBackend, QueryResult
from contentgraph.errors import GraphStoreError, GraphUnavailableError
from contentgraph.log_config import get_logger

log = get_logger("neo4j")


class Neo4jSession:
    """One driver session exposing the GraphSession protocol."""

    def __init__(self, session: Any):
        self._session = session

    def run(self, cypher: str, params: dict[str, Any] | None = None) -> QueryResult:
        """Execute a Cypher statement and consume all records.

        Args:
            cypher: Cypher query string
            params: Optional query parameters

        Returns:
            QueryResult with result_set, header, and stats

        Raises:
            GraphUnavailableError: The connection dropped or the server is down
            GraphStoreError: The statement was rejected or failed
        """
        log.trace(f"Neo4j query: {cypher[:100]}...")

        try:
            result = self._session.run(cypher, params or {})
            records = list(result)
            summary = result.consume()
        except (ServiceUnavailable, SessionExpired) as e:
            log.warning(f"Neo4j unavailable: {e}")
            raise GraphUnavailableError(str(e)) from e
        except (Neo4jError, DriverError) as e:
            log.error(f"Neo4j query failed: {e}")
            log.debug(f"Query was: {cypher}")
            raise GraphStoreError(str(e)) from e

        header = list(records[0].keys()) if records else None
        result_set = [list(record.values()) for record in records]

        counters = summary.counters
        stats = {
            "backend": "neo4j",
            "nodes_created": counters.nodes_created,
            "nodes_deleted": counters.nodes_deleted,
            "relationships_created": counters.relationships_created,
            "relationships_deleted": counters.relationships_deleted,
        }

        return QueryResult(result_set=result_set, header=header, stats=stats)


class Neo4jBackend(BaseGraphBackend):
    """Neo4j graph backend using the Bolt protocol."""

    def __init__(
        self,
        uri: str,
        username: str,
        password: str,
        database: str = "neo4j",
        connection_timeout: float = 30.0,
        verify: bool = True,
    ):
        """Initialize the Neo4j driver.

        Args:
            uri: Bolt URI (bolt://, neo4j://, neo4j+s://, ...)
            username: Username for basic auth
            password: Password for basic auth
            database: Database to open sessions against (default: neo4j)
            connection_timeout: Connection timeout in seconds (default: 30.0)
            verify: Verify connectivity before returning (default: True)

        Raises:
            GraphUnavailableError: verify is set and the server cannot be reached
        """
        self.uri = uri
        self.database = database

        log.info(f"Connecting to Neo4j at {uri} (database={database})")

        self._driver = GraphDatabase.driver(
            uri,
            auth=(username, password),
            connection_timeout=connection_timeout,
        )

        if verify:
            try:
                self._driver.verify_connectivity()
            except (Neo4jError, DriverError) as e:
                self._driver.close()
                self._driver = None
                raise GraphUnavailableError(f"Cannot reach Neo4j at {uri}: {e}") from e
            log.info(f"Neo4j connected: {uri}")

    @property
    def backend_name(self) -> str:
        return "neo4j"

    @contextmanager
    def session(self) -> Iterator[Neo4jSession]:
        """Open a session that is always closed on exit.

        Raises:
            GraphUnavailableError: The backend has been closed
        """
        if self._driver is None:
            raise GraphUnavailableError("Neo4j driver is closed")

        raw = self._driver.session(database=self.database)
        try:
            yield Neo4jSession(raw)
        finally:
            raw.close()

    def health_check(self) -> bool:
        """Check if Neo4j is healthy.

        Returns:
            True if connection is operational
        """
        try:
            self.query("RETURN 1")
            return True
        except (GraphUnavailableError, GraphStoreError) as e:
            log.warning(f"Neo4j health check failed: {e}")
            return False

    def close(self) -> None:
        """Close the Neo4j driver."""
        log.info("Closing Neo4j connection")
        if self._driver:
            self._driver.close()
            self._driver = None

    def __enter__(self) -> "Neo4jBackend":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def init_schema(self) -> None:
        """Create uniqueness constraints and the user partition index."""
        log.info("Creating Neo4j constraints and indexes")

        statements = [
            "CREATE CONSTRAINT content_id IF NOT EXISTS FOR (c:Content) REQUIRE c.id IS UNIQUE",
            "CREATE CONSTRAINT tag_name IF NOT EXISTS FOR (t:Tag) REQUIRE t.name IS UNIQUE",
            "CREATE INDEX content_user IF NOT EXISTS FOR (c:Content) ON (c.userId)",
        ]

        with self.session() as session:
            for statement in statements:
                session.run(statement)

        log.debug("Neo4j schema ready")
