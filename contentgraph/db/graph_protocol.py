"""Graph store protocol for contentgraph.

Defines the interface the sync engines and query layer use to talk to the
graph store. The production implementation is Neo4jBackend; tests substitute
a fake that records statements.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass
class QueryResult:
    """Unified query result from the graph store.

    Attributes:
        result_set: List of result rows (each row is a list of values)
        header: Column names if available
        stats: Query statistics (nodes created, relationships created, etc.)
    """
    result_set: list[list[Any]]
    header: list[str] | None = None
    stats: dict[str, Any] | None = None

    def __iter__(self):
        """Allow iteration over result set."""
        return iter(self.result_set)

    def __len__(self):
        """Return number of result rows."""
        return len(self.result_set)

    def __bool__(self):
        """Check if result has any rows."""
        return len(self.result_set) > 0

    def records(self) -> list[dict[str, Any]]:
        """Rows as dicts keyed by header column."""
        if not self.header:
            return []
        return [dict(zip(self.header, row)) for row in self.result_set]


@runtime_checkable
class GraphSession(Protocol):
    """A single graph store session. Statements run sequentially."""

    def run(self, cypher: str, params: dict[str, Any] | None = None) -> QueryResult:
        """Execute one Cypher statement and consume its result."""
        ...


@runtime_checkable
class GraphBackend(Protocol):
    """Protocol for graph store clients.

    All mutating and reading code acquires a session through `session()`,
    which releases it on exit whether or not the body raised.
    """

    @property
    def backend_name(self) -> str:
        """Return the backend name (e.g., 'neo4j')."""
        ...

    def session(self) -> AbstractContextManager[GraphSession]:
        """Open a scoped session."""
        ...

    def query(self, cypher: str, params: dict[str, Any] | None = None) -> QueryResult:
        """Execute a single Cypher statement in its own session."""
        ...

    def health_check(self) -> bool:
        """Check if the backend is healthy and connected.

        Returns:
            True if backend is operational
        """
        ...

    def close(self) -> None:
        """Close the connection and release resources."""
        ...

    def init_schema(self) -> None:
        """Initialize constraints and indexes. Should be idempotent."""
        ...


class BaseGraphBackend(ABC):
    """Abstract base class for graph backends with common functionality."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend name."""
        pass

    @abstractmethod
    def session(self) -> AbstractContextManager[GraphSession]:
        """Open a scoped session."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check backend health."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close connection."""
        pass

    @abstractmethod
    def init_schema(self) -> None:
        """Initialize schema."""
        pass

    def query(self, cypher: str, params: dict[str, Any] | None = None) -> QueryResult:
        """Execute a single statement in a fresh session."""
        with self.session() as session:
            return session.run(cypher, params)
