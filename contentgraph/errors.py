"""Exception types for contentgraph.

Graph driver exceptions are translated into these at the backend boundary so
sync and query code never depends on driver internals.
"""


class ContentGraphError(Exception):
    """Base error for the graph mirror."""


class GraphUnavailableError(ContentGraphError):
    """The graph store is not configured or cannot be reached."""


class GraphStoreError(ContentGraphError):
    """A statement reached the graph store but failed.

    Attributes:
        operation: Name of the sync or query operation that issued the statement
        target: Content or user id the operation was working on
    """

    def __init__(self, message: str, operation: str | None = None, target: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.target = target

    def __str__(self) -> str:
        message = super().__str__()
        if self.operation:
            return f"{self.operation}({self.target or ''}): {message}"
        return message
