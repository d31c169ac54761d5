"""Typed records passed between the store of record, the graph mirror and analytics.

Rows coming out of either store are converted into these dataclasses at the
boundary; nothing downstream handles raw driver records or dict rows.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Content kinds stored in the `type` attribute
CONTENT_TYPES = ("note", "link", "file")


@dataclass
class ContentRecord:
    """A content row from the store of record.

    Attributes:
        id: Stable primary key shared with the graph node
        user_id: Owning user, partition key for every graph operation
        title: Display title
        type: One of CONTENT_TYPES
        tags: Explicit user tags
        auto_tags: Tags generated by the tagging pipeline
    """

    id: str
    user_id: str
    title: str
    type: str
    tags: list[str] = field(default_factory=list)
    auto_tags: list[str] = field(default_factory=list)

    def all_tags(self) -> list[str]:
        """Deduplicated union of explicit and auto tags, explicit tags first."""
        return list(dict.fromkeys([*(self.tags or []), *(self.auto_tags or [])]))


@dataclass(frozen=True)
class SimilarNeighbor:
    """One top-K neighbour of a content item."""

    content_id: str
    score: float


@dataclass(frozen=True)
class SimilarPair:
    """One scored pair from an all-pairs similarity scan, source < target."""

    source: str
    target: str
    score: float


@dataclass
class GraphNode:
    """Content node as returned by the query layer."""

    id: str
    title: str
    type: str
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "type": self.type, "tags": list(self.tags)}


@dataclass(frozen=True)
class GraphEdge:
    """Undirected similarity edge, always reported with source < target."""

    source: str
    target: str
    similarity: float

    @classmethod
    def canonical(cls, a: str, b: str, similarity: float) -> "GraphEdge":
        """Build an edge keyed by the unordered pair (a, b)."""
        if b < a:
            a, b = b, a
        return cls(source=a, target=b, similarity=float(similarity))

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.target)

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "target": self.target, "similarity": self.similarity}


@dataclass
class GraphData:
    """Nodes and edges of a bounded subgraph."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "GraphData":
        return cls(nodes=[], edges=[])

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    def node_ids(self) -> list[str]:
        """Ids referenced by the edges, in first-seen order."""
        ids: dict[str, None] = {}
        for edge in self.edges:
            ids.setdefault(edge.source)
            ids.setdefault(edge.target)
        return list(ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass
class TagCluster:
    """Content items grouped under one shared tag."""

    tag: str
    content_ids: list[str]
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "content_ids": list(self.content_ids), "count": self.count}


class SyncStatus(str, Enum):
    """Outcome of a single sync operation."""

    SYNCED = "synced"
    UNAVAILABLE = "unavailable"  # graph store not configured or unreachable
    NOT_FOUND = "not_found"      # content or embedding absent in the store of record
    FAILED = "failed"            # a graph statement failed; safe to re-run


@dataclass
class SyncResult:
    """Result of an incremental sync call."""

    status: SyncStatus
    content_id: str
    operation: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when the graph now reflects the store of record (or nothing needed doing)."""
        return self.status in (SyncStatus.SYNCED, SyncStatus.NOT_FOUND)


@dataclass
class FullSyncResult:
    """Counts reported by a full resync."""

    nodes_created: int = 0
    edges_created: int = 0
    status: SyncStatus = SyncStatus.SYNCED

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes_created": self.nodes_created,
            "edges_created": self.edges_created,
            "status": self.status.value,
        }
