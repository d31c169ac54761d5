"""Interactive view state over an analyzed graph.

Hover highlighting, free-text search and type filtering are modelled as an
immutable ViewState. render_view derives a fresh RenderedGraph from the
analyzed graph and the state on every call; nothing is written back into
the AnalyzedGraph, so no highlight can leak from one render into the next.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from contentgraph.analytics import AnalyzedGraph

ALL_TYPES = "all"
DIMMED_NODE_COLOR = "rgba(100, 100, 120, 0.15)"


@dataclass(frozen=True)
class ViewState:
    """What the user is currently hovering, searching and filtering.

    Attributes:
        hovered: Id of the hovered node, or None
        search: Free-text query matched against titles and tags
        type_filter: Content type to show, or "all"
    """

    hovered: str | None = None
    search: str = ""
    type_filter: str = ALL_TYPES

    def hover(self, node_id: str | None) -> "ViewState":
        return replace(self, hovered=node_id)

    def with_search(self, query: str) -> "ViewState":
        return replace(self, search=query)

    def with_type_filter(self, type_filter: str) -> "ViewState":
        return replace(self, type_filter=type_filter or ALL_TYPES)


@dataclass(frozen=True)
class RenderedNode:
    id: str
    label: str
    x: float
    y: float
    size: float
    color: str
    border_color: str
    hidden: bool = False
    highlighted: bool = False
    dimmed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "x": self.x,
            "y": self.y,
            "size": self.size,
            "color": self.color,
            "border_color": self.border_color,
            "hidden": self.hidden,
            "highlighted": self.highlighted,
            "dimmed": self.dimmed,
        }


@dataclass(frozen=True)
class RenderedEdge:
    source: str
    target: str
    similarity: float
    size: float
    color: str
    hidden: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "similarity": self.similarity,
            "size": self.size,
            "color": self.color,
            "hidden": self.hidden,
        }


@dataclass(frozen=True)
class RenderedGraph:
    nodes: tuple[RenderedNode, ...] = field(default_factory=tuple)
    edges: tuple[RenderedEdge, ...] = field(default_factory=tuple)

    def visible_node_ids(self) -> set[str]:
        return {node.id for node in self.nodes if not node.hidden}

    def node(self, node_id: str) -> RenderedNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


def edge_size(similarity: float) -> float:
    return 0.5 + similarity * 2.5


def edge_color(similarity: float) -> str:
    return f"rgba(100, 100, 130, {0.2 + similarity * 0.5:.3f})"


def matches_search(title: str, tags: list[str], query: str) -> bool:
    """Case-insensitive substring match on the title or any tag. Empty query matches."""
    needle = query.strip().lower()
    if not needle:
        return True
    if needle in (title or "").lower():
        return True
    return any(needle in tag.lower() for tag in tags)


def render_view(analyzed: AnalyzedGraph, state: ViewState | None = None) -> RenderedGraph:
    """Derive render attributes for every node and edge.

    A node is hidden when the search or the type filter excludes it; the two
    compose. An edge is hidden when either endpoint is hidden. While a node is
    hovered, it and its direct neighbours are highlighted, every other node is
    dimmed, and edges leaving that neighbourhood are hidden.
    """
    state = state or ViewState()

    hovered = state.hovered
    if hovered is not None and not any(node.id == hovered for node in analyzed.nodes):
        hovered = None
    focus: set[str] = set()
    if hovered is not None:
        focus = analyzed.neighbors(hovered) | {hovered}

    nodes = []
    hidden_ids = set()
    for node in analyzed.nodes:
        hidden_by_type = state.type_filter != ALL_TYPES and node.type != state.type_filter
        hidden_by_search = not matches_search(node.title, node.tags, state.search)
        hidden = hidden_by_type or hidden_by_search
        if hidden:
            hidden_ids.add(node.id)

        in_focus = hovered is not None and node.id in focus
        dimmed = hovered is not None and not in_focus
        nodes.append(
            RenderedNode(
                id=node.id,
                label=node.title,
                x=node.x,
                y=node.y,
                size=node.size,
                color=DIMMED_NODE_COLOR if dimmed else node.color,
                border_color=node.border_color,
                hidden=hidden,
                highlighted=in_focus,
                dimmed=dimmed,
            )
        )

    edges = []
    for edge in analyzed.edges:
        hidden = edge.source in hidden_ids or edge.target in hidden_ids
        if hovered is not None and not (edge.source in focus and edge.target in focus):
            hidden = True
        edges.append(
            RenderedEdge(
                source=edge.source,
                target=edge.target,
                similarity=edge.similarity,
                size=edge_size(edge.similarity),
                color=edge_color(edge.similarity),
                hidden=hidden,
            )
        )

    return RenderedGraph(nodes=tuple(nodes), edges=tuple(edges))
