"""Community detection, centrality and layout over a bounded subgraph.

Consumes the GraphData returned by the query layer and produces render-ready
node attributes. The computation is local and never writes back to either
store. Each stage has a fallback so an algorithm failure degrades the
picture instead of blocking it:

- communities: Louvain, falling back to a single community 0
- centrality: PageRank, falling back to 1/n for every node
- layout: ForceAtlas2 from random positions, falling back to those positions
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from contentgraph.log_config import get_logger
from contentgraph.models import GraphData, GraphEdge

log = get_logger("analytics")

COMMUNITY_COLORS = (
    "#6366f1",  # indigo
    "#ec4899",  # pink
    "#14b8a6",  # teal
    "#f97316",  # orange
    "#8b5cf6",  # violet
    "#22c55e",  # green
    "#ef4444",  # red
    "#06b6d4",  # cyan
    "#eab308",  # yellow
    "#64748b",  # slate
)

TYPE_COLORS = {
    "note": "#3b82f6",
    "link": "#22c55e",
    "file": "#f97316",
}
DEFAULT_TYPE_COLOR = "#888888"


@dataclass(frozen=True)
class AnalyticsSettings:
    """Tuning for the analytics pipeline.

    Attributes:
        min_size: Node size for the lowest centrality
        max_size: Node size for the highest centrality
        iterations: ForceAtlas2 iterations
        gravity: ForceAtlas2 gravity
        scaling_ratio: ForceAtlas2 repulsion scaling
        strong_gravity: ForceAtlas2 strong gravity mode
        initial_extent: Initial positions are drawn from [-extent, extent]
        seed: Seed for initial positions, community detection and layout
    """

    min_size: float = 6.0
    max_size: float = 24.0
    iterations: int = 200
    gravity: float = 0.05
    scaling_ratio: float = 10.0
    strong_gravity: bool = False
    initial_extent: float = 100.0
    seed: int | None = None


@dataclass
class AnalyzedNode:
    """A content node enriched with analytics output."""

    id: str
    title: str
    type: str
    tags: list[str]
    community: int
    pagerank: float
    x: float
    y: float
    size: float
    color: str
    border_color: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "tags": list(self.tags),
            "community": self.community,
            "pagerank": self.pagerank,
            "x": self.x,
            "y": self.y,
            "size": self.size,
            "color": self.color,
            "border_color": self.border_color,
        }


@dataclass
class AnalyzedGraph:
    """Analytics result: enriched nodes plus the edges actually placed in the graph."""

    nodes: list[AnalyzedNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    @property
    def community_count(self) -> int:
        return len({node.community for node in self.nodes})

    def neighbors(self, node_id: str) -> set[str]:
        """Direct neighbours of a node over the placed edges."""
        result = set()
        for edge in self.edges:
            if edge.source == node_id:
                result.add(edge.target)
            elif edge.target == node_id:
                result.add(edge.source)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "community_count": self.community_count,
        }


def build_graph(data: GraphData) -> nx.Graph:
    """Build an undirected weighted graph from query output.

    Edges whose endpoints are not both in the node list are ignored and
    duplicate pairs are collapsed (first edge wins).
    """
    graph = nx.Graph()
    for node in data.nodes:
        graph.add_node(node.id, title=node.title, type=node.type, tags=list(node.tags))

    for edge in data.edges:
        if edge.source == edge.target:
            continue
        if not (graph.has_node(edge.source) and graph.has_node(edge.target)):
            continue
        if graph.has_edge(edge.source, edge.target):
            continue
        graph.add_edge(edge.source, edge.target, weight=edge.similarity)

    return graph


def detect_communities(graph: nx.Graph, seed: int | None = None) -> dict[str, int]:
    """Assign each node a community id, largest community first.

    Falls back to community 0 for every node if Louvain fails.
    """
    try:
        communities = nx.community.louvain_communities(graph, weight="weight", seed=seed)
    except Exception as e:
        log.warning(f"Community detection failed, using single community: {e}")
        return {node: 0 for node in graph.nodes}

    ordered = sorted(communities, key=lambda members: (-len(members), min(members)))
    assignment = {}
    for index, members in enumerate(ordered):
        for node in members:
            assignment[node] = index
    return assignment


def compute_centrality(graph: nx.Graph) -> dict[str, float]:
    """Weighted PageRank, falling back to a uniform 1/n."""
    n = graph.number_of_nodes()
    try:
        return nx.pagerank(graph, weight="weight")
    except Exception as e:
        log.warning(f"PageRank failed, using uniform scores: {e}")
        return {node: 1.0 / n for node in graph.nodes}


def scale_sizes(ranks: dict[str, float], min_size: float = 6.0, max_size: float = 24.0) -> dict[str, float]:
    """Min-max normalize scores into [min_size, max_size].

    When every score is equal the range is taken as 1, so all nodes get min_size.
    """
    if not ranks:
        return {}
    low = min(ranks.values())
    high = max(ranks.values())
    spread = (high - low) or 1.0
    return {node: min_size + ((rank - low) / spread) * (max_size - min_size) for node, rank in ranks.items()}


def initial_positions(graph: nx.Graph, extent: float = 100.0, seed: int | None = None) -> dict[str, tuple[float, float]]:
    """Uniform random positions in [-extent, extent] on both axes."""
    rng = random.Random(seed)
    return {
        node: (rng.uniform(-extent, extent), rng.uniform(-extent, extent))
        for node in graph.nodes
    }


def compute_layout(graph: nx.Graph, settings: AnalyticsSettings) -> dict[str, tuple[float, float]]:
    """ForceAtlas2 layout from random initial positions.

    Returns the initial positions unchanged if the layout fails.
    """
    start = initial_positions(graph, settings.initial_extent, settings.seed)
    if graph.number_of_nodes() < 2:
        return start

    try:
        positions = nx.forceatlas2_layout(
            graph,
            pos=start,
            max_iter=settings.iterations,
            gravity=settings.gravity,
            scaling_ratio=settings.scaling_ratio,
            strong_gravity=settings.strong_gravity,
            weight="weight",
            seed=settings.seed,
        )
    except Exception as e:
        log.warning(f"ForceAtlas2 layout failed, keeping initial positions: {e}")
        return start

    return {node: (float(pos[0]), float(pos[1])) for node, pos in positions.items()}


def analyze_graph(data: GraphData, settings: AnalyticsSettings | None = None) -> AnalyzedGraph:
    """Run communities, centrality and layout over a query result.

    Args:
        data: Nodes and edges from the query layer
        settings: Pipeline tuning (defaults: sizes 6-24, 200 iterations)

    Returns:
        AnalyzedGraph with one AnalyzedNode per input node, in input order
    """
    settings = settings or AnalyticsSettings()
    graph = build_graph(data)
    if graph.number_of_nodes() == 0:
        return AnalyzedGraph()

    communities = detect_communities(graph, seed=settings.seed)
    ranks = compute_centrality(graph)
    sizes = scale_sizes(ranks, settings.min_size, settings.max_size)
    positions = compute_layout(graph, settings)

    nodes = []
    seen: set[str] = set()
    for node in data.nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        community = communities.get(node.id, 0)
        x, y = positions[node.id]
        nodes.append(
            AnalyzedNode(
                id=node.id,
                title=node.title,
                type=node.type,
                tags=list(node.tags),
                community=community,
                pagerank=float(ranks.get(node.id, 0.0)),
                x=x,
                y=y,
                size=sizes.get(node.id, settings.min_size),
                color=COMMUNITY_COLORS[community % len(COMMUNITY_COLORS)],
                border_color=TYPE_COLORS.get(node.type, DEFAULT_TYPE_COLOR),
            )
        )

    edges = [
        GraphEdge.canonical(u, v, attrs["weight"])
        for u, v, attrs in graph.edges(data=True)
    ]

    result = AnalyzedGraph(nodes=nodes, edges=edges)
    log.debug(
        f"Analyzed graph: {len(nodes)} nodes, {len(edges)} edges, "
        f"{result.community_count} communities"
    )
    return result


async def analyze_graph_async(data: GraphData, settings: AnalyticsSettings | None = None) -> AnalyzedGraph:
    """analyze_graph in a worker thread, keeping the event loop responsive."""
    return await asyncio.to_thread(analyze_graph, data, settings)
