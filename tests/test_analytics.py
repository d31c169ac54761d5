"""Tests for the networkx analytics pipeline."""

import asyncio
import math

import networkx as nx
import pytest

from contentgraph import analytics
from contentgraph.analytics import (
    COMMUNITY_COLORS,
    DEFAULT_TYPE_COLOR,
    TYPE_COLORS,
    AnalyticsSettings,
    analyze_graph,
    analyze_graph_async,
    build_graph,
    initial_positions,
    scale_sizes,
)
from contentgraph.models import GraphData, GraphEdge, GraphNode


def _node(node_id, node_type="note", tags=None):
    return GraphNode(node_id, f"Title {node_id}", node_type, tags or [])


@pytest.fixture
def two_clusters() -> GraphData:
    """Two tight triangles joined by one weak bridge."""
    nodes = [_node(n) for n in "abcdef"]
    edges = [
        GraphEdge("a", "b", 0.9), GraphEdge("a", "c", 0.9), GraphEdge("b", "c", 0.9),
        GraphEdge("d", "e", 0.9), GraphEdge("d", "f", 0.9), GraphEdge("e", "f", 0.9),
        GraphEdge("c", "d", 0.31),
    ]
    return GraphData(nodes=nodes, edges=edges)


class TestBuildGraph:
    def test_dangling_edges_are_ignored(self):
        data = GraphData(nodes=[_node("a"), _node("b")], edges=[GraphEdge("a", "b", 0.5), GraphEdge("a", "x", 0.9)])
        graph = build_graph(data)
        assert sorted(graph.edges) == [("a", "b")]

    def test_duplicate_edges_collapse(self):
        data = GraphData(
            nodes=[_node("a"), _node("b")],
            edges=[GraphEdge("a", "b", 0.5), GraphEdge("a", "b", 0.9)],
        )
        graph = build_graph(data)
        assert graph.number_of_edges() == 1
        assert graph["a"]["b"]["weight"] == 0.5


class TestAnalyzeGraph:
    def test_empty_input(self):
        result = analyze_graph(GraphData.empty())
        assert result.nodes == []
        assert result.edges == []
        assert result.community_count == 0

    def test_one_result_per_node_in_input_order(self, two_clusters):
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=7))
        assert [n.id for n in result.nodes] == list("abcdef")
        assert len(result.edges) == 7

    def test_communities_follow_structure(self, two_clusters):
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=42))
        community = {n.id: n.community for n in result.nodes}
        assert community["a"] == community["b"] == community["c"]
        assert community["d"] == community["e"] == community["f"]
        assert community["a"] != community["d"]
        assert result.community_count == 2

    def test_colors(self, two_clusters):
        two_clusters.nodes[0] = _node("a", "link")
        two_clusters.nodes[1] = _node("b", "video")
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=1))
        by_id = {n.id: n for n in result.nodes}
        assert by_id["a"].border_color == TYPE_COLORS["link"]
        assert by_id["b"].border_color == DEFAULT_TYPE_COLOR
        assert by_id["c"].border_color == TYPE_COLORS["note"]
        for node in result.nodes:
            assert node.color == COMMUNITY_COLORS[node.community % len(COMMUNITY_COLORS)]

    def test_sizes_span_configured_range(self, two_clusters):
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=3))
        sizes = [n.size for n in result.nodes]
        assert min(sizes) == pytest.approx(6.0)
        assert max(sizes) == pytest.approx(24.0)

    def test_positions_are_finite(self, two_clusters):
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=5, iterations=50))
        for node in result.nodes:
            assert math.isfinite(node.x) and math.isfinite(node.y)

    def test_async_variant_matches_shape(self, two_clusters):
        result = asyncio.run(analyze_graph_async(two_clusters, AnalyticsSettings(seed=11)))
        assert [n.id for n in result.nodes] == list("abcdef")


class TestFallbacks:
    """Algorithm failures degrade the result instead of raising."""

    def test_community_failure_puts_everyone_in_zero(self, two_clusters, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("louvain exploded")

        monkeypatch.setattr(nx.community, "louvain_communities", boom)
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=1))
        assert {n.community for n in result.nodes} == {0}
        assert all(n.color == COMMUNITY_COLORS[0] for n in result.nodes)

    def test_centrality_failure_uses_uniform_scores(self, two_clusters, monkeypatch):
        def boom(*args, **kwargs):
            raise nx.PowerIterationFailedConvergence(100)

        monkeypatch.setattr(nx, "pagerank", boom)
        result = analyze_graph(two_clusters, AnalyticsSettings(seed=1))
        assert all(n.pagerank == pytest.approx(1 / 6) for n in result.nodes)
        # Zero range divides by 1, so everything sits at the minimum size
        assert all(n.size == pytest.approx(6.0) for n in result.nodes)

    def test_layout_failure_keeps_initial_positions(self, two_clusters, monkeypatch):
        def boom(*args, **kwargs):
            raise ValueError("layout exploded")

        monkeypatch.setattr(nx, "forceatlas2_layout", boom)
        settings = AnalyticsSettings(seed=9)
        result = analyze_graph(two_clusters, settings)

        expected = initial_positions(build_graph(two_clusters), settings.initial_extent, settings.seed)
        assert {n.id: (n.x, n.y) for n in result.nodes} == expected
        for node in result.nodes:
            assert -100.0 <= node.x <= 100.0
            assert -100.0 <= node.y <= 100.0


class TestHelpers:
    def test_scale_sizes_equal_scores(self):
        assert scale_sizes({"a": 0.5, "b": 0.5}) == {"a": 6.0, "b": 6.0}

    def test_scale_sizes_range(self):
        sizes = scale_sizes({"a": 0.1, "b": 0.2, "c": 0.3}, min_size=0.0, max_size=10.0)
        assert sizes == pytest.approx({"a": 0.0, "b": 5.0, "c": 10.0})

    def test_initial_positions_are_seeded(self):
        graph = nx.Graph()
        graph.add_nodes_from("abc")
        assert initial_positions(graph, seed=4) == initial_positions(graph, seed=4)

    def test_single_node_keeps_initial_position(self):
        result = analytics.analyze_graph(GraphData(nodes=[_node("a")], edges=[]), AnalyticsSettings(seed=2))
        assert len(result.nodes) == 1
        assert result.nodes[0].community == 0
        assert result.nodes[0].size == pytest.approx(6.0)
