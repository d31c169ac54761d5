"""Tests for the user-scoped graph query layer."""

import pytest

from contentgraph.db.graph_queries import (
    FULL_GRAPH_EDGES,
    NODE_DETAILS,
    SHORTEST_PATH,
    TAG_CLUSTERS,
    GraphQueries,
)
from contentgraph.errors import GraphStoreError, GraphUnavailableError
from contentgraph.models import GraphData, GraphEdge, GraphNode, TagCluster

from conftest import rows

EDGE_HEADER = ["source", "target", "similarity"]
NODE_HEADER = ["id", "title", "type", "tags"]


@pytest.fixture
def queries(fake_graph):
    return GraphQueries(fake_graph, max_hops=5)


class TestUnavailable:
    """Every query answers None when the store is not configured."""

    def test_all_queries_return_none(self):
        queries = GraphQueries(None)
        assert queries.get_full_graph("u1") is None
        assert queries.get_node_neighborhood("a", "u1") is None
        assert queries.get_shortest_path("a", "b", "u1") is None
        assert queries.get_tag_clusters("u1") is None

    @pytest.mark.parametrize("error", [GraphStoreError("syntax"), GraphUnavailableError("down")])
    def test_store_errors_become_none(self, queries, fake_graph, error):
        fake_graph.session_mock.run.side_effect = error
        assert queries.get_full_graph("u1") is None
        assert queries.get_tag_clusters("u1") is None
        assert fake_graph.opened == fake_graph.released == 2


class TestFullGraph:
    def test_edges_then_node_details(self, queries, fake_graph):
        fake_graph.session_mock.run.side_effect = [
            rows(EDGE_HEADER, ["a", "b", 0.9], ["b", "c", 0.6]),
            rows(NODE_HEADER, ["a", "A", "note", ["ts"]], ["b", "B", "link", []], ["c", "C", "file", ["ts", "react"]]),
        ]

        data = queries.get_full_graph("u1", min_similarity=0.5, limit=10)

        assert data.edges == [GraphEdge("a", "b", 0.9), GraphEdge("b", "c", 0.6)]
        assert data.nodes == [
            GraphNode("a", "A", "note", ["ts"]),
            GraphNode("b", "B", "link", []),
            GraphNode("c", "C", "file", ["ts", "react"]),
        ]
        assert fake_graph.calls == [
            (FULL_GRAPH_EDGES, {"userId": "u1", "minSimilarity": 0.5, "limit": 10}),
            (NODE_DETAILS, {"userId": "u1", "ids": ["a", "b", "c"]}),
        ]
        assert fake_graph.opened == 1

    def test_defaults(self, queries, fake_graph):
        queries.get_full_graph("u1")
        _, params = fake_graph.calls[0]
        assert params == {"userId": "u1", "minSimilarity": 0.5, "limit": 100}

    def test_no_edges_skips_node_query(self, queries, fake_graph):
        data = queries.get_full_graph("u1")
        assert data == GraphData.empty()
        assert data is not None
        assert fake_graph.statements() == [FULL_GRAPH_EDGES]

    def test_edges_reported_with_source_before_target(self, queries, fake_graph):
        fake_graph.session_mock.run.side_effect = [
            rows(EDGE_HEADER, ["z", "a", 0.7]),
            rows(NODE_HEADER, ["z", "Z", "note", []], ["a", "A", "note", []]),
        ]
        data = queries.get_full_graph("u1")
        assert data.edges == [GraphEdge("a", "z", 0.7)]

    def test_null_tags_are_dropped(self, queries, fake_graph):
        fake_graph.session_mock.run.side_effect = [
            rows(EDGE_HEADER, ["a", "b", 0.7]),
            rows(NODE_HEADER, ["a", "A", "note", [None]], ["b", None, None, None]),
        ]
        data = queries.get_full_graph("u1")
        assert data.nodes[0].tags == []
        assert data.nodes[1] == GraphNode("b", "", "note", [])


class TestNeighborhood:
    @pytest.mark.parametrize("hops,expected", [(0, 1), (1, 1), (2, 2), (3, 3), (5, 5), (10, 5), (-4, 1)])
    def test_hops_are_clamped(self, queries, fake_graph, hops, expected):
        queries.get_node_neighborhood("a", "u1", hops=hops)
        cypher, params = fake_graph.calls[0]
        assert f"[:SIMILAR_TO*1..{expected}]" in cypher
        assert params == {"nodeId": "a", "userId": "u1"}

    def test_custom_max_hops(self, fake_graph):
        GraphQueries(fake_graph, max_hops=3).get_node_neighborhood("a", "u1", hops=9)
        cypher, _ = fake_graph.calls[0]
        assert "[:SIMILAR_TO*1..3]" in cypher

    def test_edges_deduplicated_and_canonical(self, queries, fake_graph):
        fake_graph.session_mock.run.side_effect = [
            rows(EDGE_HEADER, ["b", "a", 0.8], ["a", "b", 0.8], ["b", "c", 0.4]),
            rows(NODE_HEADER, ["a", "A", "note", []], ["b", "B", "note", []], ["c", "C", "note", []]),
        ]

        data = queries.get_node_neighborhood("a", "u1")

        assert data.edges == [GraphEdge("a", "b", 0.8), GraphEdge("b", "c", 0.4)]
        _, params = fake_graph.calls[1]
        assert params["ids"] == ["a", "b", "c"]

    def test_isolated_node_gives_empty_graph(self, queries, fake_graph):
        data = queries.get_node_neighborhood("lonely", "u1")
        assert data.is_empty
        assert len(fake_graph.calls) == 1


class TestShortestPath:
    def test_same_endpoint_is_empty_without_query(self, queries, fake_graph):
        data = queries.get_shortest_path("a", "a", "u1")
        assert data.is_empty
        assert fake_graph.calls == []

    def test_no_path(self, queries, fake_graph):
        data = queries.get_shortest_path("a", "z", "u1")
        assert data.is_empty
        assert fake_graph.calls == [
            (SHORTEST_PATH, {"sourceId": "a", "targetId": "z", "userId": "u1"}),
        ]

    def test_path_edges_and_nodes(self, queries, fake_graph):
        path_header = ["source", "target", "similarity", "nodeIds"]
        fake_graph.session_mock.run.side_effect = [
            rows(path_header, ["a", "m", 0.7, ["a", "m", "z"]], ["m", "z", 0.6, ["a", "m", "z"]]),
            rows(NODE_HEADER, ["a", "A", "note", []], ["m", "M", "note", []], ["z", "Z", "note", []]),
        ]

        data = queries.get_shortest_path("a", "z", "u1")

        assert data.edges == [GraphEdge("a", "m", 0.7), GraphEdge("m", "z", 0.6)]
        assert [n.id for n in data.nodes] == ["a", "m", "z"]
        assert fake_graph.calls[1] == (NODE_DETAILS, {"userId": "u1", "ids": ["a", "m", "z"]})

    def test_path_is_restricted_to_user(self):
        assert "all(n IN nodes(path) WHERE n.userId = $userId)" in SHORTEST_PATH


class TestTagClusters:
    def test_maps_rows(self, queries, fake_graph):
        fake_graph.session_mock.run.return_value = rows(
            ["tag", "contentIds", "count"],
            ["ts", ["a", "b", "c"], 3],
            ["react", ["a", "b"], 2],
        )

        clusters = queries.get_tag_clusters("u1", min_count=2)

        assert clusters == [
            TagCluster("ts", ["a", "b", "c"], 3),
            TagCluster("react", ["a", "b"], 2),
        ]
        assert fake_graph.calls == [(TAG_CLUSTERS, {"userId": "u1", "minCount": 2})]

    def test_no_clusters_is_empty_list(self, queries):
        assert queries.get_tag_clusters("u1") == []
