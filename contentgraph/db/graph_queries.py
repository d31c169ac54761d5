"""Read-only graph queries over one user's content mirror.

Provides the subgraph views consumed by the HTTP layer and the analytics
pipeline:
- Full graph (thresholded, score-ordered, capped similarity edges)
- Node neighbourhood (variable-length SIMILAR_TO expansion)
- Shortest path between two content items
- Tag clusters

Every query is scoped to a single user. Each call returns None when the
graph store is not configured or a statement fails; an empty GraphData
means the store answered and there was nothing to return.
"""

from typing import Any

from contentgraph.db.graph_protocol import GraphBackend, GraphSession
from contentgraph.errors import GraphStoreError, GraphUnavailableError
from contentgraph.log_config import get_logger
from contentgraph.models import GraphData, GraphEdge, GraphNode, TagCluster

log = get_logger("queries")

FULL_GRAPH_EDGES = """
MATCH (c1:Content {userId: $userId})-[r:SIMILAR_TO]-(c2:Content {userId: $userId})
WHERE r.score >= $minSimilarity AND c1.id < c2.id
RETURN c1.id AS source, c2.id AS target, r.score AS similarity
ORDER BY similarity DESC, source, target
LIMIT $limit
"""

NODE_DETAILS = """
MATCH (c:Content {userId: $userId})
WHERE c.id IN $ids
OPTIONAL MATCH (c)-[:TAGGED_WITH]->(t:Tag)
RETURN c.id AS id, c.title AS title, c.type AS type, collect(t.name) AS tags
"""

# Hop bound is interpolated; Cypher does not accept parameters in ranges
NEIGHBORHOOD_EDGES = """
MATCH path = (start:Content {{id: $nodeId, userId: $userId}})-[:SIMILAR_TO*1..{hops}]-(neighbor:Content {{userId: $userId}})
WHERE all(n IN nodes(path) WHERE n.userId = $userId)
UNWIND relationships(path) AS r
WITH r, startNode(r) AS s, endNode(r) AS e
RETURN DISTINCT
    CASE WHEN s.id < e.id THEN s.id ELSE e.id END AS source,
    CASE WHEN s.id < e.id THEN e.id ELSE s.id END AS target,
    r.score AS similarity
"""

SHORTEST_PATH = """
MATCH (s:Content {id: $sourceId, userId: $userId}),
      (t:Content {id: $targetId, userId: $userId}),
      path = shortestPath((s)-[:SIMILAR_TO*]-(t))
WHERE all(n IN nodes(path) WHERE n.userId = $userId)
WITH nodes(path) AS ns, relationships(path) AS rels
UNWIND rels AS r
WITH ns, r, startNode(r) AS a, endNode(r) AS b
RETURN
    CASE WHEN a.id < b.id THEN a.id ELSE b.id END AS source,
    CASE WHEN a.id < b.id THEN b.id ELSE a.id END AS target,
    r.score AS similarity,
    [n IN ns | n.id] AS nodeIds
"""

TAG_CLUSTERS = """
MATCH (c:Content {userId: $userId})-[:TAGGED_WITH]->(t:Tag)
WITH t, collect(DISTINCT c.id) AS contentIds
WHERE size(contentIds) >= $minCount
RETURN t.name AS tag, contentIds, size(contentIds) AS count
ORDER BY count DESC, tag
"""


def _edges_from(records: list[dict[str, Any]]) -> list[GraphEdge]:
    """Canonicalize and deduplicate edge rows, keeping first-seen order."""
    edges: dict[tuple[str, str], GraphEdge] = {}
    for record in records:
        edge = GraphEdge.canonical(record["source"], record["target"], record.get("similarity") or 0.0)
        edges.setdefault(edge.key, edge)
    return list(edges.values())


class GraphQueries:
    """User-scoped read queries against the graph mirror.

    Uses dependency injection for the graph backend; `graph` is None when the
    store is not configured, and every query then returns None.
    """

    def __init__(self, graph: GraphBackend | None, max_hops: int = 5):
        """Initialize GraphQueries.

        Args:
            graph: Graph backend, or None when the mirror is disabled
            max_hops: Upper bound for neighbourhood expansion (default: 5)
        """
        self.graph = graph
        self.max_hops = max_hops

    def _node_details(self, session: GraphSession, user_id: str, ids: list[str]) -> list[GraphNode]:
        result = session.run(NODE_DETAILS, {"userId": user_id, "ids": ids})
        return [
            GraphNode(
                id=record["id"],
                title=record.get("title") or "",
                type=record.get("type") or "note",
                tags=[t for t in (record.get("tags") or []) if t is not None],
            )
            for record in result.records()
        ]

    def _run(self, operation: str, target: str, fn) -> Any:
        """Run fn(session) in one session, mapping store failures to None."""
        if self.graph is None:
            log.debug(f"{operation}({target}) skipped, graph store not configured")
            return None
        try:
            with self.graph.session() as session:
                return fn(session)
        except GraphUnavailableError as e:
            log.warning(f"{operation}({target}) unavailable: {e}")
            return None
        except GraphStoreError as e:
            log.error(f"{operation}({target}) failed: {e}")
            return None

    def get_full_graph(
        self,
        user_id: str,
        min_similarity: float = 0.5,
        limit: int = 100,
    ) -> GraphData | None:
        """Get the user's strongest similarity edges and the nodes they touch.

        Nodes without a qualifying edge are not included.

        Args:
            user_id: Owner of the graph
            min_similarity: Minimum edge score, inclusive (default: 0.5)
            limit: Maximum number of edges (default: 100)

        Returns:
            GraphData ordered by descending score, or None on store failure
        """
        log.trace(f"get_full_graph: user={user_id}, min_similarity={min_similarity}, limit={limit}")

        def fetch(session: GraphSession) -> GraphData:
            result = session.run(
                FULL_GRAPH_EDGES,
                {"userId": user_id, "minSimilarity": min_similarity, "limit": int(limit)},
            )
            edges = _edges_from(result.records())
            if not edges:
                return GraphData.empty()
            data = GraphData(edges=edges)
            data.nodes = self._node_details(session, user_id, data.node_ids())
            return data

        data = self._run("get_full_graph", user_id, fetch)
        if data is not None:
            log.debug(f"get_full_graph({user_id}): {len(data.nodes)} nodes, {len(data.edges)} edges")
        return data

    def get_node_neighborhood(self, node_id: str, user_id: str, hops: int = 2) -> GraphData | None:
        """Get every similarity edge within `hops` of a node.

        Args:
            node_id: Centre of the neighbourhood
            user_id: Owner; traversal never leaves this user's content
            hops: Expansion depth, clamped to 1..max_hops (default: 2)

        Returns:
            GraphData, empty when nothing is reachable, or None on store failure
        """
        safe_hops = min(max(int(hops), 1), self.max_hops)
        log.trace(f"get_node_neighborhood: node={node_id}, hops={hops} (using {safe_hops})")

        def fetch(session: GraphSession) -> GraphData:
            result = session.run(
                NEIGHBORHOOD_EDGES.format(hops=safe_hops),
                {"nodeId": node_id, "userId": user_id},
            )
            edges = _edges_from(result.records())
            if not edges:
                return GraphData.empty()
            data = GraphData(edges=edges)
            data.nodes = self._node_details(session, user_id, data.node_ids())
            return data

        return self._run("get_node_neighborhood", node_id, fetch)

    def get_shortest_path(self, source_id: str, target_id: str, user_id: str) -> GraphData | None:
        """Find one unweighted shortest SIMILAR_TO path between two items.

        Returns:
            Path edges and nodes; empty when the endpoints are equal, missing,
            or disconnected; None on store failure
        """
        if source_id == target_id:
            return GraphData.empty() if self.graph is not None else None

        def fetch(session: GraphSession) -> GraphData:
            result = session.run(
                SHORTEST_PATH,
                {"sourceId": source_id, "targetId": target_id, "userId": user_id},
            )
            records = result.records()
            if not records:
                return GraphData.empty()

            node_ids: dict[str, None] = {}
            for record in records:
                for nid in record.get("nodeIds") or []:
                    node_ids.setdefault(nid)

            nodes = self._node_details(session, user_id, list(node_ids))
            return GraphData(nodes=nodes, edges=_edges_from(records))

        return self._run("get_shortest_path", f"{source_id}->{target_id}", fetch)

    def get_tag_clusters(self, user_id: str, min_count: int = 2) -> list[TagCluster] | None:
        """Group the user's content by shared tag.

        Args:
            user_id: Owner of the content
            min_count: Minimum distinct content items per tag (default: 2)

        Returns:
            Clusters by descending count then tag name, or None on store failure
        """

        def fetch(session: GraphSession) -> list[TagCluster]:
            result = session.run(TAG_CLUSTERS, {"userId": user_id, "minCount": int(min_count)})
            return [
                TagCluster(
                    tag=record["tag"],
                    content_ids=list(record.get("contentIds") or []),
                    count=int(record["count"]),
                )
                for record in result.records()
            ]

        return self._run("get_tag_clusters", user_id, fetch)
