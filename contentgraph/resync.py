"""Full rebuild of one user's subgraph from the store of record.

The rebuild is not transactional across its phases. Its first statement
clears the user's Content nodes unconditionally, so recovery from a partial
failure is simply running it again. Two full resyncs for the same user must
not run concurrently; callers serialize them (see backend.services.InFlightGuard).
"""

from contentgraph.db.graph_protocol import GraphBackend
from contentgraph.db.vector_source import VectorSimilaritySource
from contentgraph.errors import GraphStoreError, GraphUnavailableError
from contentgraph.log_config import get_logger, log_timing
from contentgraph.models import FullSyncResult, SyncStatus

log = get_logger("sync.full")

CLEAR_USER_GRAPH = """
MATCH (c:Content {userId: $userId})
DETACH DELETE c
"""

CREATE_CONTENT_NODES = """
UNWIND $items AS item
MERGE (c:Content {id: item.id})
SET c.title = item.title, c.type = item.type, c.userId = $userId
"""

CREATE_TAG_EDGES = """
UNWIND $edges AS edge
MERGE (t:Tag {name: edge.tag})
WITH t, edge
MATCH (c:Content {id: edge.contentId})
MERGE (c)-[:TAGGED_WITH]->(t)
"""

CREATE_SIMILARITY_EDGES = """
UNWIND $edges AS edge
MATCH (a:Content {id: edge.source, userId: $userId})
MATCH (b:Content {id: edge.target, userId: $userId})
MERGE (a)-[r:SIMILAR_TO]->(b)
SET r.score = edge.score
"""


class FullResync:
    """Rebuilds a user's Content nodes, tag edges and similarity edges."""

    def __init__(
        self,
        graph: GraphBackend | None,
        source: VectorSimilaritySource,
        similarity_threshold: float = 0.3,
        max_edges: int = 500,
    ):
        """Initialize FullResync.

        Args:
            graph: Graph backend, or None when the mirror is disabled
            source: Store of record for content rows and embeddings
            similarity_threshold: Minimum score for a SIMILAR_TO edge (default: 0.3)
            max_edges: Cap on similarity edges, best scores kept (default: 500)
        """
        self.graph = graph
        self.source = source
        self.similarity_threshold = similarity_threshold
        self.max_edges = max_edges

    def full_sync(self, user_id: str) -> FullSyncResult:
        """Clear and rebuild the user's subgraph.

        Args:
            user_id: Owner whose graph is rebuilt

        Returns:
            FullSyncResult with content nodes and edges (tag + similarity) created;
            zero counts with status UNAVAILABLE when the mirror is disabled or
            the store cannot be reached

        Raises:
            GraphStoreError: A statement failed; the graph may be partially
                rebuilt and the call should be repeated
        """
        if self.graph is None:
            log.debug(f"full_sync({user_id}) skipped, graph store not configured")
            return FullSyncResult(status=SyncStatus.UNAVAILABLE)

        with log_timing(f"full_sync({user_id})", log, level="info"):
            try:
                return self._rebuild(user_id)
            except GraphStoreError as e:
                log.error(f"full_sync({user_id}) failed: {e}")
                raise GraphStoreError(str(e), operation="full_sync", target=user_id) from e
            except GraphUnavailableError as e:
                log.warning(f"full_sync({user_id}) skipped, graph store unavailable: {e}")
                return FullSyncResult(status=SyncStatus.UNAVAILABLE)

    def _rebuild(self, user_id: str) -> FullSyncResult:
        with self.graph.session() as session:
            session.run(CLEAR_USER_GRAPH, {"userId": user_id})

            items = self.source.get_user_content(user_id)
            if not items:
                log.info(f"full_sync({user_id}): no content, graph cleared")
                return FullSyncResult()

            session.run(
                CREATE_CONTENT_NODES,
                {
                    "userId": user_id,
                    "items": [{"id": c.id, "title": c.title, "type": c.type} for c in items],
                },
            )

            tag_edges = [
                {"contentId": item.id, "tag": tag}
                for item in items
                for tag in item.all_tags()
            ]
            if tag_edges:
                session.run(CREATE_TAG_EDGES, {"edges": tag_edges})

            pairs = self.source.similar_pairs(
                user_id,
                min_score=self.similarity_threshold,
                limit=self.max_edges,
            )
            similarity_edges = []
            for pair in pairs:
                source_id, target_id = sorted((pair.source, pair.target))
                similarity_edges.append({"source": source_id, "target": target_id, "score": pair.score})
            if similarity_edges:
                session.run(CREATE_SIMILARITY_EDGES, {"userId": user_id, "edges": similarity_edges})

        log.info(
            f"full_sync({user_id}): {len(items)} nodes, "
            f"{len(tag_edges)} tag edges, {len(similarity_edges)} similarity edges"
        )
        return FullSyncResult(
            nodes_created=len(items),
            edges_created=len(tag_edges) + len(similarity_edges),
        )
