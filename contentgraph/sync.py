"""Incremental sync of single content items into the graph mirror.

Called from write paths of the calling application:
- upsert_content after content create/update or a tag edit
- delete_content after content delete
- sync_similarity_edges after an embedding is created or updated

Each call acquires one graph session, runs its statements, and releases the
session. Failures never propagate to the caller; they are logged with the
operation name and content id and reported through SyncResult, because the
graph is derived data and every operation here is safe to re-run.
"""

from contentgraph.db.graph_protocol import GraphBackend
from contentgraph.db.vector_source import VectorSimilaritySource
from contentgraph.errors import GraphStoreError, GraphUnavailableError
from contentgraph.log_config import get_logger
from contentgraph.models import ContentRecord, SyncResult, SyncStatus

log = get_logger("sync.incremental")

MERGE_CONTENT = """
MERGE (c:Content {id: $id})
SET c.title = $title, c.type = $type, c.userId = $userId
"""

DELETE_TAG_EDGES = """
MATCH (c:Content {id: $id})-[r:TAGGED_WITH]->()
DELETE r
"""

MERGE_TAG_EDGES = """
UNWIND $tags AS tagName
MERGE (t:Tag {name: tagName})
WITH t
MATCH (c:Content {id: $id})
MERGE (c)-[:TAGGED_WITH]->(t)
"""

DETACH_DELETE_CONTENT = """
MATCH (c:Content {id: $id})
DETACH DELETE c
"""

DELETE_SIMILARITY_EDGES = """
MATCH (c:Content {id: $id})-[r:SIMILAR_TO]-()
DELETE r
"""

# Each edge arrives with source < target so the pair is stored once
CREATE_SIMILARITY_EDGES = """
UNWIND $edges AS edge
MATCH (a:Content {id: edge.source, userId: $userId})
MATCH (b:Content {id: edge.target, userId: $userId})
MERGE (a)-[r:SIMILAR_TO]->(b)
SET r.score = edge.score
"""


class IncrementalSync:
    """Keeps individual Content nodes, their tags and similarity edges current.

    Uses dependency injection for both stores: `graph` is None when the graph
    store is not configured, in which case every operation is a no-op that
    reports UNAVAILABLE.
    """

    def __init__(
        self,
        graph: GraphBackend | None,
        source: VectorSimilaritySource,
        similarity_threshold: float = 0.3,
        neighbor_limit: int = 50,
    ):
        """Initialize IncrementalSync.

        Args:
            graph: Graph backend, or None when the mirror is disabled
            source: Store of record for content rows and embeddings
            similarity_threshold: Minimum score for a SIMILAR_TO edge (default: 0.3)
            neighbor_limit: Max neighbours per similarity sync (default: 50)
        """
        self.graph = graph
        self.source = source
        self.similarity_threshold = similarity_threshold
        self.neighbor_limit = neighbor_limit

    @property
    def enabled(self) -> bool:
        return self.graph is not None

    def _failed(self, operation: str, content_id: str, error: Exception) -> SyncResult:
        if isinstance(error, GraphUnavailableError):
            log.warning(f"{operation}({content_id}) skipped, graph store unavailable: {error}")
            return SyncResult(SyncStatus.UNAVAILABLE, content_id, operation, error=str(error))
        log.error(f"{operation}({content_id}) failed: {error}")
        return SyncResult(SyncStatus.FAILED, content_id, operation, error=str(error))

    def upsert_content(self, content_id: str) -> SyncResult:
        """Create or update a Content node and replace its tag edges.

        Tag edges are deleted and recreated because tag sets can shrink; an
        additive merge would leave stale edges behind.

        Args:
            content_id: Primary key of the content row

        Returns:
            SyncResult; NOT_FOUND when the row no longer exists
        """
        if not self.enabled:
            return SyncResult(SyncStatus.UNAVAILABLE, content_id, "upsert_content")
        return self._upsert(content_id, self.source.get_content(content_id))

    def _upsert(self, content_id: str, item: ContentRecord | None) -> SyncResult:
        operation = "upsert_content"
        if item is None:
            log.debug(f"{operation}({content_id}): content gone before sync")
            return SyncResult(SyncStatus.NOT_FOUND, content_id, operation)

        tags = item.all_tags()

        try:
            with self.graph.session() as session:
                session.run(
                    MERGE_CONTENT,
                    {"id": item.id, "title": item.title, "type": item.type, "userId": item.user_id},
                )
                session.run(DELETE_TAG_EDGES, {"id": item.id})
                if tags:
                    session.run(MERGE_TAG_EDGES, {"tags": tags, "id": item.id})
        except (GraphUnavailableError, GraphStoreError) as e:
            return self._failed(operation, content_id, e)

        log.debug(f"{operation}({content_id}): synced with {len(tags)} tags")
        return SyncResult(SyncStatus.SYNCED, content_id, operation)

    def delete_content(self, content_id: str) -> SyncResult:
        """Delete a Content node with all its tag and similarity edges.

        Tag nodes are left in place; other content may still use them.
        """
        operation = "delete_content"
        if not self.enabled:
            return SyncResult(SyncStatus.UNAVAILABLE, content_id, operation)

        try:
            with self.graph.session() as session:
                session.run(DETACH_DELETE_CONTENT, {"id": content_id})
        except (GraphUnavailableError, GraphStoreError) as e:
            return self._failed(operation, content_id, e)

        log.debug(f"{operation}({content_id}): removed")
        return SyncResult(SyncStatus.SYNCED, content_id, operation)

    def sync_similarity_edges(self, content_id: str, user_id: str) -> SyncResult:
        """Recompute a node's SIMILAR_TO edges from the store of record.

        All existing similarity edges touching the node are removed before the
        fresh set is written, so a neighbour that fell below the threshold
        loses its edge even when no neighbour qualifies any more.

        Args:
            content_id: Content item whose embedding changed
            user_id: Owner; neighbours are restricted to this user's content

        Returns:
            SyncResult; NOT_FOUND when the embedding does not exist yet
        """
        operation = "sync_similarity_edges"
        if not self.enabled:
            return SyncResult(SyncStatus.UNAVAILABLE, content_id, operation)

        vector = self.source.get_embedding(content_id)
        if vector is None:
            log.debug(f"{operation}({content_id}): no embedding yet")
            return SyncResult(SyncStatus.NOT_FOUND, content_id, operation)

        neighbours = self.source.find_similar(
            content_id,
            user_id,
            vector,
            min_score=self.similarity_threshold,
            limit=self.neighbor_limit,
        )
        edges = []
        for neighbour in neighbours:
            source_id, target_id = sorted((content_id, neighbour.content_id))
            edges.append({"source": source_id, "target": target_id, "score": neighbour.score})

        try:
            with self.graph.session() as session:
                session.run(DELETE_SIMILARITY_EDGES, {"id": content_id})
                if edges:
                    session.run(CREATE_SIMILARITY_EDGES, {"userId": user_id, "edges": edges})
        except (GraphUnavailableError, GraphStoreError) as e:
            return self._failed(operation, content_id, e)

        log.debug(f"{operation}({content_id}): {len(edges)} edges")
        return SyncResult(SyncStatus.SYNCED, content_id, operation)

    def sync_content(self, content_id: str) -> list[SyncResult]:
        """Upsert a node then refresh its similarity edges.

        Convenience for write paths that change both the row and its embedding.
        """
        if not self.enabled:
            return [self.upsert_content(content_id)]

        item = self.source.get_content(content_id)
        results = [self._upsert(content_id, item)]
        if item is not None:
            results.append(self.sync_similarity_edges(content_id, item.user_id))
        return results
