"""Service layer for the graph API server.

Provides lazy-initialized service instances for API endpoints. Services are
singletons that persist for the application lifetime; tests replace them
through FastAPI dependency overrides or clear_service_caches().
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import TYPE_CHECKING

from contentgraph.backend.config import get_config
from contentgraph.config import Config
from contentgraph.db.graph_protocol import GraphBackend
from contentgraph.db.graph_queries import GraphQueries
from contentgraph.db.vector_source import VectorSimilaritySource
from contentgraph.log_config import get_logger
from contentgraph.models import GraphData, GraphEdge, GraphNode
from contentgraph.resync import FullResync
from contentgraph.sync import IncrementalSync

if TYPE_CHECKING:
    from contentgraph.db.vector_source import LanceVectorSource

log = get_logger("backend.services")


class SyncInProgressError(Exception):
    """A full resync for this user is already running."""

    def __init__(self, user_id: str):
        super().__init__(f"Full sync already running for user {user_id}")
        self.user_id = user_id


class InFlightGuard:
    """Per-key mutual exclusion that rejects instead of waiting.

    Used to keep two full resyncs for the same user from running at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: set[str] = set()

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._active

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the key for the duration of the block.

        Raises:
            SyncInProgressError: The key is already held
        """
        with self._lock:
            if key in self._active:
                raise SyncInProgressError(key)
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)


class GraphService:
    """Bundles sync engines and queries over one pair of stores.

    Attributes:
        config: contentgraph configuration
        graph: Graph backend, or None when the mirror is disabled
        source: Store of record
    """

    def __init__(self, config: Config, graph: GraphBackend | None, source: VectorSimilaritySource):
        self.config = config
        self.graph = graph
        self.source = source
        self.incremental = IncrementalSync(
            graph,
            source,
            similarity_threshold=config.similarity_threshold,
            neighbor_limit=config.similarity_neighbor_limit,
        )
        self.resync = FullResync(
            graph,
            source,
            similarity_threshold=config.similarity_threshold,
            max_edges=config.full_sync_edge_limit,
        )
        self.queries = GraphQueries(graph, max_hops=config.max_neighborhood_hops)
        self.guard = InFlightGuard()

    @property
    def graph_enabled(self) -> bool:
        return self.graph is not None

    def full_sync(self, user_id: str):
        """Run a full resync while holding the user's in-flight slot."""
        with self.guard.hold(user_id):
            return self.resync.full_sync(user_id)

    def get_graph(
        self,
        user_id: str,
        min_similarity: float | None = None,
        limit: int | None = None,
    ) -> tuple[GraphData, str]:
        """Full graph from the mirror, or from the store of record as a fallback.

        Returns:
            Tuple of (GraphData, origin) where origin is "graph" or "source"
        """
        if min_similarity is None:
            min_similarity = self.config.default_min_similarity
        if limit is None:
            limit = self.config.default_graph_limit

        data = self.queries.get_full_graph(user_id, min_similarity=min_similarity, limit=limit)
        if data is not None:
            return data, "graph"

        log.info(f"Graph store unavailable, building graph for {user_id} from vector source")
        return self.graph_from_source(user_id, min_similarity, limit), "source"

    def graph_from_source(self, user_id: str, min_similarity: float, limit: int) -> GraphData:
        """Build the thresholded, capped graph directly from embeddings."""
        pairs = self.source.similar_pairs(user_id, min_score=min_similarity, limit=limit)
        if not pairs:
            return GraphData.empty()

        data = GraphData(edges=[GraphEdge.canonical(p.source, p.target, p.score) for p in pairs])
        wanted = set(data.node_ids())
        data.nodes = [
            GraphNode(id=item.id, title=item.title, type=item.type, tags=item.all_tags())
            for item in self.source.get_user_content(user_id)
            if item.id in wanted
        ]
        return data

    def close(self) -> None:
        if self.graph is not None:
            self.graph.close()


@lru_cache(maxsize=1)
def get_contentgraph_config() -> Config:
    """Get the contentgraph Config instance (cached)."""
    return Config()


@lru_cache(maxsize=1)
def get_vector_source() -> "LanceVectorSource":
    """Get the LanceDB store of record (cached)."""
    from contentgraph.db.vector_source import LanceVectorSource

    log.info("Initializing LanceVectorSource")
    return LanceVectorSource(get_contentgraph_config())


@lru_cache(maxsize=1)
def get_graph_backend() -> GraphBackend | None:
    """Get the Neo4j backend (cached); None when not configured or unreachable."""
    from contentgraph.db.graph_factory import create_graph_client

    return create_graph_client(get_contentgraph_config(), init_schema=get_config().init_schema)


@lru_cache(maxsize=1)
def get_graph_service() -> GraphService:
    """Get the GraphService instance (cached)."""
    log.info("Initializing GraphService")
    return GraphService(get_contentgraph_config(), get_graph_backend(), get_vector_source())


def clear_service_caches() -> None:
    """Clear all service caches (for testing)."""
    get_contentgraph_config.cache_clear()
    get_vector_source.cache_clear()
    get_graph_backend.cache_clear()
    get_graph_service.cache_clear()
    log.info("Service caches cleared")


def shutdown_services() -> None:
    """Close the graph driver if it was ever opened, then clear caches."""
    log.info("Shutting down services...")

    if get_graph_service.cache_info().currsize > 0:
        try:
            get_graph_service().close()
            log.info("Graph backend closed")
        except Exception as e:
            log.error(f"Error closing graph backend: {e}")

    clear_service_caches()
    log.info("Services shutdown complete")
