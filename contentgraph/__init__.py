"""contentgraph - graph mirror of content, tags and similarity.

Keeps a Neo4j view of a user's content items, their tags and
content-to-content similarity edges in step with a LanceDB store of record:
- Incremental and full sync engines
- User-scoped graph queries
- networkx analytics (communities, centrality, layout)
"""

__version__ = "0.1.0"

from contentgraph.config import Config
from contentgraph.models import FullSyncResult, GraphData, GraphEdge, GraphNode, SyncResult, SyncStatus
from contentgraph.resync import FullResync
from contentgraph.sync import IncrementalSync

__all__ = [
    "Config",
    "FullResync",
    "FullSyncResult",
    "GraphData",
    "GraphEdge",
    "GraphNode",
    "IncrementalSync",
    "SyncResult",
    "SyncStatus",
]
