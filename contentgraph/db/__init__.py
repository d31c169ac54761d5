"""Store access for contentgraph.

This package talks to both stores:
- Neo4j graph mirror (Content, Tag, TAGGED_WITH, SIMILAR_TO)
- LanceDB store of record (content rows and embedding vectors)

Module Structure:
- graph_protocol.py: Protocol for graph backends and sessions
- graph_factory.py: Builds the Neo4j client from Config, or None when unconfigured
- neo4j_backend.py: Neo4j implementation over the Bolt driver
- graph_queries.py: User-scoped read queries
- vector_source.py: LanceDB tables and cosine similarity

Example:
    from contentgraph.config import Config
    from contentgraph.db import GraphQueries, create_graph_client

    config = Config()
    queries = GraphQueries(create_graph_client(config))
    data = queries.get_full_graph("user-1")
"""

from contentgraph.db.graph_factory import create_graph_client, get_backend_info
from contentgraph.db.graph_protocol import BaseGraphBackend, GraphBackend, GraphSession, QueryResult
from contentgraph.db.graph_queries import GraphQueries
from contentgraph.db.vector_source import LanceVectorSource, VectorSimilaritySource

__all__ = [
    "BaseGraphBackend",
    "GraphBackend",
    "GraphQueries",
    "GraphSession",
    "LanceVectorSource",
    "QueryResult",
    "VectorSimilaritySource",
    "create_graph_client",
    "get_backend_info",
]
