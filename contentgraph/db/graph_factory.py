"""Graph client factory.

The presence of Neo4j connection settings toggles the whole graph mirror:

- URI, user and password all set: build a Neo4jBackend
- anything missing: return None, and every sync/query becomes a no-op

Environment variables (read through Config):
- CONTENTGRAPH_NEO4J_URI / NEO4J_URI
- CONTENTGRAPH_NEO4J_USER / NEO4J_USER
- CONTENTGRAPH_NEO4J_PASSWORD / NEO4J_PASSWORD
- CONTENTGRAPH_NEO4J_DATABASE: Database name (default: neo4j)
- CONTENTGRAPH_NEO4J_VERIFY: Verify connectivity on connect (default: true)
"""

from typing import Any

from contentgraph.config import Config
from contentgraph.db.graph_protocol import GraphBackend
from contentgraph.errors import GraphStoreError, GraphUnavailableError
from contentgraph.log_config import get_logger

log = get_logger("graph_factory")


def create_graph_client(config: Config, init_schema: bool = False) -> GraphBackend | None:
    """Create the graph client for a configuration.

    Args:
        config: contentgraph configuration
        init_schema: Create constraints and indexes after connecting

    Returns:
        Connected backend, or None when the graph store is not configured or
        cannot be reached
    """
    if not config.graph_configured:
        log.debug("Neo4j not configured, graph mirror disabled")
        return None

    from contentgraph.db.neo4j_backend import Neo4jBackend

    try:
        backend = Neo4jBackend(
            uri=config.neo4j_uri,
            username=config.neo4j_user,
            password=config.neo4j_password,
            database=config.neo4j_database,
            connection_timeout=config.connection_timeout,
            verify=config.verify_on_connect,
        )
    except GraphUnavailableError as e:
        log.warning(f"Neo4j configured but unavailable: {e}")
        return None

    if init_schema:
        try:
            backend.init_schema()
        except GraphUnavailableError as e:
            log.warning(f"Neo4j went away during schema init: {e}")
            backend.close()
            return None
        except GraphStoreError as e:
            log.warning(f"Schema init failed, continuing without constraints: {e}")

    return backend


def get_backend_info(config: Config) -> dict[str, Any]:
    """Describe the configured graph store without connecting.

    Returns:
        Dict with configured flag, uri and database
    """
    return {
        "configured": config.graph_configured,
        "uri": config.neo4j_uri or None,
        "database": config.neo4j_database,
        "user": config.neo4j_user or None,
    }
