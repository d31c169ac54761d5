"""Configuration for contentgraph.

Simple dataclass-based configuration with sensible defaults.
Override via environment variables with CONTENTGRAPH_ prefix.

Graph store settings also honour the unprefixed NEO4J_URI, NEO4J_USER and
NEO4J_PASSWORD variables. When any of the three is missing the graph mirror
runs in no-op mode.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from contentgraph.log_config import get_logger

log = get_logger("config")

# Look for .env in package directory and parent
_pkg_dir = Path(__file__).parent.parent
_env_loaded = load_dotenv(_pkg_dir / ".env") or load_dotenv(_pkg_dir.parent / ".env")
log.debug(f"Loaded .env file: {_env_loaded}")


def _get_env(key: str, default: str) -> str:
    """Get environment variable with CONTENTGRAPH_ prefix."""
    return os.getenv(f"CONTENTGRAPH_{key}", default)


def _get_env_bool(key: str, default: bool) -> bool:
    """Get boolean environment variable."""
    val = os.getenv(f"CONTENTGRAPH_{key}")
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


@dataclass
class Config:
    """contentgraph configuration.

    Attributes:
        data_dir: Directory for the LanceDB store of record (default: ~/.contentgraph)
        neo4j_uri: Bolt URI of the graph store (empty disables the mirror)
        neo4j_user: Graph store username
        neo4j_password: Graph store password
        neo4j_database: Graph store database name (default: neo4j)
        connection_timeout: Driver connection timeout in seconds
        embedding_dim: Embedding dimension of the vector table (default: 1536)
        similarity_threshold: Minimum cosine similarity for a SIMILAR_TO edge (default: 0.3)
        similarity_neighbor_limit: Max neighbours per incremental similarity sync (default: 50)
        full_sync_edge_limit: Max similarity edges created by a full resync (default: 500)
        default_min_similarity: Default threshold for graph views (default: 0.5)
        default_graph_limit: Default edge cap for graph views (default: 100)
        max_neighborhood_hops: Upper clamp for neighbourhood expansion (default: 5)
    """

    data_dir: Path = field(
        default_factory=lambda: Path(_get_env("DATA_DIR", str(Path.home() / ".contentgraph")))
    )

    # Neo4j connection settings
    neo4j_uri: str = field(
        default_factory=lambda: _get_env("NEO4J_URI", os.getenv("NEO4J_URI", ""))
    )
    neo4j_user: str = field(
        default_factory=lambda: _get_env("NEO4J_USER", os.getenv("NEO4J_USER", ""))
    )
    neo4j_password: str = field(
        default_factory=lambda: _get_env("NEO4J_PASSWORD", os.getenv("NEO4J_PASSWORD", ""))
    )
    neo4j_database: str = field(
        default_factory=lambda: _get_env("NEO4J_DATABASE", "neo4j")
    )
    connection_timeout: float = field(
        default_factory=lambda: float(_get_env("NEO4J_TIMEOUT", "30"))
    )
    verify_on_connect: bool = field(
        default_factory=lambda: _get_env_bool("NEO4J_VERIFY", True)
    )

    # Vector store settings
    embedding_dim: int = field(
        default_factory=lambda: int(_get_env("EMBEDDING_DIM", "1536"))
    )

    # Similarity edge derivation
    similarity_threshold: float = field(
        default_factory=lambda: float(_get_env("SIMILARITY_THRESHOLD", "0.3"))
    )
    similarity_neighbor_limit: int = field(
        default_factory=lambda: int(_get_env("SIMILARITY_NEIGHBOR_LIMIT", "50"))
    )
    full_sync_edge_limit: int = field(
        default_factory=lambda: int(_get_env("FULL_SYNC_EDGE_LIMIT", "500"))
    )

    # Query defaults
    default_min_similarity: float = field(
        default_factory=lambda: float(_get_env("MIN_SIMILARITY", "0.5"))
    )
    default_graph_limit: int = field(
        default_factory=lambda: int(_get_env("GRAPH_LIMIT", "100"))
    )
    max_neighborhood_hops: int = field(
        default_factory=lambda: int(_get_env("MAX_HOPS", "5"))
    )

    @property
    def graph_configured(self) -> bool:
        """True when URI, user and password for the graph store are all set."""
        return bool(self.neo4j_uri and self.neo4j_user and self.neo4j_password)

    def __post_init__(self):
        """Ensure paths are Path objects and directories exist."""
        log.trace("Initializing Config")

        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)

        if not 0.0 < self.similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be in (0, 1], got {self.similarity_threshold}"
            )

        # Create data directory if it doesn't exist
        self.data_dir.mkdir(parents=True, exist_ok=True)

        log.debug(f"data_dir={self.data_dir}")
        log.debug(f"neo4j_uri={self.neo4j_uri or 'NOT SET'}, database={self.neo4j_database}")
        log.debug(
            f"similarity_threshold={self.similarity_threshold}, "
            f"neighbor_limit={self.similarity_neighbor_limit}, "
            f"full_sync_edge_limit={self.full_sync_edge_limit}"
        )
        log.info(f"Config initialized: data_dir={self.data_dir}, graph_configured={self.graph_configured}")

    @property
    def vectors_dir(self) -> Path:
        """Directory for LanceDB vector database."""
        return self.data_dir / "vectors"
