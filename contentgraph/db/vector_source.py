"""Store of record for content rows and embedding vectors.

LanceDB holds two tables:
- content: id, user_id, title, type, tags, auto_tags
- embeddings: content_id, user_id, vector (fixed-size float32)

Similarity is cosine similarity expressed as 1 - cosine_distance. Vectors
that cannot produce a numeric score (zero norm, NaN components) are excluded
from every similarity result rather than propagated.
"""

import threading
from typing import Any, Protocol

import lancedb
import numpy as np
import pyarrow as pa

from contentgraph.config import Config
from contentgraph.log_config import get_logger
from contentgraph.models import ContentRecord, SimilarNeighbor, SimilarPair

log = get_logger("vector_source")


class VectorSimilaritySource(Protocol):
    """Read surface the sync engines need from the store of record."""

    def get_content(self, content_id: str) -> ContentRecord | None:
        """Fetch one content row by id."""
        ...

    def get_user_content(self, user_id: str) -> list[ContentRecord]:
        """Fetch every content row owned by a user."""
        ...

    def get_embedding(self, content_id: str) -> list[float] | None:
        """Fetch the embedding vector for a content item."""
        ...

    def find_similar(
        self,
        content_id: str,
        user_id: str,
        vector: list[float],
        min_score: float,
        limit: int,
    ) -> list[SimilarNeighbor]:
        """Top-K same-user neighbours of a vector, excluding content_id, score >= min_score."""
        ...

    def similar_pairs(self, user_id: str, min_score: float, limit: int) -> list[SimilarPair]:
        """All same-user pairs with score >= min_score, best first, capped at limit."""
        ...


def _quote(value: str) -> str:
    """Quote a string literal for a LanceDB filter expression."""
    return "'" + value.replace("'", "''") + "'"


def _normalize_rows(vectors: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """L2-normalize rows, returning the normalized matrix and a validity mask.

    Rows with zero norm or non-finite components are marked invalid.
    """
    with np.errstate(invalid="ignore", divide="ignore"):
        norms = np.linalg.norm(vectors, axis=1)
        valid = np.isfinite(norms) & (norms > 0)
        normalized = np.zeros_like(vectors)
        normalized[valid] = vectors[valid] / norms[valid, None]
    return normalized, valid


class LanceVectorSource:
    """LanceDB implementation of the store of record.

    Lookups are LanceDB filter queries. find_similar is a cosine vector search
    restricted to the owner's rows; similar_pairs scores every pair of the
    owner's vectors with numpy.
    """

    CONTENT_TABLE_NAME = "content"
    EMBEDDING_TABLE_NAME = "embeddings"

    def __init__(self, config: Config, embedding_dim: int | None = None):
        """Open (or create) the LanceDB tables.

        Args:
            config: contentgraph configuration (uses vectors_dir)
            embedding_dim: Override for config.embedding_dim
        """
        self.config = config
        self.embedding_dim = embedding_dim or config.embedding_dim
        # LanceDB not thread-safe for concurrent writes
        self._write_lock = threading.RLock()

        log.debug(f"Initializing LanceDB at {config.vectors_dir}")
        self.lance_db = lancedb.connect(str(config.vectors_dir))
        self._init_tables()
        log.info(f"LanceDB initialized at {config.vectors_dir}")

    def _init_tables(self) -> None:
        """Create tables if they do not exist."""
        existing = set(self.lance_db.table_names())

        if self.CONTENT_TABLE_NAME not in existing:
            schema = pa.schema([
                pa.field("id", pa.string()),
                pa.field("user_id", pa.string()),
                pa.field("title", pa.string()),
                pa.field("type", pa.string()),
                pa.field("tags", pa.list_(pa.string())),
                pa.field("auto_tags", pa.list_(pa.string())),
            ])
            self.lance_db.create_table(self.CONTENT_TABLE_NAME, schema=schema)
            log.info(f"LanceDB table '{self.CONTENT_TABLE_NAME}' created")

        if self.EMBEDDING_TABLE_NAME not in existing:
            log.debug(f"Creating embeddings table with embedding_dim={self.embedding_dim}")
            schema = pa.schema([
                pa.field("content_id", pa.string()),
                pa.field("user_id", pa.string()),
                pa.field("vector", pa.list_(pa.float32(), self.embedding_dim)),
            ])
            self.lance_db.create_table(self.EMBEDDING_TABLE_NAME, schema=schema)
            log.info(f"LanceDB table '{self.EMBEDDING_TABLE_NAME}' created")

        self.content_table = self.lance_db.open_table(self.CONTENT_TABLE_NAME)
        self.embedding_table = self.lance_db.open_table(self.EMBEDDING_TABLE_NAME)

    # =========================================================================
    # Writes (used by the calling application)
    # =========================================================================

    def upsert_content(self, record: ContentRecord) -> None:
        """Insert or replace a content row.

        LanceDB lacks native upsert, so delete by id then add.
        """
        with self._write_lock:
            self.content_table.delete(f"id = {_quote(record.id)}")
            self.content_table.add([{
                "id": record.id,
                "user_id": record.user_id,
                "title": record.title,
                "type": record.type,
                "tags": list(record.tags or []),
                "auto_tags": list(record.auto_tags or []),
            }])
        log.trace(f"Upserted content {record.id}")

    def upsert_embedding(self, content_id: str, user_id: str, vector: list[float]) -> None:
        """Insert or replace the embedding for a content item."""
        if len(vector) != self.embedding_dim:
            raise ValueError(
                f"Embedding has {len(vector)} dimensions, table expects {self.embedding_dim}"
            )
        with self._write_lock:
            self.embedding_table.delete(f"content_id = {_quote(content_id)}")
            self.embedding_table.add([{
                "content_id": content_id,
                "user_id": user_id,
                "vector": [float(v) for v in vector],
            }])
        log.trace(f"Upserted embedding for {content_id}")

    def delete_content(self, content_id: str) -> None:
        """Delete a content row and its embedding."""
        with self._write_lock:
            self.content_table.delete(f"id = {_quote(content_id)}")
            self.embedding_table.delete(f"content_id = {_quote(content_id)}")
        log.trace(f"Deleted content {content_id}")

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def _to_record(row: dict[str, Any]) -> ContentRecord:
        return ContentRecord(
            id=row["id"],
            user_id=row["user_id"],
            title=row.get("title") or "",
            type=row.get("type") or "note",
            tags=list(row.get("tags") or []),
            auto_tags=list(row.get("auto_tags") or []),
        )

    def _select(self, table: Any, predicate: str, limit: int | None = None) -> list[dict[str, Any]]:
        """Rows matching a LanceDB filter; all of them when limit is None."""
        if limit is None:
            limit = table.count_rows(predicate)
            if limit == 0:
                return []
        return table.search().where(predicate).limit(limit).to_list()

    def get_content(self, content_id: str) -> ContentRecord | None:
        rows = self._select(self.content_table, f"id = {_quote(content_id)}", limit=1)
        return self._to_record(rows[0]) if rows else None

    def get_user_content(self, user_id: str) -> list[ContentRecord]:
        rows = self._select(self.content_table, f"user_id = {_quote(user_id)}")
        return [self._to_record(row) for row in sorted(rows, key=lambda r: r["id"])]

    def get_embedding(self, content_id: str) -> list[float] | None:
        rows = self._select(self.embedding_table, f"content_id = {_quote(content_id)}", limit=1)
        if not rows:
            return None
        return [float(v) for v in rows[0]["vector"]]

    def _user_matrix(self, user_id: str) -> tuple[list[str], np.ndarray]:
        """Ids and stacked vectors for a user's embeddings, ordered by id."""
        rows = sorted(
            self._select(self.embedding_table, f"user_id = {_quote(user_id)}"),
            key=lambda r: r["content_id"],
        )
        if not rows:
            return [], np.empty((0, self.embedding_dim), dtype=np.float64)
        ids = [row["content_id"] for row in rows]
        matrix = np.asarray([row["vector"] for row in rows], dtype=np.float64)
        return ids, matrix

    def find_similar(
        self,
        content_id: str,
        user_id: str,
        vector: list[float],
        min_score: float,
        limit: int,
    ) -> list[SimilarNeighbor]:
        """Top-K nearest same-user neighbours by cosine similarity.

        Args:
            content_id: Item to exclude from the results
            user_id: Owner whose content is searched
            vector: Query embedding
            min_score: Minimum similarity (inclusive)
            limit: Maximum neighbours returned

        Returns:
            Neighbours ordered by descending similarity
        """
        query = np.asarray(vector, dtype=np.float64).reshape(1, -1)
        _, query_valid = _normalize_rows(query)
        if not query_valid[0]:
            log.debug(f"Embedding for {content_id} has no direction, no neighbours")
            return []

        predicate = f"user_id = {_quote(user_id)} AND content_id != {_quote(content_id)}"
        # Avoid LanceDB search-on-empty errors
        if limit <= 0 or self.embedding_table.count_rows(predicate) == 0:
            return []

        rows = (
            self.embedding_table.search(query[0].astype(np.float32), vector_column_name="vector")
            .distance_type("cosine")
            .where(predicate, prefilter=True)
            .limit(limit)
            .to_list()
        )
        if not rows:
            return []

        # Stored zero vectors come back with a meaningless distance
        _, stored_valid = _normalize_rows(np.asarray([row["vector"] for row in rows], dtype=np.float64))
        scores = np.clip(1.0 - np.asarray([row["_distance"] for row in rows], dtype=np.float64), -1.0, 1.0)

        neighbours = [
            SimilarNeighbor(content_id=row["content_id"], score=float(score))
            for row, score, ok in zip(rows, scores, stored_valid)
            if ok and np.isfinite(score) and score >= min_score
        ]
        neighbours.sort(key=lambda n: (-n.score, n.content_id))
        log.debug(f"find_similar({content_id}): {len(neighbours)} neighbours >= {min_score}")
        return neighbours

    def similar_pairs(self, user_id: str, min_score: float, limit: int) -> list[SimilarPair]:
        """All pairs among a user's embeddings at or above min_score.

        Returns:
            Pairs with source < target, ordered by descending similarity
        """
        ids, matrix = self._user_matrix(user_id)
        if len(ids) < 2:
            return []

        normalized, valid = _normalize_rows(matrix)
        scores = np.clip(normalized @ normalized.T, -1.0, 1.0)

        # ids are sorted, so i < j gives source < target
        rows, cols = np.triu_indices(len(ids), k=1)
        pair_scores = scores[rows, cols]
        keep = valid[rows] & valid[cols] & np.isfinite(pair_scores) & (pair_scores >= min_score)

        pairs = [
            SimilarPair(source=ids[i], target=ids[j], score=float(s))
            for i, j, s in zip(rows[keep], cols[keep], pair_scores[keep])
        ]
        pairs.sort(key=lambda p: (-p.score, p.source, p.target))
        log.debug(f"similar_pairs({user_id}): {len(pairs)} pairs >= {min_score}, cap {limit}")
        return pairs[:limit]

    def count_rows(self) -> dict[str, int]:
        """Row counts for status reporting."""
        return {
            "content": self.content_table.count_rows(),
            "embeddings": self.embedding_table.count_rows(),
        }
