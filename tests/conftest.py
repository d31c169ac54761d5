"""Shared pytest fixtures for contentgraph tests."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any
from unittest.mock import MagicMock

import pytest

from contentgraph.db.graph_protocol import QueryResult
from contentgraph.models import ContentRecord, SimilarNeighbor, SimilarPair


def rows(header: list[str], *values: list[Any]) -> QueryResult:
    """Build a QueryResult the way Neo4jSession.run returns it."""
    return QueryResult(result_set=[list(v) for v in values], header=header)


class FakeGraph:
    """Graph backend that hands out one MagicMock session and counts its lifecycle."""

    backend_name = "fake"

    def __init__(self):
        self.session_mock = MagicMock(name="session")
        self.session_mock.run.return_value = QueryResult(result_set=[])
        self.opened = 0
        self.released = 0
        self.closed = False

    @contextmanager
    def session(self):
        self.opened += 1
        try:
            yield self.session_mock
        finally:
            self.released += 1

    def query(self, cypher, params=None):
        with self.session() as session:
            return session.run(cypher, params)

    def health_check(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True

    def init_schema(self) -> None:
        pass

    @property
    def calls(self) -> list[tuple[str, dict]]:
        """(cypher, params) for every statement run so far."""
        return [(c.args[0], c.args[1] if len(c.args) > 1 else None) for c in self.session_mock.run.call_args_list]

    def statements(self) -> list[str]:
        return [cypher for cypher, _ in self.calls]


class FakeSource:
    """In-memory store of record with scripted similarity results.

    find_similar and similar_pairs honour min_score, exclusion and limit so the
    engines' arguments are observable through the results.
    """

    def __init__(self):
        self.content: dict[str, ContentRecord] = {}
        self.embeddings: dict[str, list[float]] = {}
        self.neighbors: dict[str, list[SimilarNeighbor]] = {}
        self.pairs: list[SimilarPair] = []
        self.find_similar_calls: list[dict[str, Any]] = []
        self.similar_pairs_calls: list[dict[str, Any]] = []

    def add(self, record: ContentRecord, vector: list[float] | None = None) -> ContentRecord:
        self.content[record.id] = record
        if vector is not None:
            self.embeddings[record.id] = vector
        return record

    def get_content(self, content_id: str) -> ContentRecord | None:
        return self.content.get(content_id)

    def get_user_content(self, user_id: str) -> list[ContentRecord]:
        return sorted((c for c in self.content.values() if c.user_id == user_id), key=lambda c: c.id)

    def get_embedding(self, content_id: str) -> list[float] | None:
        return self.embeddings.get(content_id)

    def find_similar(self, content_id, user_id, vector, min_score, limit):
        self.find_similar_calls.append(
            {"content_id": content_id, "user_id": user_id, "min_score": min_score, "limit": limit}
        )
        found = [
            n for n in self.neighbors.get(content_id, [])
            if n.content_id != content_id and n.score >= min_score
        ]
        return sorted(found, key=lambda n: -n.score)[:limit]

    def similar_pairs(self, user_id, min_score, limit):
        self.similar_pairs_calls.append({"user_id": user_id, "min_score": min_score, "limit": limit})
        found = [p for p in self.pairs if p.score >= min_score]
        return sorted(found, key=lambda p: -p.score)[:limit]

    def count_rows(self) -> dict[str, int]:
        return {"content": len(self.content), "embeddings": len(self.embeddings)}


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Point every contentgraph setting at tmp_path and clear graph credentials."""
    for key in (
        "NEO4J_URI", "NEO4J_USER", "NEO4J_PASSWORD",
        "CONTENTGRAPH_NEO4J_URI", "CONTENTGRAPH_NEO4J_USER", "CONTENTGRAPH_NEO4J_PASSWORD",
        "CONTENTGRAPH_SIMILARITY_THRESHOLD",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CONTENTGRAPH_DATA_DIR", str(tmp_path / "data"))
    return tmp_path
