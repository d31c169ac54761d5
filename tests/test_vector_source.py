"""Tests for the LanceDB store of record and its similarity scans."""

import pytest

from contentgraph.config import Config
from contentgraph.db.vector_source import LanceVectorSource
from contentgraph.models import ContentRecord

# Cosine similarities used below:
#   a.b ~ 0.994, c.d = 0.8, b.d ~ 0.685, a.d = 0.6, a.c = 0, b.c ~ 0.110
VECTORS = {
    "a": [1.0, 0.0, 0.0],
    "b": [0.9, 0.1, 0.0],
    "c": [0.0, 1.0, 0.0],
    "d": [0.6, 0.8, 0.0],
}


@pytest.fixture
def source(isolated_env):
    config = Config(data_dir=isolated_env / "store", embedding_dim=3)
    store = LanceVectorSource(config)
    for content_id, vector in VECTORS.items():
        store.upsert_content(ContentRecord(content_id, "u1", f"Item {content_id}", "note", tags=[content_id]))
        store.upsert_embedding(content_id, "u1", vector)
    return store


class TestContentRows:
    def test_get_content(self, source):
        item = source.get_content("a")
        assert item == ContentRecord("a", "u1", "Item a", "note", tags=["a"], auto_tags=[])

    def test_missing_content(self, source):
        assert source.get_content("nope") is None
        assert source.get_embedding("nope") is None

    def test_upsert_replaces_row(self, source):
        source.upsert_content(ContentRecord("a", "u1", "Renamed", "link", tags=["x"], auto_tags=["y"]))
        item = source.get_content("a")
        assert (item.title, item.type, item.all_tags()) == ("Renamed", "link", ["x", "y"])
        assert source.count_rows()["content"] == 4

    def test_user_content_is_partitioned(self, source):
        source.upsert_content(ContentRecord("other", "u2", "Not mine", "note"))
        assert [c.id for c in source.get_user_content("u1")] == ["a", "b", "c", "d"]
        assert [c.id for c in source.get_user_content("u2")] == ["other"]

    def test_quotes_in_ids(self, source):
        source.upsert_content(ContentRecord("o'neil", "u1", "Quoted", "note"))
        source.delete_content("o'neil")
        assert source.get_content("o'neil") is None

    def test_delete_removes_row_and_embedding(self, source):
        source.delete_content("a")
        assert source.get_content("a") is None
        assert source.get_embedding("a") is None

    def test_embedding_dimension_is_checked(self, source):
        with pytest.raises(ValueError, match="dimensions"):
            source.upsert_embedding("a", "u1", [1.0, 0.0])


class TestFindSimilar:
    def test_neighbours_ordered_and_thresholded(self, source):
        neighbours = source.find_similar("a", "u1", VECTORS["a"], min_score=0.5, limit=10)
        assert [n.content_id for n in neighbours] == ["b", "d"]
        assert neighbours[0].score == pytest.approx(0.9939, abs=1e-3)
        assert neighbours[1].score == pytest.approx(0.6, abs=1e-3)

    def test_excludes_self(self, source):
        neighbours = source.find_similar("a", "u1", VECTORS["a"], min_score=0.0, limit=10)
        assert "a" not in [n.content_id for n in neighbours]

    def test_limit(self, source):
        neighbours = source.find_similar("a", "u1", VECTORS["a"], min_score=0.0, limit=1)
        assert [n.content_id for n in neighbours] == ["b"]

    def test_threshold_is_inclusive(self, source):
        neighbours = source.find_similar("c", "u1", VECTORS["c"], min_score=0.8 - 1e-6, limit=10)
        assert [n.content_id for n in neighbours] == ["d"]

    def test_other_users_are_invisible(self, source):
        source.upsert_content(ContentRecord("twin", "u2", "Twin", "note"))
        source.upsert_embedding("twin", "u2", VECTORS["a"])
        neighbours = source.find_similar("a", "u1", VECTORS["a"], min_score=0.5, limit=10)
        assert "twin" not in [n.content_id for n in neighbours]

    def test_zero_vectors_produce_no_scores(self, source):
        source.upsert_content(ContentRecord("z", "u1", "Empty", "note"))
        source.upsert_embedding("z", "u1", [0.0, 0.0, 0.0])

        assert source.find_similar("z", "u1", [0.0, 0.0, 0.0], min_score=0.0, limit=10) == []
        neighbours = source.find_similar("a", "u1", VECTORS["a"], min_score=-1.0, limit=10)
        assert "z" not in [n.content_id for n in neighbours]


class TestSimilarPairs:
    def test_pairs_are_canonical_and_best_first(self, source):
        pairs = source.similar_pairs("u1", min_score=0.5, limit=10)
        assert [(p.source, p.target) for p in pairs] == [("a", "b"), ("c", "d"), ("b", "d"), ("a", "d")]
        assert all(p.source < p.target for p in pairs)

    def test_cap_keeps_highest_scores(self, source):
        pairs = source.similar_pairs("u1", min_score=0.3, limit=2)
        assert [(p.source, p.target) for p in pairs] == [("a", "b"), ("c", "d")]

    def test_single_item_has_no_pairs(self, source):
        source.upsert_content(ContentRecord("solo", "u3", "Solo", "note"))
        source.upsert_embedding("solo", "u3", [1.0, 0.0, 0.0])
        assert source.similar_pairs("u3", min_score=0.0, limit=10) == []


class TestFilteredReads:
    @pytest.fixture
    def no_table_scans(self, source, monkeypatch):
        def refuse():
            raise AssertionError("full table materialised")

        monkeypatch.setattr(source.content_table, "to_arrow", refuse)
        monkeypatch.setattr(source.embedding_table, "to_arrow", refuse)
        return source

    def test_point_reads_use_filters(self, no_table_scans):
        assert no_table_scans.get_content("b").title == "Item b"
        assert no_table_scans.get_embedding("b") == pytest.approx(VECTORS["b"], abs=1e-6)

    def test_user_reads_use_filters(self, no_table_scans):
        assert [c.id for c in no_table_scans.get_user_content("u1")] == ["a", "b", "c", "d"]

    def test_top_k_is_a_vector_search(self, no_table_scans):
        neighbours = no_table_scans.find_similar("d", "u1", VECTORS["d"], min_score=0.5, limit=2)
        assert [n.content_id for n in neighbours] == ["c", "b"]

    def test_zero_limit(self, source):
        assert source.find_similar("a", "u1", VECTORS["a"], min_score=0.0, limit=0) == []
