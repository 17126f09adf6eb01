"""Tests for the FastAPI HTTP server at server/api.py.

Exercises all endpoints: /health, /graph, /graph/counts, /corpus/stats,
/corpus/tfidf, /corpus/similar.
"""

import sys
from pathlib import Path

import pytest

# Add project root and sdk to path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))

try:
    from fastapi.testclient import TestClient
except ImportError:
    pytest.skip("FastAPI TestClient requires httpx", allow_module_level=True)

import textdag
import server.api as api_module
from server.api import app
from textdag.config import CONFIG_ENV


TEXT = "The cat sat. The dog ran!"

DOCS = [
    {"id": "a", "text": "the cat sat"},
    {"id": "b", "text": "the dog ran"},
    {"id": "c", "text": "the cat ran"},
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_engine(monkeypatch):
    """Reset the global _engine before each test so env changes take effect."""
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    api_module._engine = None
    yield
    api_module._engine = None


@pytest.fixture()
def client():
    return TestClient(app)


class _BrokenEngine:
    def tokenize(self, text):
        raise RuntimeError("tokenizer exploded")

    def sentencize(self, text):
        return [text]

    def name(self):
        return "broken"


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": textdag.__version__}


# ---------------------------------------------------------------------------
# /graph
# ---------------------------------------------------------------------------


class TestGraph:
    def test_build_both(self, client):
        resp = client.post("/graph", json={"text": TEXT})
        assert resp.status_code == 200
        data = resp.json()
        assert data["stats"] == {"nodeCount": 9, "edgeCount": 8, "depth": 3, "roots": 1}
        assert len(data["graph"]["nodes"]) == 9
        assert len(data["graph"]["edges"]) == 8
        assert data["graph"]["edges"][0] == [data["graph"]["nodes"][0]["id"], data["graph"]["nodes"][1]["id"]]
        assert data["graph"]["nodes"][1]["parentId"] == data["graph"]["nodes"][0]["id"]

    def test_sentencize_only(self, client):
        resp = client.post("/graph", json={"text": TEXT, "operation": "sentencize"})
        assert resp.json()["stats"]["nodeCount"] == 3

    def test_invalid_operation(self, client):
        resp = client.post("/graph", json={"text": TEXT, "operation": "stem"})
        assert resp.status_code == 422

    def test_engine_from_config(self, client, config_file, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV, str(config_file))
        resp = client.post("/graph", json={"text": "A Cat", "operation": "tokenize"})
        tokens = [n["data"] for n in resp.json()["graph"]["nodes"][1:]]
        assert tokens == ["cat"]

    def test_engine_failure_is_unprocessable(self, client):
        api_module._engine = _BrokenEngine()
        resp = client.post("/graph", json={"text": TEXT})
        assert resp.status_code == 422
        assert "tokenizer exploded" in resp.json()["detail"]


class TestGraphCounts:
    def test_counts_from_built_graph(self, client):
        graph = client.post("/graph", json={"text": TEXT}).json()["graph"]
        resp = client.post("/graph/counts", json=graph)
        assert resp.status_code == 200
        assert resp.json() == {"words": 6, "chars": 18}

    def test_cycle_is_conflict(self, client):
        graph = {
            "nodes": [
                {"id": "a", "data": "x", "metadata": {"timestamp": 1, "depth": 0}},
                {"id": "b", "data": "y", "parentId": "a", "metadata": {"timestamp": 1, "depth": 1}},
            ],
            "edges": [["a", "b"], ["b", "a"]],
        }
        assert client.post("/graph/counts", json=graph).status_code == 409

    def test_unknown_edge_endpoint_is_not_found(self, client):
        graph = {
            "nodes": [
                {"id": "b", "data": "y", "metadata": {"timestamp": 1, "depth": 0}},
            ],
            "edges": [["a", "b"]],
        }
        assert client.post("/graph/counts", json=graph).status_code == 404

    def test_depth_mismatch_is_bad_request(self, client):
        graph = {
            "nodes": [
                {"id": "a", "data": "x", "metadata": {"timestamp": 1, "depth": 2}},
            ],
        }
        assert client.post("/graph/counts", json=graph).status_code == 400


# ---------------------------------------------------------------------------
# /corpus/*
# ---------------------------------------------------------------------------


class TestCorpusStats:
    def test_stats(self, client):
        resp = client.post("/corpus/stats", json={"documents": DOCS})
        assert resp.status_code == 200
        data = resp.json()
        assert data["documentCount"] == 3
        assert data["totalWords"] == 9
        assert data["documentFrequency"]["the"] == 3
        assert data["documentFrequency"]["cat"] == 2
        assert data["vocabulary"] == ["cat", "dog", "ran", "sat", "the"]

    def test_batching_does_not_change_result(self, client):
        base = client.post("/corpus/stats", json={"documents": DOCS}).json()
        small = client.post(
            "/corpus/stats",
            json={"documents": DOCS, "config": {"batchSize": 1, "concurrency": 1}},
        ).json()
        assert small == base

    def test_invalid_config(self, client):
        resp = client.post("/corpus/stats", json={"documents": DOCS, "config": {"batchSize": 0}})
        assert resp.status_code == 422

    def test_extraction_failure(self, client):
        api_module._engine = _BrokenEngine()
        resp = client.post("/corpus/stats", json={"documents": DOCS})
        assert resp.status_code == 422
        assert "tokenizer exploded" in resp.json()["detail"]


class TestCorpusTfIdf:
    def test_vectors(self, client):
        resp = client.post("/corpus/tfidf", json={"documents": DOCS})
        assert resp.status_code == 200
        data = resp.json()
        assert [d["id"] for d in data] == ["a", "b", "c"]
        assert data[0]["vector"]["the"] == 0.0
        assert data[0]["vector"]["sat"] > data[0]["vector"]["cat"] > 0


class TestCorpusSimilar:
    def test_most_similar(self, client):
        resp = client.post("/corpus/similar", json={"documents": DOCS, "query_id": "a", "top": 1})
        assert resp.status_code == 200
        (best,) = resp.json()
        assert best["id"] == "c"
        assert 0 < best["score"] <= 1

    def test_unknown_query(self, client):
        resp = client.post("/corpus/similar", json={"documents": DOCS, "query_id": "zzz"})
        assert resp.status_code == 404
