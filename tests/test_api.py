"""
Test cases for the HTTP surface.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from memguard.api import main
from memguard.core.engine import MemoryEngine


@pytest.fixture
def engine(memory_config, embedder):
    mem_engine = MemoryEngine(memory_config, embedder)
    mem_engine.initialize()
    yield mem_engine
    mem_engine.shutdown()


@pytest.fixture
def client(engine):
    """Client over an injected engine; the app does not own it."""
    main.app.state.engine = engine
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.state.engine = None


@pytest.fixture
def cold_client():
    """Client with no engine at all."""
    main.app.state.engine = None
    with patch('memguard.core.config.ENGINE_AUTOSTART', False):
        with TestClient(main.app) as test_client:
            yield test_client


class TestStatusEndpoint:

    def test_status(self, client, engine):
        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["faiss"] == {"initialized": True, "documentCount": 0, "queueLength": 0, "isProcessing": False}
        assert data["config"]["embeddingProvider"] == "hash"
        assert engine.initialized  # not shut down by the app lifespan

    def test_status_without_engine(self, cold_client):
        data = cold_client.get("/status").json()

        assert data["faiss"]["initialized"] is False


class TestSearchEndpoint:

    def test_empty_index(self, client):
        response = client.post("/search", json={"query": "caching"})

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "Index is empty"

    def test_search(self, client, engine):
        engine.index("We decided to use X for caching", "notes")
        engine.queue.drain_all()

        response = client.post("/search", json={"query": "X caching", "topK": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert len(data["results"]) == 1
        assert data["results"][0]["text"] == "We decided to use X for caching"
        assert "searchTimeMs" in data

    def test_validation(self, client):
        assert client.post("/search", json={"query": "  "}).status_code == 422
        assert client.post("/search", json={"query": "x", "topK": 0}).status_code == 422

    def test_not_initialized(self, cold_client):
        response = cold_client.post("/search", json={"query": "caching"})

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "not_initialized"


class TestRetrieveEndpoint:

    def test_found(self, client, engine):
        engine.index("We decided to use X for caching", "notes")
        engine.queue.drain_all()

        data = client.post("/retrieve", json={"query": "what did we decide about X?"}).json()

        assert data["found"] is True
        assert data["formattedText"].startswith("[1] (source: notes")

    def test_gated_query(self, client):
        data = client.post("/retrieve", json={"query": "hello"}).json()

        assert data["found"] is False
        assert data["results"] == []

    def test_top_k_validated(self, client):
        assert client.post("/retrieve", json={"query": "what did we decide?", "topK": -3}).status_code == 422


class TestIndexEndpoint:

    def test_index(self, client, engine):
        response = client.post("/index", json={"text": "remember this", "sessionKey": "s1"})

        assert response.status_code == 200
        task_id = response.json()["taskId"]
        task = engine.queue.pending_tasks()[0]
        assert task.id == task_id
        assert task.session_key == "s1"
        assert task.priority == 5

    def test_bad_kind(self, client):
        assert client.post("/index", json={"text": "x", "kind": "image"}).status_code == 422

    def test_not_initialized(self, cold_client):
        response = cold_client.post("/index", json={"text": "x"})

        assert response.status_code == 503


class TestReindexEndpoint:

    def test_reindex(self, client, memory_config):
        memory_config.memory_dir.mkdir()
        (memory_config.memory_dir / "a.md").write_text("alpha", encoding="utf-8")

        response = client.post("/reindex")

        assert response.status_code == 200
        assert response.json() == {"success": True, "indexed": 1, "errors": 0}


def test_lifespan_owns_autostarted_engine(memory_config, monkeypatch):
    monkeypatch.setenv("MG_WORKSPACE_DIR", memory_config.workspace_dir)
    monkeypatch.setenv("MG_EMBED_PROVIDER", "hash")
    monkeypatch.setenv("MG_INDEX_ON_START", "false")
    main.app.state.engine = None

    with patch('memguard.core.config.ENGINE_AUTOSTART', True):
        with TestClient(main.app) as test_client:
            engine = main.app.state.engine
            assert engine.initialized
            assert test_client.get("/status").json()["faiss"]["initialized"] is True

    assert main.app.state.engine is None
    assert not engine.queue.running
