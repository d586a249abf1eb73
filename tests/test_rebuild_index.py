"""
Test cases for the index rebuild utility.
"""

import pytest

from memguard.core.config import MemoryGuardianConfig
from memguard.core.engine import create_engine
from scripts.rebuild_index import main


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setenv("MG_EMBED_DIM", "64")
    memory_dir = tmp_path / "memory"
    memory_dir.mkdir()
    (memory_dir / "2024-01-01.md").write_text("# Decisions\nWe decided to use X for caching", encoding="utf-8")
    (memory_dir / "2024-01-02.md").write_text("# Deploys\nDeploys run on Fridays", encoding="utf-8")
    return tmp_path


def test_rebuild_index_successful(capfd, workspace):
    result = main(["--workspace", str(workspace), "--provider", "hash"])

    captured = capfd.readouterr()
    assert "Starting vector index rebuild..." in captured.out
    assert "✓ Re-embedded 2 notes" in captured.out
    assert "Index rebuild complete!" in captured.out
    assert result == {"indexed": 2, "errors": 0}


def test_rebuild_compacts_deleted_documents(workspace):
    config = MemoryGuardianConfig(workspace_dir=str(workspace), embed_provider="hash", embed_dim=64)
    engine = create_engine(config)
    engine.initialize()
    engine.reindex_workspace()
    engine.reindex_workspace()
    engine.queue.drain_all()
    for doc_id in engine.store.get_all_document_ids()[:2]:
        engine.store.delete_document(doc_id)
    engine.shutdown()

    main(["--workspace", str(workspace), "--provider", "hash"])

    rebuilt = create_engine(config)
    rebuilt.initialize()
    assert rebuilt.store.index_size == 2
    assert rebuilt.store.get_document_count() == 2
    rebuilt.shutdown()


def test_rebuild_index_corrupt_store(capfd, workspace):
    data_dir = workspace / ".memory-guardian"
    data_dir.mkdir()
    (data_dir / "vector.index").write_bytes(b"orphan")

    with pytest.raises(SystemExit):
        main(["--workspace", str(workspace), "--provider", "hash"])

    assert "ERROR: Memory engine not available" in capfd.readouterr().out
