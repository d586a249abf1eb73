"""
Shared fixtures: a throwaway workspace, the hash embedder and a store on disk.
"""

import pytest

from memguard.core.config import MemoryGuardianConfig
from memguard.vector.embeddings import DeterministicHashEmbedding
from memguard.vector.faiss_store import FaissVectorStore

TEST_DIM = 64


@pytest.fixture
def memory_config(tmp_path):
    """Engine settings rooted in a temporary workspace with the hash embedder."""
    return MemoryGuardianConfig(
        workspace_dir=str(tmp_path),
        embed_provider="hash",
        embed_dim=TEST_DIM,
        index_interval_sec=60.0,
        index_on_start=False,
        retrieval_cache_ttl_sec=5.0,
    )


@pytest.fixture
def embedder():
    return DeterministicHashEmbedding(dimension=TEST_DIM)


@pytest.fixture
def store(memory_config):
    """An initialized, empty store persisting under the temporary workspace."""
    vector_store = FaissVectorStore(
        dimension=TEST_DIM,
        index_path=str(memory_config.index_path),
        meta_path=str(memory_config.meta_path),
    )
    vector_store.initialize()
    return vector_store
