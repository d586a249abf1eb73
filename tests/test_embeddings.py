"""
Test cases for the embedding providers.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from memguard.core.config import MemoryGuardianConfig
from memguard.core.errors import ProviderUnavailable
from memguard.vector.embeddings import (
    DeterministicHashEmbedding,
    IEmbeddingProvider,
    OllamaEmbedding,
    SentenceTransformerEmbedding,
    as_float32,
    get_embedding_provider,
)


def cosine(a, b):
    a, b = np.asarray(a), np.asarray(b)
    return float(a @ b / (np.linalg.norm(a) * np.linalg.norm(b)))


class TestDeterministicHashEmbedding:

    def test_embedding_interface(self):
        embedder = DeterministicHashEmbedding(dimension=384)

        assert isinstance(embedder, IEmbeddingProvider)
        assert embedder.get_dimension() == 384

    def test_deterministic_embedding(self):
        """Same input always produces the same output, across instances."""
        vector1 = DeterministicHashEmbedding(dimension=128).embed_text("Hello, world!")
        vector2 = DeterministicHashEmbedding(dimension=128).embed_text("Hello, world!")

        assert vector1 == vector2
        assert len(vector1) == 128

    def test_shared_words_give_positive_similarity(self):
        embedder = DeterministicHashEmbedding(dimension=384)
        query = embedder.embed_text("what did we decide about X?")
        doc = embedder.embed_text("We decided to use X for caching")

        assert cosine(query, doc) > 0

    def test_case_and_punctuation_ignored(self):
        embedder = DeterministicHashEmbedding(dimension=64)

        assert embedder.embed_text("Cache, X!") == embedder.embed_text("cache x")

    def test_empty_string_is_zero_vector(self):
        vector = DeterministicHashEmbedding(dimension=32).embed_text("")

        assert vector == [0.0] * 32

    def test_punctuation_only_is_not_zero(self):
        vector = DeterministicHashEmbedding(dimension=32).embed_text("?!")

        assert sum(vector) == 1.0

    def test_embed_batch_preserves_order(self):
        embedder = DeterministicHashEmbedding(dimension=64, batch_size=2)
        texts = ["alpha", "beta", "gamma", "delta", "epsilon"]

        assert embedder.embed_batch(texts) == [embedder.embed_text(t) for t in texts]


class TestSentenceTransformerEmbedding:

    @patch('sentence_transformers.SentenceTransformer')
    def test_model_loaded_lazily_and_normalized(self, mock_st):
        model = MagicMock()
        model.encode.return_value = np.ones((2, 4), dtype=np.float32)
        model.get_sentence_embedding_dimension.return_value = 4
        mock_st.return_value = model

        embedder = SentenceTransformerEmbedding("test-model", batch_size=8)
        mock_st.assert_not_called()

        vectors = embedder.embed_batch(["one", "two"])

        mock_st.assert_called_once_with("test-model")
        assert vectors == [[1.0] * 4, [1.0] * 4]
        kwargs = model.encode.call_args.kwargs
        assert kwargs["normalize_embeddings"] is True
        assert kwargs["convert_to_numpy"] is True
        assert embedder.get_dimension() == 4

    @patch('sentence_transformers.SentenceTransformer', side_effect=OSError("no such model"))
    def test_load_failure_is_provider_unavailable(self, mock_st):
        embedder = SentenceTransformerEmbedding("missing-model")

        with pytest.raises(ProviderUnavailable, match="missing-model"):
            embedder.embed_text("hello")

    @patch('sentence_transformers.SentenceTransformer')
    def test_close_releases_model(self, mock_st):
        embedder = SentenceTransformerEmbedding()
        embedder.model
        embedder.close()

        assert embedder._model is None


class TestOllamaEmbedding:

    @patch('ollama.Client')
    def test_embed_batch(self, mock_client_cls):
        client = MagicMock()
        client.embed.return_value = {"embeddings": [[1, 2, 3], [4, 5, 6]]}
        mock_client_cls.return_value = client

        embedder = OllamaEmbedding("nomic-embed-text", host="http://ollama:11434", dimension=3)
        vectors = embedder.embed_batch(["a", "b"])

        mock_client_cls.assert_called_once_with(host="http://ollama:11434")
        client.embed.assert_called_once_with(model="nomic-embed-text", input=["a", "b"])
        assert vectors == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]

    @patch('ollama.Client')
    def test_response_error_is_provider_unavailable(self, mock_client_cls):
        import ollama

        client = MagicMock()
        client.embed.side_effect = ollama.ResponseError("model not found", 404)
        mock_client_cls.return_value = client

        with pytest.raises(ProviderUnavailable, match="model error"):
            OllamaEmbedding("missing").embed_text("hello")

    @patch('ollama.Client')
    def test_connection_error_is_provider_unavailable(self, mock_client_cls):
        client = MagicMock()
        client.embed.side_effect = ConnectionError("refused")
        mock_client_cls.return_value = client

        with pytest.raises(ProviderUnavailable, match="unreachable"):
            OllamaEmbedding("m").embed_text("hello")

    @patch('ollama.Client')
    def test_count_mismatch_is_provider_unavailable(self, mock_client_cls):
        client = MagicMock()
        client.embed.return_value = {"embeddings": [[1.0]]}
        mock_client_cls.return_value = client

        with pytest.raises(ProviderUnavailable):
            OllamaEmbedding("m", dimension=1).embed_batch(["a", "b"])


class TestProviderFactory:

    def test_hash_provider(self):
        provider = get_embedding_provider(MemoryGuardianConfig(embed_provider="hash", embed_dim=48))

        assert isinstance(provider, DeterministicHashEmbedding)
        assert provider.get_dimension() == 48

    def test_ollama_provider(self):
        cfg = MemoryGuardianConfig(embed_provider="ollama", embed_model_name="nomic", ollama_host="http://h:1")
        provider = get_embedding_provider(cfg)

        assert isinstance(provider, OllamaEmbedding)
        assert provider.host == "http://h:1"

    def test_sentence_transformers_provider(self):
        provider = get_embedding_provider(MemoryGuardianConfig(embed_provider="sentence_transformers"))

        assert isinstance(provider, SentenceTransformerEmbedding)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            get_embedding_provider(MemoryGuardianConfig(embed_provider="word2vec"))


def test_as_float32_flattens():
    array = as_float32([[1, 2], [3, 4]])

    assert array.dtype == np.float32
    assert array.shape == (4,)
