"""
Embedding providers.
Map text to fixed-dimension vectors for the vector store and the retrieval path.
"""

from abc import ABC, abstractmethod
import hashlib
import re
from typing import List
import numpy as np

from ..core.errors import ProviderUnavailable

DEFAULT_BATCH_SIZE = 32

TOKEN_PATTERN = re.compile(r"[一-龥]|[^\W_]+", re.UNICODE)


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    batch_size: int = DEFAULT_BATCH_SIZE

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed many texts, in groups of `batch_size` to bound peak memory.

        Returns vectors in input order.
        """
        embeddings = []
        for start in range(0, len(texts), self.batch_size):
            embeddings.extend(self._embed_group(texts[start:start + self.batch_size]))
        return embeddings

    def _embed_group(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_text(text) for text in texts]

    def close(self) -> None:
        """Release model resources, if any."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    Each lowercased word (or CJK character) is hashed into one of `dimension`
    buckets and counted, so texts sharing vocabulary get a positive cosine
    similarity. No model download is needed, which keeps tests hermetic.
    """

    def __init__(self, dimension: int = 384, batch_size: int = DEFAULT_BATCH_SIZE):
        self.dimension = dimension
        self.batch_size = batch_size

    def _bucket(self, token: str) -> int:
        digest = hashlib.md5(token.encode("utf-8")).hexdigest()
        return int(digest[:8], 16) % self.dimension

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using hash function."""
        vector = [0.0] * self.dimension

        tokens = TOKEN_PATTERN.findall(text.lower())
        if not tokens and text.strip():
            # Punctuation-only text still gets a stable, non-zero vector
            tokens = [text.strip()]

        for token in tokens:
            vector[self._bucket(token)] += 1.0

        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Defaults to all-MiniLM-L6-v2 (384 dimensions), mean pooled and
    L2-normalized.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", batch_size: int = DEFAULT_BATCH_SIZE):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
                self._model = SentenceTransformer(self.model_name)
            except Exception as e:
                raise ProviderUnavailable(
                    f"Failed to load embedding model {self.model_name}: {e}",
                    provider="sentence_transformers"
                ) from e
        return self._model

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        return self._embed_group([text])[0]

    def _embed_group(self, texts: List[str]) -> List[List[float]]:
        model = self.model
        try:
            embeddings = model.encode(
                texts,
                batch_size=self.batch_size,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise ProviderUnavailable(f"Embedding failed: {e}", provider="sentence_transformers") from e
        return embeddings.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension

    def close(self) -> None:
        self._model = None


class OllamaEmbedding(IEmbeddingProvider):
    """Embedding provider backed by a local Ollama server."""

    def __init__(self, model_name: str, host: str = "http://localhost:11434",
                 dimension: int = 384, batch_size: int = DEFAULT_BATCH_SIZE):
        self.model_name = model_name
        self.host = host
        self.dimension = dimension
        self.batch_size = batch_size
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import ollama
            self._client = ollama.Client(host=self.host)
        return self._client

    def embed_text(self, text: str) -> List[float]:
        return self._embed_group([text])[0]

    def _embed_group(self, texts: List[str]) -> List[List[float]]:
        import ollama

        try:
            response = self.client.embed(model=self.model_name, input=texts)
        except ollama.ResponseError as e:
            raise ProviderUnavailable(f"Ollama model error: {e}", provider="ollama") from e
        except Exception as e:
            raise ProviderUnavailable(f"Ollama unreachable at {self.host}: {e}", provider="ollama") from e

        embeddings = response["embeddings"]
        if len(embeddings) != len(texts):
            raise ProviderUnavailable(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs",
                provider="ollama"
            )
        return [list(map(float, vector)) for vector in embeddings]

    def get_dimension(self) -> int:
        return self.dimension


def get_embedding_provider(cfg) -> IEmbeddingProvider:
    """Build the embedding provider named by the configuration."""
    if cfg.embed_provider == "hash":
        return DeterministicHashEmbedding(dimension=cfg.embed_dim, batch_size=cfg.embed_batch_size)
    elif cfg.embed_provider == "ollama":
        return OllamaEmbedding(
            model_name=cfg.embed_model_name,
            host=cfg.ollama_host,
            dimension=cfg.embed_dim,
            batch_size=cfg.embed_batch_size,
        )
    elif cfg.embed_provider == "sentence_transformers":
        return SentenceTransformerEmbedding(cfg.embed_model_name, batch_size=cfg.embed_batch_size)
    raise ValueError(f"Unknown embedding provider: {cfg.embed_provider}")


def as_float32(vector) -> np.ndarray:
    """Flatten any vector-like into a float32 numpy array."""
    return np.asarray(vector, dtype=np.float32).reshape(-1)
