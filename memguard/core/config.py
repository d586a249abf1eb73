"""
Engine configuration.
Every setting is read from the environment with a default; MemoryGuardianConfig
snapshots them into one object that an engine instance is built from.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Workspace layout
WORKSPACE_DIR = os.getenv("MG_WORKSPACE_DIR", str(Path.home() / ".openclaw" / "workspace"))
DATA_DIRNAME = os.getenv("MG_DATA_DIRNAME", ".memory-guardian")
INDEX_FILENAME = "vector.index"
META_FILENAME = "vector.meta.json"

# Chunking
CHUNK_SIZE = int(os.getenv("MG_CHUNK_SIZE", "512"))
CHUNK_OVERLAP = int(os.getenv("MG_CHUNK_OVERLAP", "64"))

# Embeddings
EMBED_PROVIDER = os.getenv("MG_EMBED_PROVIDER", "sentence_transformers")  # hash|sentence_transformers|ollama
EMBED_MODEL_NAME = os.getenv("MG_EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_DIM = int(os.getenv("MG_EMBED_DIM", "384"))
EMBED_BATCH_SIZE = int(os.getenv("MG_EMBED_BATCH_SIZE", "32"))
EMBED_TIMEOUT_SEC = float(os.getenv("MG_EMBED_TIMEOUT_SEC", "30"))
OLLAMA_HOST = os.getenv("MG_OLLAMA_HOST", "http://localhost:11434")

# Indexing queue
INDEX_INTERVAL_SEC = float(os.getenv("MG_INDEX_INTERVAL_SEC", "5"))
INDEX_BATCH_SIZE = int(os.getenv("MG_INDEX_BATCH_SIZE", "10"))
MAX_FILE_BYTES = int(os.getenv("MG_MAX_FILE_BYTES", str(1024 * 1024)))
INDEX_ON_START = os.getenv("MG_INDEX_ON_START", "true").lower() == "true"

# Retrieval
RAG_TOP_K = int(os.getenv("MG_RAG_TOP_K", "5"))
RETRIEVAL_CACHE_TTL_SEC = float(os.getenv("MG_RETRIEVAL_CACHE_TTL_SEC", "5"))
RETRIEVAL_WARN_MS = float(os.getenv("MG_RETRIEVAL_WARN_MS", "300"))
MIN_QUERY_LENGTH = int(os.getenv("MG_MIN_QUERY_LENGTH", "5"))

# HTTP surface
ENGINE_AUTOSTART = os.getenv("MG_ENGINE_AUTOSTART", "true").lower() == "true"

# Version string
VERSION = "1.0.0"

VALID_EMBED_PROVIDERS = ["hash", "sentence_transformers", "ollama"]


@dataclass
class MemoryGuardianConfig:
    """Settings for one engine instance."""

    workspace_dir: str = WORKSPACE_DIR
    data_dirname: str = DATA_DIRNAME
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    embed_provider: str = EMBED_PROVIDER
    embed_model_name: str = EMBED_MODEL_NAME
    embed_dim: int = EMBED_DIM
    embed_batch_size: int = EMBED_BATCH_SIZE
    embed_timeout_sec: float = EMBED_TIMEOUT_SEC
    ollama_host: str = OLLAMA_HOST
    index_interval_sec: float = INDEX_INTERVAL_SEC
    index_batch_size: int = INDEX_BATCH_SIZE
    max_file_bytes: int = MAX_FILE_BYTES
    index_on_start: bool = INDEX_ON_START
    rag_top_k: int = RAG_TOP_K
    retrieval_cache_ttl_sec: float = RETRIEVAL_CACHE_TTL_SEC
    retrieval_warn_ms: float = RETRIEVAL_WARN_MS
    min_query_length: int = MIN_QUERY_LENGTH

    @classmethod
    def from_env(cls) -> "MemoryGuardianConfig":
        """Re-read the environment, ignoring values captured at import time."""
        return cls(
            workspace_dir=os.getenv("MG_WORKSPACE_DIR", WORKSPACE_DIR),
            data_dirname=os.getenv("MG_DATA_DIRNAME", DATA_DIRNAME),
            chunk_size=int(os.getenv("MG_CHUNK_SIZE", str(CHUNK_SIZE))),
            chunk_overlap=int(os.getenv("MG_CHUNK_OVERLAP", str(CHUNK_OVERLAP))),
            embed_provider=os.getenv("MG_EMBED_PROVIDER", EMBED_PROVIDER),
            embed_model_name=os.getenv("MG_EMBED_MODEL_NAME", EMBED_MODEL_NAME),
            embed_dim=int(os.getenv("MG_EMBED_DIM", str(EMBED_DIM))),
            embed_batch_size=int(os.getenv("MG_EMBED_BATCH_SIZE", str(EMBED_BATCH_SIZE))),
            embed_timeout_sec=float(os.getenv("MG_EMBED_TIMEOUT_SEC", str(EMBED_TIMEOUT_SEC))),
            ollama_host=os.getenv("MG_OLLAMA_HOST", OLLAMA_HOST),
            index_interval_sec=float(os.getenv("MG_INDEX_INTERVAL_SEC", str(INDEX_INTERVAL_SEC))),
            index_batch_size=int(os.getenv("MG_INDEX_BATCH_SIZE", str(INDEX_BATCH_SIZE))),
            max_file_bytes=int(os.getenv("MG_MAX_FILE_BYTES", str(MAX_FILE_BYTES))),
            index_on_start=os.getenv("MG_INDEX_ON_START", str(INDEX_ON_START)).lower() == "true",
            rag_top_k=int(os.getenv("MG_RAG_TOP_K", str(RAG_TOP_K))),
            retrieval_cache_ttl_sec=float(os.getenv("MG_RETRIEVAL_CACHE_TTL_SEC", str(RETRIEVAL_CACHE_TTL_SEC))),
            retrieval_warn_ms=float(os.getenv("MG_RETRIEVAL_WARN_MS", str(RETRIEVAL_WARN_MS))),
            min_query_length=int(os.getenv("MG_MIN_QUERY_LENGTH", str(MIN_QUERY_LENGTH))),
        )

    @property
    def data_dir(self) -> Path:
        return Path(self.workspace_dir) / self.data_dirname

    @property
    def index_path(self) -> Path:
        return self.data_dir / INDEX_FILENAME

    @property
    def meta_path(self) -> Path:
        return self.data_dir / META_FILENAME

    @property
    def memory_dir(self) -> Path:
        """Directory of markdown notes picked up by workspace reindexing."""
        return Path(self.workspace_dir) / "memory"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def validate_config(cfg: MemoryGuardianConfig):
    """Validate engine configuration and return any issues."""
    issues = []

    if cfg.chunk_size < 1:
        issues.append("MG_CHUNK_SIZE must be >= 1")

    if cfg.chunk_overlap < 0:
        issues.append("MG_CHUNK_OVERLAP must be >= 0")

    if cfg.chunk_size - cfg.chunk_overlap <= 0:
        issues.append("MG_CHUNK_OVERLAP must be smaller than MG_CHUNK_SIZE")

    if cfg.embed_provider not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid MG_EMBED_PROVIDER: {cfg.embed_provider}")

    if cfg.embed_dim < 1:
        issues.append("MG_EMBED_DIM must be >= 1")

    if cfg.embed_batch_size < 1:
        issues.append("MG_EMBED_BATCH_SIZE must be >= 1")

    if cfg.index_interval_sec <= 0:
        issues.append("MG_INDEX_INTERVAL_SEC must be > 0")

    if cfg.index_batch_size < 1:
        issues.append("MG_INDEX_BATCH_SIZE must be >= 1")

    if cfg.rag_top_k < 1:
        issues.append("MG_RAG_TOP_K must be >= 1")

    return issues
