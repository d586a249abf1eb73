"""
Memory engine facade.
Owns one vector store, one indexing queue and one retrieval service, and
exposes the operations callers use: index, search, retrieve, reindex, stats.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import MemoryGuardianConfig, validate_config
from .errors import MemoryEngineError, NotInitialized
from .retrieval import RetrievalResult, RetrievalService
from .task_queue import ConversationTask, IndexingQueue, make_task
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider, get_embedding_provider
from ..vector.faiss_store import FaissVectorStore


class MemoryEngine:
    """
    One explicitly owned memory engine.

    Lifecycle: initialize() -> start() -> index/search/retrieve -> shutdown().
    """

    def __init__(self, config: MemoryGuardianConfig, embedder: IEmbeddingProvider,
                 store: Optional[FaissVectorStore] = None):
        issues = validate_config(config)
        if issues:
            raise ValueError(f"Memory engine configuration invalid: {issues}")

        self.config = config
        self.embedder = embedder
        self.store = store or FaissVectorStore(
            dimension=config.embed_dim,
            index_path=str(config.index_path),
            meta_path=str(config.meta_path),
        )
        self.queue = IndexingQueue(
            self.store,
            embedder,
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            batch_size=config.index_batch_size,
            interval_sec=config.index_interval_sec,
            embed_timeout_sec=config.embed_timeout_sec,
        )
        self.retrieval = RetrievalService(
            self.store,
            embedder,
            workspace_dir=config.workspace_dir,
            top_k=config.rag_top_k,
            cache_ttl_sec=config.retrieval_cache_ttl_sec,
            warn_ms=config.retrieval_warn_ms,
            min_query_length=config.min_query_length,
        )
        self.initialized = False
        self.degraded_reason: Optional[str] = None

    def initialize(self, degrade_on_error: bool = False) -> bool:
        """
        Check the embedding provider and load or create the index.

        Args:
            degrade_on_error: Log failures and stay in "no memory" mode instead
                of raising

        Returns:
            True if the engine is ready

        Raises:
            CorruptIndex, ProviderUnavailable: Unless degrade_on_error is set
        """
        if self.initialized:
            return True

        start_time = time.perf_counter()
        try:
            dimension = self.embedder.get_dimension()
            if dimension != self.config.embed_dim:
                raise ValueError(
                    f"Embedding provider dimension {dimension} does not match MG_EMBED_DIM={self.config.embed_dim}"
                )
            self.store.initialize()
        except (MemoryEngineError, ValueError) as e:
            self.degraded_reason = str(e)
            logger.log_operation("engine.initialize", "failed", {"error": str(e)}, level=logging.ERROR)
            if degrade_on_error:
                return False
            raise

        self.initialized = True
        self.degraded_reason = None
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.log_operation("engine.initialize", "success", {
            "documents": self.store.get_document_count(),
            "elapsed_ms": round(elapsed_ms, 2),
            "workspace": self.config.workspace_dir,
        })
        return True

    def start(self) -> None:
        """Start background indexing and, if configured, queue the workspace notes."""
        if not self.initialized:
            raise NotInitialized("start indexing")
        if self.queue.running:
            return

        self.queue.start()
        if self.config.index_on_start:
            result = self.reindex_workspace()
            logger.info(f"Workspace indexing queued: {result['indexed']} files, {result['errors']} errors")

    def _require_initialized(self, operation: str):
        if not self.initialized:
            raise NotInitialized(operation)

    def index(self, content: str, source_path: str, kind: str = "text", priority: int = 0,
              session_key: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Queue content for indexing and return the task id."""
        self._require_initialized("index")
        task = make_task(kind, content, source_path, priority=priority,
                         session_key=session_key, metadata=metadata)
        return self.queue.add_task(task)

    def index_conversation(self, messages: Sequence[Mapping[str, Any]], source_path: str,
                           priority: int = 0, session_key: Optional[str] = None,
                           metadata: Optional[Dict[str, Any]] = None) -> str:
        """Queue a list of {role, content} turns for indexing."""
        self._require_initialized("index")
        task = ConversationTask(
            turns=tuple(dict(message) for message in messages),
            source_path=source_path,
            priority=priority,
            session_key=session_key,
            metadata=metadata,
        )
        return self.queue.add_task(task)

    def search(self, query: str, top_k: Optional[int] = None) -> List[Dict[str, Any]]:
        """Raw ranked hits as plain dicts (no gate, dedupe or cache)."""
        self._require_initialized("search")
        results = self.retrieval.search(query, top_k or self.config.rag_top_k)
        return [
            {
                "id": r.id,
                "distance": r.distance,
                "text": r.chunk.text,
                "source": r.chunk.source_path,
                "timestamp": r.chunk.timestamp,
            }
            for r in results
        ]

    def should_retrieve(self, query: Optional[str]) -> bool:
        return self.retrieval.should_retrieve(query)

    def retrieve(self, query: str, top_k: Optional[int] = None) -> Optional[RetrievalResult]:
        """Best-effort recall; None whenever memory has nothing to offer."""
        if not self.initialized:
            return None
        return self.retrieval.retrieve(query, top_k)

    def reindex_workspace(self) -> Dict[str, int]:
        """Queue every markdown note under <workspace>/memory."""
        self._require_initialized("reindex workspace")
        return self.queue.index_workspace(self.config.memory_dir, self.config.max_file_bytes)

    def rebuild(self) -> Dict[str, int]:
        """Drop the index and re-embed the workspace notes, reclaiming deleted slots."""
        self._require_initialized("rebuild")
        self.store.clear()
        self.retrieval.invalidate_cache()
        result = self.reindex_workspace()
        self.queue.drain_all()
        self.store.flush()
        return result

    def stats(self) -> Dict[str, Any]:
        return {
            "initialized": self.initialized,
            "documentCount": self.store.get_document_count() if self.store.is_initialized else 0,
            "queueLength": self.queue.queue_length,
            "isProcessing": self.queue.is_processing,
        }

    def shutdown(self) -> None:
        """Stop indexing, drain what is queued, persist and release the model."""
        self.queue.stop()
        if self.initialized:
            try:
                self.queue.drain_all()
            finally:
                self.store.flush()
        self.embedder.close()
        logger.info("Memory engine shut down")


def create_engine(config: Optional[MemoryGuardianConfig] = None,
                  embedder: Optional[IEmbeddingProvider] = None) -> MemoryEngine:
    """Build an engine from configuration (environment by default)."""
    config = config or MemoryGuardianConfig.from_env()
    embedder = embedder or get_embedding_provider(config)
    return MemoryEngine(config, embedder)
