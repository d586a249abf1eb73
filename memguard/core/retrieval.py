"""
Retrieval service.
Turns a user query into a ranked, deduplicated, pre-formatted set of
remembered passages. Memory is best effort: every failure resolves to None.
"""

import os
import re
import threading
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.faiss_store import FaissVectorStore
from ..vector.types import SearchResult

DEDUP_PREFIX_CHARS = 200

GREETINGS = {
    "hi", "hello", "hey", "你好", "嗨", "哈囉",
    "good morning", "good evening", "good night",
    "早安", "午安", "晚安", "早", "晚",
}

# Pictographs, dingbats, flags, keycaps and the joiners/selectors that glue them
EMOJI_ONLY_PATTERN = re.compile(
    "^[\\s"
    "\U0001F000-\U0001FAFF"
    "\u2600-\u27BF"
    "\u2B00-\u2BFF"
    "\u2300-\u23FF"
    "\u2190-\u21FF"
    "\u3030\u303D\u3297\u3299"
    "\u00A9\u00AE\u203C\u2049\u2122\u2139"
    "\u200D\uFE0E\uFE0F\u20E3"
    "#*0-9"
    "]+$"
)


@dataclass
class RetrievalResult:
    """A formatted retrieval payload."""

    query: str
    results: List[SearchResult]
    formatted_text: str
    elapsed_ms: float
    cached: bool = False


@dataclass
class CacheEntry:
    query: str
    result: RetrievalResult
    captured_at: float = field(default_factory=time.monotonic)


def dedupe_results(results: List[SearchResult]) -> List[SearchResult]:
    """Keep the first (best ranked) result for each 200-character text prefix."""
    seen = set()
    deduped = []
    for result in results:
        key = result.chunk.text.strip()[:DEDUP_PREFIX_CHARS]
        if key in seen:
            continue
        seen.add(key)
        deduped.append(result)
    return deduped


def display_source(source_path: str, workspace_dir: Optional[str]) -> str:
    """Source path relative to the workspace when it lives inside it."""
    if not workspace_dir:
        return source_path
    try:
        workspace = os.path.abspath(workspace_dir)
        source = os.path.abspath(source_path)
        if os.path.commonpath([workspace, source]) == workspace:
            return os.path.relpath(source, workspace)
    except ValueError:
        # Different drives on Windows, or a relative logical name
        pass
    return source_path


def format_results(results: List[SearchResult], workspace_dir: Optional[str] = None) -> str:
    """Numbered listing, one blank-line separated block per passage."""
    blocks = []
    for rank, result in enumerate(results, start=1):
        source = display_source(result.chunk.source_path, workspace_dir)
        blocks.append(
            f"[{rank}] (source: {source}, relevance: {result.relevance:.2f})\n{result.chunk.text.strip()}"
        )
    return "\n\n".join(blocks)


class RetrievalService:
    """
    Latency-aware semantic recall over a FaissVectorStore.

    Holds a single-slot cache keyed on the exact query string. The latency
    budget is advisory: slow lookups are logged, never cancelled.
    """

    def __init__(self, store: FaissVectorStore, embedder: IEmbeddingProvider,
                 workspace_dir: Optional[str] = None, top_k: int = 5,
                 cache_ttl_sec: float = 5.0, warn_ms: float = 300.0,
                 min_query_length: int = 5):
        self.store = store
        self.embedder = embedder
        self.workspace_dir = workspace_dir
        self.top_k = top_k
        self.cache_ttl_sec = cache_ttl_sec
        self.warn_ms = warn_ms
        self.min_query_length = min_query_length

        self._cache: Optional[CacheEntry] = None
        self._cache_lock = threading.Lock()

    def should_retrieve(self, query: Optional[str]) -> bool:
        """Skip commands, greetings, very short and emoji-only messages."""
        if not query:
            return False

        trimmed = query.strip().lower()

        if trimmed.startswith("/"):
            return False

        if len(trimmed) < self.min_query_length:
            return False

        if trimmed in GREETINGS:
            return False

        if EMOJI_ONLY_PATTERN.match(trimmed):
            return False

        return True

    def _cached(self, query: str) -> Optional[RetrievalResult]:
        with self._cache_lock:
            entry = self._cache
            if entry is None or entry.query != query:
                return None
            if time.monotonic() - entry.captured_at >= self.cache_ttl_sec:
                self._cache = None
                return None
            return replace(entry.result, cached=True)

    def invalidate_cache(self) -> None:
        with self._cache_lock:
            self._cache = None

    def search(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """Embed the query and return raw ranked results (no gate, cache or dedupe)."""
        k = top_k or self.top_k
        query_embedding = self.embedder.embed_text(query)
        return self.store.search(query_embedding, k)

    def retrieve(self, query: str, top_k: Optional[int] = None) -> Optional[RetrievalResult]:
        """
        Recall passages relevant to `query`.

        Returns None for gated queries, an uninitialized or empty store, no
        hits, or any failure along the way.
        """
        if not self.should_retrieve(query):
            return None

        cached = self._cached(query)
        if cached is not None:
            logger.debug(f"Retrieval cache hit for '{query[:50]}'")
            return cached

        if not self.store.is_initialized or self.store.get_document_count() == 0:
            logger.debug("Vector index is empty; skipping retrieval")
            return None

        start_time = time.perf_counter()
        try:
            results = self.search(query, top_k)
        except Exception as e:
            logger.error(f"Retrieval failed: {e}")
            return None
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        if elapsed_ms > self.warn_ms:
            logger.log_retrieval(query, len(results), elapsed_ms, status="slow",
                                 details={"threshold_ms": self.warn_ms})

        deduped = dedupe_results(results)
        if not deduped:
            logger.log_retrieval(query, 0, elapsed_ms, status="empty")
            return None

        result = RetrievalResult(
            query=query,
            results=deduped,
            formatted_text=format_results(deduped, self.workspace_dir),
            elapsed_ms=elapsed_ms,
        )

        with self._cache_lock:
            self._cache = CacheEntry(query=query, result=result)

        logger.log_retrieval(query, len(deduped), elapsed_ms)
        return result
