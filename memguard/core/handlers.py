"""
Transport-independent request handlers.
Each handler takes the engine and a plain params mapping and returns a
HandlerResult instead of raising, so any transport can map it directly.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .config import VERSION
from .engine import MemoryEngine
from .errors import DimensionMismatch, NotInitialized, ProviderUnavailable
from .task_queue import TaskKind
from ..util.logging import logger


class ErrorCode(str, Enum):
    INVALID_REQUEST = "invalid_request"
    NOT_INITIALIZED = "not_initialized"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    EMPTY_INDEX = "empty_index"
    INTERNAL = "internal_error"


@dataclass
class HandlerResult:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    code: Optional[ErrorCode] = None

    @classmethod
    def success(cls, **data) -> "HandlerResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, code: ErrorCode, error: str) -> "HandlerResult":
        return cls(ok=False, error=error, code=code)


def _int_param(params: Mapping[str, Any], name: str, default: Optional[int]) -> Optional[int]:
    value = params.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    return value


def handle_status(engine: Optional[MemoryEngine]) -> HandlerResult:
    """Engine statistics; an absent engine reports as uninitialized."""
    stats = engine.stats() if engine else {
        "initialized": False,
        "documentCount": 0,
        "queueLength": 0,
        "isProcessing": False,
    }
    data = {"version": VERSION, "faiss": stats}
    if engine:
        data["workspace"] = engine.config.workspace_dir
        data["config"] = {
            "ragTopK": engine.config.rag_top_k,
            "embeddingProvider": engine.config.embed_provider,
            "embeddingModel": engine.config.embed_model_name,
        }
        if engine.degraded_reason:
            data["degradedReason"] = engine.degraded_reason
    return HandlerResult.success(**data)


def handle_search(engine: Optional[MemoryEngine], params: Mapping[str, Any]) -> HandlerResult:
    """Ranked nearest neighbours for `query` (required) and optional `topK`."""
    query = params.get("query")
    if not query or not isinstance(query, str):
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, "Query is required")

    try:
        top_k = _int_param(params, "topK", None)
    except ValueError as e:
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, str(e))
    if top_k is not None and top_k < 1:
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, "topK must be >= 1")

    if engine is None or not engine.initialized:
        return HandlerResult.failure(ErrorCode.NOT_INITIALIZED, "Vector service not initialized")

    if engine.store.get_document_count() == 0:
        return HandlerResult.failure(ErrorCode.EMPTY_INDEX, "Index is empty")

    start_time = time.perf_counter()
    try:
        results = engine.search(query, top_k)
    except ProviderUnavailable as e:
        return HandlerResult.failure(ErrorCode.PROVIDER_UNAVAILABLE, str(e))
    except DimensionMismatch as e:
        logger.error(f"Search failed: {e}")
        return HandlerResult.failure(ErrorCode.INTERNAL, str(e))
    search_time_ms = (time.perf_counter() - start_time) * 1000

    return HandlerResult.success(query=query, searchTimeMs=round(search_time_ms, 2), results=results)


def handle_retrieve(engine: Optional[MemoryEngine], params: Mapping[str, Any]) -> HandlerResult:
    """Gated, deduplicated, formatted recall for `query`."""
    query = params.get("query")
    if not query or not isinstance(query, str):
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, "Query is required")

    try:
        top_k = _int_param(params, "topK", None)
    except ValueError as e:
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, str(e))
    if top_k is not None and top_k < 1:
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, "topK must be >= 1")

    if engine is None:
        return HandlerResult.success(query=query, found=False)

    result = engine.retrieve(query, top_k)
    if result is None:
        return HandlerResult.success(query=query, found=False)

    return HandlerResult.success(
        query=result.query,
        found=True,
        cached=result.cached,
        elapsedMs=round(result.elapsed_ms, 2),
        formattedText=result.formatted_text,
        results=[
            {
                "id": r.id,
                "distance": r.distance,
                "text": r.chunk.text,
                "source": r.chunk.source_path,
                "timestamp": r.chunk.timestamp,
            }
            for r in result.results
        ],
    )


def handle_index(engine: Optional[MemoryEngine], params: Mapping[str, Any]) -> HandlerResult:
    """Queue `text` for indexing; defaults to a plain-text task at priority 5."""
    text = params.get("text")
    if not text or not isinstance(text, str):
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, "Text is required")

    kind = params.get("kind") or TaskKind.TEXT.value
    if kind not in {k.value for k in TaskKind}:
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, f"Unknown kind: {kind}")

    try:
        priority = _int_param(params, "priority", 5)
    except ValueError as e:
        return HandlerResult.failure(ErrorCode.INVALID_REQUEST, str(e))

    if engine is None:
        return HandlerResult.failure(ErrorCode.NOT_INITIALIZED, "Vector service not initialized")

    try:
        task_id = engine.index(
            text,
            params.get("sourcePath") or "rpc-input",
            kind=kind,
            priority=priority,
            session_key=params.get("sessionKey"),
            metadata=params.get("metadata"),
        )
    except NotInitialized as e:
        return HandlerResult.failure(ErrorCode.NOT_INITIALIZED, str(e))

    return HandlerResult.success(taskId=task_id)


def handle_reindex(engine: Optional[MemoryEngine]) -> HandlerResult:
    """Queue the workspace memory notes for indexing."""
    if engine is None:
        return HandlerResult.failure(ErrorCode.NOT_INITIALIZED, "Vector service not initialized")

    try:
        result = engine.reindex_workspace()
    except NotInitialized as e:
        return HandlerResult.failure(ErrorCode.NOT_INITIALIZED, str(e))

    return HandlerResult.success(**result)
