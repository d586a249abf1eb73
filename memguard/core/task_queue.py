"""
Indexing task queue.
Collects indexing requests, keeps them priority ordered and drains them in
bounded batches into the vector store on a background tick.
"""

import dataclasses
import logging
import threading
import time
import uuid
from concurrent.futures import Future, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import ProviderUnavailable
from ..util.logging import logger
from ..vector.chunking import ChunkOptions, chunk_conversation, chunk_markdown, chunk_text
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore
from ..vector.types import TextChunk

MARKDOWN_SUFFIXES = (".md", ".markdown")


class TaskKind(str, Enum):
    TEXT = "text"
    FILE = "file"
    CONVERSATION = "conversation"


@dataclass(frozen=True, kw_only=True)
class IndexTask:
    """Fields shared by every kind of indexing request."""

    source_path: str
    priority: int = 0
    session_key: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    id: str = ""
    created_at: int = 0


@dataclass(frozen=True, kw_only=True)
class PlainTextTask(IndexTask):
    content: str
    kind = TaskKind.TEXT


@dataclass(frozen=True, kw_only=True)
class FileTask(IndexTask):
    """File contents; markdown files are chunked section by section."""

    content: str
    kind = TaskKind.FILE


@dataclass(frozen=True, kw_only=True)
class ConversationTask(IndexTask):
    """
    A conversation, either as structured turns or as pre-rendered text.

    When `turns` is non-empty it wins and `content` is ignored.
    """

    content: str = ""
    turns: Tuple[Mapping[str, Any], ...] = ()
    kind = TaskKind.CONVERSATION


def make_task(kind, content: str, source_path: str, priority: int = 0,
              session_key: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> IndexTask:
    """Build the task variant for a kind tag ("text", "file" or "conversation")."""
    kind = TaskKind(kind)
    common = dict(source_path=source_path, priority=priority, session_key=session_key, metadata=metadata)
    if kind is TaskKind.TEXT:
        return PlainTextTask(content=content, **common)
    elif kind is TaskKind.FILE:
        return FileTask(content=content, **common)
    return ConversationTask(content=content, **common)


def chunk_task(task: IndexTask, chunk_size: int, chunk_overlap: int) -> List[TextChunk]:
    """Chunk a task according to its kind."""
    options = ChunkOptions(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        source_path=task.source_path,
        session_key=task.session_key,
        metadata=task.metadata,
    )

    if isinstance(task, PlainTextTask):
        return chunk_text(task.content, options)
    elif isinstance(task, FileTask):
        if task.source_path.lower().endswith(MARKDOWN_SUFFIXES):
            return chunk_markdown(task.content, options)
        return chunk_text(task.content, options)
    elif isinstance(task, ConversationTask):
        if task.turns:
            return chunk_conversation(task.turns, options)
        return chunk_text(task.content, options.with_metadata({"type": "conversation"}))

    raise TypeError(f"Unknown task type: {type(task).__name__}")


@dataclass
class DrainReport:
    """Outcome of one drain cycle."""

    tasks: int = 0
    chunks: int = 0
    indexed: int = 0
    dropped: int = 0
    failed: int = 0
    task_ids: List[str] = field(default_factory=list)


class IndexingQueue:
    """
    Priority-ordered queue of indexing tasks drained into a vector store.

    Delivery is at most once: a task that fails is logged and abandoned.
    """

    def __init__(self, store: IVectorStore, embedder: IEmbeddingProvider,
                 chunk_size: int = 512, chunk_overlap: int = 64,
                 batch_size: int = 10, interval_sec: float = 5.0,
                 embed_timeout_sec: Optional[float] = 30.0):
        if batch_size < 1:
            raise ValueError(f"Batch size must be >= 1: {batch_size}")
        if interval_sec <= 0:
            raise ValueError(f"Interval must be > 0 seconds: {interval_sec}")

        self.store = store
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.batch_size = batch_size
        self.interval_sec = interval_sec
        self.embed_timeout_sec = embed_timeout_sec

        self._pending: List[IndexTask] = []
        self._pending_lock = threading.Lock()
        self._drain_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._shutdown_event: Optional[threading.Event] = None
        self._embed_thread: Optional[threading.Thread] = None

    @property
    def queue_length(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._drain_lock.locked()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def pending_tasks(self) -> List[IndexTask]:
        """Snapshot of the queue in drain order."""
        with self._pending_lock:
            return list(self._pending)

    def add_task(self, task: IndexTask) -> str:
        """
        Enqueue a task and return its generated id.

        Any id/created_at on the given task is replaced. The queue stays sorted
        by descending priority, ties in arrival order.
        """
        task_id = f"task-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        queued = dataclasses.replace(task, id=task_id, created_at=int(time.time() * 1000))

        with self._pending_lock:
            self._pending.append(queued)
            self._pending.sort(key=lambda t: -t.priority)

        logger.log_task_event(task_id, "queued", {
            "kind": queued.kind.value,
            "source": queued.source_path,
            "priority": queued.priority,
        }, status="pending")
        return task_id

    def _embed(self, texts: List[str]) -> List[Sequence[float]]:
        """
        Batch-embed with an upper bound on how long the drain waits.

        The call runs on a daemon thread so a hung provider never blocks
        interpreter exit. While a timed-out call is still running, further
        embeds are refused instead of stacking more stuck threads.
        """
        provider = type(self.embedder).__name__
        if self._embed_thread is not None and self._embed_thread.is_alive():
            raise ProviderUnavailable("Previous embedding call is still running", provider=provider)

        future: Future = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.embedder.embed_batch(texts))
            except Exception as e:
                future.set_exception(e)

        thread = threading.Thread(target=run, name="memguard-embed", daemon=True)
        thread.start()

        try:
            embeddings = future.result(timeout=self.embed_timeout_sec)
        except FuturesTimeout:
            self._embed_thread = thread
            raise ProviderUnavailable(
                f"Embedding {len(texts)} chunks timed out after {self.embed_timeout_sec}s",
                provider=provider
            )
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise ProviderUnavailable(f"Embedding failed: {e}", provider=provider) from e

        if len(embeddings) != len(texts):
            raise ProviderUnavailable(
                f"Provider returned {len(embeddings)} embeddings for {len(texts)} chunks",
                provider=provider
            )
        return embeddings

    def process_tasks(self, block: bool = False) -> Optional[DrainReport]:
        """
        Drain one batch into the store and flush it.

        Returns None when another drain is running or the queue is empty.
        """
        if not self._drain_lock.acquire(blocking=block):
            logger.debug("Drain already in progress; skipping this tick")
            return None

        try:
            with self._pending_lock:
                batch = self._pending[:self.batch_size]
                del self._pending[:self.batch_size]

            if not batch:
                return None

            report = DrainReport(tasks=len(batch), task_ids=[task.id for task in batch])
            chunks: List[TextChunk] = []
            chunked_tasks: List[IndexTask] = []

            for task in batch:
                try:
                    task_chunks = chunk_task(task, self.chunk_size, self.chunk_overlap)
                except Exception as e:
                    report.failed += 1
                    logger.log_task_event(task.id, "chunk", {"error": str(e)}, status="failed")
                    continue

                if not task_chunks:
                    report.dropped += 1
                    logger.log_task_event(task.id, "dropped", {"reason": "no chunks"}, status="skipped")
                    continue

                chunks.extend(task_chunks)
                chunked_tasks.append(task)

            report.chunks = len(chunks)

            if chunks:
                try:
                    embeddings = self._embed([chunk.text for chunk in chunks])
                except ProviderUnavailable as e:
                    report.failed += len(chunked_tasks)
                    for task in chunked_tasks:
                        logger.log_task_event(task.id, "embed", {"error": str(e)}, status="failed")
                    return report

                ids = self.store.add_batch(list(zip(chunks, embeddings)))
                report.indexed = len(ids)

            self.store.flush()

            logger.log_operation("indexing.drain", "success", {
                "tasks": report.tasks,
                "chunks": report.chunks,
                "indexed": report.indexed,
                "dropped": report.dropped,
                "failed": report.failed,
            })
            return report
        finally:
            self._drain_lock.release()

    def drain_all(self) -> List[DrainReport]:
        """Drain synchronously until the queue is empty."""
        reports = []
        while self.queue_length > 0:
            report = self.process_tasks(block=True)
            if report is not None:
                reports.append(report)
        return reports

    def index_workspace(self, memory_dir, max_file_bytes: int = 1024 * 1024) -> Dict[str, int]:
        """
        Queue every markdown file in `memory_dir` for indexing.

        Files over `max_file_bytes` are skipped with a warning and counted in
        neither bucket.
        """
        memory_dir = Path(memory_dir)
        indexed = 0
        errors = 0

        if not memory_dir.is_dir():
            return {"indexed": indexed, "errors": errors}

        for file_path in sorted(memory_dir.glob("*.md")):
            try:
                size = file_path.stat().st_size
                if size > max_file_bytes:
                    logger.log_operation("indexing.workspace_file", "skipped", {
                        "file": file_path.name,
                        "bytes": size,
                        "limit": max_file_bytes,
                    }, level=logging.WARNING)
                    continue

                content = file_path.read_text(encoding="utf-8")
                self.add_task(FileTask(content=content, source_path=str(file_path), priority=1))
                indexed += 1
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to index workspace file {file_path.name}: {e}")
                errors += 1

        return {"indexed": indexed, "errors": errors}

    def start(self):
        """Start the background drain loop (one tick every interval_sec)."""
        if self.running:
            return

        self._shutdown_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="memguard-indexer", daemon=True)
        self._thread.start()
        logger.info(f"Indexing loop started (every {self.interval_sec}s, batch {self.batch_size})")

    def _run(self):
        while not self._shutdown_event.wait(self.interval_sec):
            self._tick()

    def _tick(self):
        try:
            self.process_tasks()
        except Exception as e:
            # Error isolation - log error but keep the loop alive
            logger.error(f"Indexing drain failed: {e}")

    def stop(self, timeout: Optional[float] = None):
        """Stop the background loop; a drain in progress finishes first."""
        if not self.running:
            return

        self._shutdown_event.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            # Still mid-drain; keep the handle so start() cannot launch a second loop
            logger.warning(f"Indexing loop did not stop within {timeout}s")
            return
        self._thread = None
        logger.info("Indexing loop stopped")
