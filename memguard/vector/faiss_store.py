"""
FAISS-backed vector store with on-disk persistence.

Two artifacts live side by side: the index in FAISS's native binary format and
a JSON metadata document `{nextId, documents: [[id, chunk], ...]}`. Document
ids are index slot numbers; they come from one counter and are never reused.
"""

import json
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np

from .embeddings import as_float32
from .index import IVectorStore
from .types import SearchResult, TextChunk, VectorDocument
from ..core.errors import CorruptIndex, DimensionMismatch, NotInitialized
from ..util.logging import logger


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 384, index_path: str = None, meta_path: str = None):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 384 for all-MiniLM-L6-v2)
            index_path: File holding the FAISS index
            meta_path: File holding the JSON metadata document
        """
        try:
            import faiss
            self.faiss = faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.dimension = dimension
        self.index_path = Path(index_path) if index_path else None
        self.meta_path = Path(meta_path) if meta_path else None

        self.index = None
        self.documents: Dict[int, TextChunk] = {}
        self.next_id = 0
        self.is_dirty = False
        self._cleared = False
        self._lock = threading.RLock()

    @property
    def is_initialized(self) -> bool:
        return self.index is not None

    @property
    def index_size(self) -> int:
        """Raw number of vectors in the index, deleted documents included."""
        return self.index.ntotal if self.index is not None else 0

    def _require_index(self, operation: str):
        if self.index is None:
            raise NotInitialized(operation)

    def initialize(self) -> None:
        """
        Load the persisted index and metadata, or create an empty index.

        Raises:
            CorruptIndex: If only one of the two files exists, or loading fails
        """
        with self._lock:
            if self.index_path is not None:
                self.index_path.parent.mkdir(parents=True, exist_ok=True)

            index_exists = self.index_path is not None and self.index_path.exists()
            meta_exists = self.meta_path is not None and self.meta_path.exists()

            if index_exists and meta_exists:
                self.load()
                logger.log_vector_operation("load", {
                    "documents": len(self.documents),
                    "index_size": self.index.ntotal,
                    "path": str(self.index_path),
                })
            elif index_exists or meta_exists:
                present = self.index_path if index_exists else self.meta_path
                raise CorruptIndex(
                    f"Found {present} without its pair; rebuild the index or restore the missing file",
                    index_path=str(self.index_path), meta_path=str(self.meta_path)
                )
            else:
                # Flat inner-product index; vectors are normalized so IP == cosine
                self.index = self.faiss.IndexFlatIP(self.dimension)
                self.documents = {}
                self.next_id = 0
                self.is_dirty = False
                logger.log_vector_operation("create", {"dimension": self.dimension})

    def _normalize(self, vector) -> np.ndarray:
        array = as_float32(vector)
        norm = np.linalg.norm(array)
        if norm == 0:  # Zero vectors are stored as-is; they match nothing
            return array
        return array / norm

    def add(self, chunk: TextChunk, embedding: Sequence[float]) -> int:
        """Add a single chunk to the FAISS store and return its id."""
        with self._lock:
            self._require_index("add")

            vector = as_float32(embedding)
            if vector.shape[0] != self.dimension:
                raise DimensionMismatch(self.dimension, vector.shape[0])

            doc_id = self.next_id
            self.index.add(self._normalize(vector).reshape(1, -1))
            self.documents[doc_id] = chunk
            self.next_id += 1
            self.is_dirty = True
            return doc_id

    def add_batch(self, items: Sequence[Tuple[TextChunk, Sequence[float]]]) -> List[int]:
        """Add multiple chunks; items with the wrong dimension are skipped."""
        with self._lock:
            self._require_index("add_batch")

            vectors_to_add = []
            valid_chunks = []

            for chunk, embedding in items:
                vector = as_float32(embedding)
                if vector.shape[0] != self.dimension:
                    logger.log_vector_operation("add_batch", {
                        "chunk_id": chunk.id,
                        "reason": str(DimensionMismatch(self.dimension, vector.shape[0])),
                    }, status="skipped")
                    continue
                vectors_to_add.append(self._normalize(vector))
                valid_chunks.append(chunk)

            if not vectors_to_add:
                return []

            self.index.add(np.vstack(vectors_to_add).astype(np.float32))

            ids = []
            for chunk in valid_chunks:
                self.documents[self.next_id] = chunk
                ids.append(self.next_id)
                self.next_id += 1

            self.is_dirty = True
            return ids

    def search(self, query_embedding, k: int = 5) -> List[SearchResult]:
        """Search for similar vectors; results are ordered by ascending distance."""
        with self._lock:
            self._require_index("search")

            if not self.documents or k <= 0:
                return []

            query = as_float32(query_embedding)
            if query.shape[0] != self.dimension:
                raise DimensionMismatch(self.dimension, query.shape[0])

            actual_k = min(k, len(self.documents))
            scores, labels = self.index.search(self._normalize(query).reshape(1, -1), actual_k)

            results = []
            for score, label in zip(scores[0], labels[0]):
                doc_id = int(label)
                if doc_id < 0:
                    continue
                chunk = self.documents.get(doc_id)
                if chunk is None:
                    # Deleted from metadata but still in the flat index
                    continue
                results.append(SearchResult(id=doc_id, distance=float(1.0 - score), chunk=chunk))

            results.sort(key=lambda r: r.distance)
            return results

    def get_document_count(self) -> int:
        return len(self.documents)

    def get_document(self, doc_id: int) -> Optional[TextChunk]:
        return self.documents.get(doc_id)

    def get_all_document_ids(self) -> List[int]:
        return list(self.documents.keys())

    def get_vector_document(self, doc_id: int) -> Optional[VectorDocument]:
        """Chunk plus its stored (normalized) vector, reconstructed from the index."""
        with self._lock:
            self._require_index("get_vector_document")
            chunk = self.documents.get(doc_id)
            if chunk is None:
                return None
            return VectorDocument(id=doc_id, chunk=chunk, embedding=self.index.reconstruct(doc_id))

    def save(self) -> None:
        """
        Write index and metadata to disk.

        Each file goes to a temp path and is renamed into place, index first, so
        an interrupted save leaves metadata that is stale but consistent.
        After a clear() the old metadata may name more ids than the new index
        holds, so an empty metadata document is written before the index.
        """
        with self._lock:
            self._require_index("save")
            if self.index_path is None or self.meta_path is None:
                raise ValueError("FaissVectorStore has no index_path/meta_path to save to")

            self.index_path.parent.mkdir(parents=True, exist_ok=True)

            if self._cleared:
                self._write_metadata(0, {})

            index_tmp = self.index_path.with_name(self.index_path.name + ".tmp")
            self.faiss.write_index(self.index, str(index_tmp))
            os.replace(index_tmp, self.index_path)

            self._write_metadata(self.next_id, self.documents)

            self.is_dirty = False
            self._cleared = False
            logger.log_vector_operation("save", {"documents": len(self.documents), "path": str(self.index_path)})

    def _write_metadata(self, next_id: int, documents: Dict[int, TextChunk]) -> None:
        metadata = {
            "nextId": next_id,
            "documents": [[doc_id, chunk.to_dict()] for doc_id, chunk in documents.items()],
        }
        meta_tmp = self.meta_path.with_name(self.meta_path.name + ".tmp")
        with open(meta_tmp, "w", encoding="utf-8") as f:
            json.dump(metadata, f, ensure_ascii=False, indent=2)
        os.replace(meta_tmp, self.meta_path)

    def load(self) -> None:
        """Read index and metadata from disk, validating that they agree."""
        with self._lock:
            try:
                index = self.faiss.read_index(str(self.index_path))
            except Exception as e:
                raise CorruptIndex(
                    f"Failed to read FAISS index {self.index_path}: {e}",
                    index_path=str(self.index_path), meta_path=str(self.meta_path)
                ) from e

            try:
                with open(self.meta_path, "r", encoding="utf-8") as f:
                    metadata = json.load(f)
                next_id = int(metadata["nextId"])
                documents = {int(doc_id): TextChunk.from_dict(chunk) for doc_id, chunk in metadata["documents"]}
            except (OSError, ValueError, KeyError, TypeError) as e:
                raise CorruptIndex(
                    f"Failed to parse metadata {self.meta_path}: {e}",
                    index_path=str(self.index_path), meta_path=str(self.meta_path)
                ) from e

            if index.d != self.dimension:
                raise CorruptIndex(
                    f"Index dimension {index.d} does not match configured dimension {self.dimension}",
                    index_path=str(self.index_path), meta_path=str(self.meta_path)
                )

            if index.ntotal < next_id or any(doc_id >= next_id for doc_id in documents):
                raise CorruptIndex(
                    f"Metadata references {next_id} ids but index holds {index.ntotal} vectors",
                    index_path=str(self.index_path), meta_path=str(self.meta_path)
                )

            if index.ntotal > next_id:
                # Index was saved after the metadata; those trailing slots have no chunk
                logger.warning(
                    f"Index holds {index.ntotal - next_id} vectors without metadata; advancing next id to {index.ntotal}"
                )
                next_id = index.ntotal

            self.index = index
            self.documents = documents
            self.next_id = next_id
            self.is_dirty = False

    def flush(self) -> None:
        """Save if there are unsaved changes."""
        with self._lock:
            if self.is_dirty:
                self.save()

    def delete_document(self, doc_id: int) -> bool:
        """Delete a document's metadata - note: FAISS IndexFlatIP keeps the vector.

        The slot is never reused and search skips it. Reclaiming the space
        needs a full rebuild (scripts/rebuild_index.py).
        """
        with self._lock:
            if doc_id in self.documents:
                del self.documents[doc_id]
                self.is_dirty = True
                return True
            return False

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        with self._lock:
            self.index = self.faiss.IndexFlatIP(self.dimension)
            self.documents = {}
            self.next_id = 0
            self.is_dirty = True
            self._cleared = True
            logger.log_vector_operation("clear", {"dimension": self.dimension})
