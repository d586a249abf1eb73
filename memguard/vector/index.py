"""
Vector store interface.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple
import numpy as np

from .types import SearchResult, TextChunk


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def initialize(self) -> None:
        """Load persisted state or create an empty index."""
        pass

    @abstractmethod
    def add(self, chunk: TextChunk, embedding: Sequence[float]) -> int:
        """Add a single chunk and its embedding; return the assigned id."""
        pass

    @abstractmethod
    def add_batch(self, items: Sequence[Tuple[TextChunk, Sequence[float]]]) -> List[int]:
        """Add many chunks; invalid items are skipped and omitted from the ids."""
        pass

    @abstractmethod
    def search(self, query_embedding: np.ndarray, k: int = 5) -> List[SearchResult]:
        """Search for similar vectors and return ranked results."""
        pass

    @abstractmethod
    def flush(self) -> None:
        """Persist to disk if anything changed since the last save."""
        pass

    @abstractmethod
    def delete_document(self, doc_id: int) -> bool:
        """Forget a document's metadata; return whether it existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    @abstractmethod
    def get_document_count(self) -> int:
        """Number of live (non-deleted) documents."""
        pass

    @abstractmethod
    def get_document(self, doc_id: int) -> Optional[TextChunk]:
        """Chunk stored under `doc_id`, if still present."""
        pass
