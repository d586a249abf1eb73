"""
Records shared by the chunker, the vector store and the retrieval path.
"""

from typing import Any, Dict, Optional
import numpy as np
from dataclasses import dataclass


@dataclass(frozen=True)
class TextChunk:
    """A bounded slice of source text prepared for embedding."""

    id: str
    """Unique identifier for the chunk"""

    text: str
    """Trimmed, non-empty chunk text"""

    source_path: str
    """Where the text came from (file path or logical source name)"""

    offset: int
    """Character offset of the chunk window in the source text"""

    timestamp: int
    """Creation time in epoch milliseconds"""

    session_key: Optional[str] = None
    """Conversation session the text belongs to, if any"""

    metadata: Optional[Dict[str, Any]] = None
    """Additional metadata (section header, conversation type, ...)"""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the key names of the on-disk metadata document."""
        data = {
            "id": self.id,
            "text": self.text,
            "sourcePath": self.source_path,
            "offset": self.offset,
            "timestamp": self.timestamp,
        }
        if self.session_key is not None:
            data["sessionKey"] = self.session_key
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextChunk":
        return cls(
            id=str(data["id"]),
            text=data["text"],
            source_path=data.get("sourcePath", "unknown"),
            offset=int(data.get("offset", 0)),
            timestamp=int(data.get("timestamp", 0)),
            session_key=data.get("sessionKey"),
            metadata=data.get("metadata"),
        )


@dataclass
class VectorDocument:
    """A stored chunk together with its (normalized) embedding."""

    id: int
    """Store-assigned id, equal to the vector's slot in the index"""

    chunk: TextChunk
    """The chunk the vector was computed from"""

    embedding: np.ndarray
    """L2-normalized float32 vector of the configured dimension"""


@dataclass
class SearchResult:
    """Represents a search result from the vector store."""

    id: int
    """Document id of the match"""

    distance: float
    """1 - cosine similarity; smaller is more similar"""

    chunk: TextChunk
    """The matched chunk"""

    @property
    def relevance(self) -> float:
        return 1.0 - self.distance
