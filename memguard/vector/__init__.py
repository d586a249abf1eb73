"""
Vector layer: chunking, embedding providers and the FAISS store.
"""

# Package initialization for vector module
from .index import IVectorStore
from .faiss_store import FaissVectorStore
from .types import TextChunk, VectorDocument, SearchResult
from .embeddings import (
    IEmbeddingProvider,
    DeterministicHashEmbedding,
    SentenceTransformerEmbedding,
    OllamaEmbedding,
    get_embedding_provider,
)
from .chunking import ChunkOptions, chunk_text, chunk_markdown, chunk_conversation, estimate_tokens

__all__ = [
    'IVectorStore',
    'FaissVectorStore',
    'TextChunk',
    'VectorDocument',
    'SearchResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OllamaEmbedding',
    'get_embedding_provider',
    'ChunkOptions',
    'chunk_text',
    'chunk_markdown',
    'chunk_conversation',
    'estimate_tokens',
]
