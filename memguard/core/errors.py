"""
Exceptions raised by the memory engine.
"""


class MemoryEngineError(Exception):
    """Base exception for all memory engine errors."""
    pass


class DimensionMismatch(MemoryEngineError):
    """
    Embedding length disagrees with the store's configured dimension.

    Raised by single-item adds. Batch adds skip the offending item instead.
    """

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension {actual} does not match expected dimension {expected}")
        self.expected = expected
        self.actual = actual


class CorruptIndex(MemoryEngineError):
    """
    Persisted index and metadata cannot be loaded as a consistent pair.

    Raised when:
    - Only one of the two files exists
    - Either file fails to parse
    - The loaded index disagrees with the configured dimension
    - The index holds fewer vectors than the metadata has assigned ids
    """

    def __init__(self, message: str, index_path: str = None, meta_path: str = None):
        super().__init__(message)
        self.index_path = index_path
        self.meta_path = meta_path


class NotInitialized(MemoryEngineError):
    """Operation invoked before initialize() completed."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation}: vector store is not initialized")
        self.operation = operation


class ProviderUnavailable(MemoryEngineError):
    """
    Embedding provider failed or timed out.

    The current task batch or query is abandoned; nothing is retried.
    """

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider
