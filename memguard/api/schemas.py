"""
Request and response models for the HTTP surface.
Fields are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(CamelModel):
    query: str
    top_k: Optional[int] = None

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v

    @field_validator('top_k')
    @classmethod
    def top_k_must_be_positive(cls, v):
        if v is not None and v < 1:
            raise ValueError('topK must be >= 1')
        return v


class RetrieveRequest(SearchRequest):
    pass


class IndexRequest(CamelModel):
    text: str
    source_path: Optional[str] = None
    kind: str = "text"
    priority: int = 5
    session_key: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v

    @field_validator('kind')
    @classmethod
    def kind_must_be_valid(cls, v):
        valid_kinds = ['text', 'file', 'conversation']
        if v not in valid_kinds:
            raise ValueError(f'kind must be one of: {valid_kinds}')
        return v


class SearchHit(CamelModel):
    id: int
    distance: float
    text: str
    source: str
    timestamp: int


class EngineStats(CamelModel):
    initialized: bool
    document_count: int
    queue_length: int
    is_processing: bool


class StatusResponse(CamelModel):
    success: bool = True
    version: str
    workspace: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    faiss: EngineStats
    degraded_reason: Optional[str] = None


class SearchResponse(CamelModel):
    success: bool
    query: Optional[str] = None
    search_time_ms: Optional[float] = None
    results: List[SearchHit] = []
    error: Optional[str] = None


class RetrieveResponse(CamelModel):
    success: bool = True
    query: str
    found: bool
    cached: bool = False
    elapsed_ms: Optional[float] = None
    formatted_text: Optional[str] = None
    results: List[SearchHit] = []


class IndexResponse(CamelModel):
    success: bool = True
    task_id: str


class ReindexResponse(CamelModel):
    success: bool = True
    indexed: int
    errors: int


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    code: str
