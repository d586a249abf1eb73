"""
HTTP surface for the memory engine.
A thin FastAPI transport over memguard.core.handlers.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request

from .schemas import (
    IndexRequest,
    IndexResponse,
    ReindexResponse,
    RetrieveRequest,
    RetrieveResponse,
    SearchRequest,
    SearchResponse,
    StatusResponse,
)
from ..core import config
from ..core.engine import MemoryEngine, create_engine
from ..core.handlers import (
    ErrorCode,
    HandlerResult,
    handle_index,
    handle_reindex,
    handle_retrieve,
    handle_search,
    handle_status,
)
from ..util.logging import logger

ERROR_STATUS = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.NOT_INITIALIZED: 503,
    ErrorCode.PROVIDER_UNAVAILABLE: 503,
    ErrorCode.INTERNAL: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create and own an engine unless one was injected into app.state."""
    owned = False
    if getattr(app.state, "engine", None) is None and config.ENGINE_AUTOSTART:
        engine = create_engine()
        if engine.initialize(degrade_on_error=True):
            engine.start()
        else:
            logger.warning(f"Memory engine running without memory: {engine.degraded_reason}")
        app.state.engine = engine
        owned = True

    yield

    if owned:
        app.state.engine.shutdown()
        app.state.engine = None


app = FastAPI(
    title="Memory Guardian API",
    version=config.VERSION,
    description="Local semantic memory index with latency-bounded recall",
    docs_url="/docs" if config.debug_enabled() else None,
    redoc_url="/redoc" if config.debug_enabled() else None,
    lifespan=lifespan,
)


def get_engine(request: Request) -> Optional[MemoryEngine]:
    return getattr(request.app.state, "engine", None)


def _raise_for(result: HandlerResult):
    """Map a failed handler result to an HTTP error."""
    status_code = ERROR_STATUS.get(result.code, 500)
    raise HTTPException(status_code=status_code, detail={"error": result.error, "code": result.code.value})


@app.get("/status", response_model=StatusResponse)
def status_endpoint(request: Request):
    """Engine statistics and effective configuration."""
    result = handle_status(get_engine(request))
    return StatusResponse.model_validate(result.data)


@app.post("/search", response_model=SearchResponse)
def search_endpoint(req: SearchRequest, request: Request):
    """Raw nearest neighbours for a query."""
    result = handle_search(get_engine(request), req.model_dump(by_alias=True, exclude_none=True))
    if not result.ok:
        if result.code is ErrorCode.EMPTY_INDEX:
            return SearchResponse(success=False, query=req.query, error=result.error)
        _raise_for(result)
    return SearchResponse.model_validate({"success": True, **result.data})


@app.post("/retrieve", response_model=RetrieveResponse)
def retrieve_endpoint(req: RetrieveRequest, request: Request):
    """Gated, deduplicated and formatted recall; found=false when memory has nothing."""
    result = handle_retrieve(get_engine(request), req.model_dump(by_alias=True, exclude_none=True))
    if not result.ok:
        _raise_for(result)
    return RetrieveResponse.model_validate(result.data)


@app.post("/index", response_model=IndexResponse)
def index_endpoint(req: IndexRequest, request: Request):
    """Queue text for background indexing."""
    result = handle_index(get_engine(request), req.model_dump(by_alias=True, exclude_none=True))
    if not result.ok:
        _raise_for(result)
    return IndexResponse.model_validate(result.data)


@app.post("/reindex", response_model=ReindexResponse)
def reindex_endpoint(request: Request):
    """Queue every workspace memory note for indexing."""
    result = handle_reindex(get_engine(request))
    if not result.ok:
        _raise_for(result)
    return ReindexResponse.model_validate(result.data)
