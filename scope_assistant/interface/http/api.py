"""HTTP API for retrieval and grounded conversation.

Why: Consumable API without business logic; pure delegation to use cases
built by the container stored on `app.state`.
"""

from __future__ import annotations

import json
import threading
from collections.abc import AsyncIterator
from typing import Any

try:
    from fastapi import FastAPI, Request
    from fastapi.responses import JSONResponse, StreamingResponse
    from pydantic import BaseModel, ConfigDict, Field
    from starlette.concurrency import iterate_in_threadpool, run_in_threadpool
except ImportError as err:
    raise ImportError(
        "FastAPI not installed. Install with: pip install scope-assistant"
    ) from err

from loguru import logger

from scope_assistant.application.dto.converse_dto import ConverseRequest, ConverseStream
from scope_assistant.application.dto.retrieve_dto import RetrieveRequest
from scope_assistant.config.compose import Container, build_container
from scope_assistant.domain.errors import (
    DomainError,
    RetrievalUnavailable,
    SessionNotFound,
    SessionStoreError,
    ValidationError,
)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


# Pydantic models for request validation. Required fields default to empty
# so missing values reach the use case and come back as a 400.
class RetrieveRequestModel(BaseModel):
    """Request model for POST /retrieve."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    document_id: str = Field(default="", alias="documentId")
    method: str = "hybrid"
    limit: int = 20


class ConverseRequestModel(BaseModel):
    """Request model for POST /converse."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    document_id: str = Field(default="", alias="documentId")
    session_id: str | None = Field(default=None, alias="sessionId")
    user_id: str = Field(default="", alias="userId")
    stream: bool = False


def error_status(err: BaseException) -> int:
    if isinstance(err, ValidationError):
        return 400
    if isinstance(err, SessionNotFound):
        return 404
    if isinstance(err, (RetrievalUnavailable, SessionStoreError)):
        return 503
    return 500


def error_response(err: BaseException | None) -> JSONResponse:
    assert err is not None
    status = error_status(err)
    if status >= 500:
        logger.error("request failed: {}: {}", type(err).__name__, err)
    return JSONResponse({"error": str(err)}, status_code=status)


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def relay_events(
    stream: ConverseStream, request: Request, cancel: threading.Event
) -> AsyncIterator[str]:
    """Forward stream events as SSE until done or the client disconnects."""
    try:
        async for event in iterate_in_threadpool(stream.events):
            if await request.is_disconnected():
                logger.info("client disconnected from session {} stream", stream.session_id)
                break
            yield format_sse(event.to_dict())
    finally:
        # Stops upstream reads and discards the partial answer when the
        # stream did not finish; a no-op after normal completion.
        cancel.set()
        stream.close()


def create_app(container: Container | None = None) -> FastAPI:
    """Build the FastAPI application around a container (default: from env)."""
    container = container or build_container()
    app = FastAPI(title="Scope Assistant Grounding API", version="1.0.0")
    app.state.container = container

    @app.post("/retrieve")
    async def retrieve(req: RetrieveRequestModel, request: Request) -> Any:
        """Hybrid/vector/keyword retrieval over one document.

        Example:
            POST /retrieve
            {"query": "What is the OIS deadline?", "documentId": "doc-1", "method": "hybrid"}
        """
        uc = request.app.state.container.get_retrieve_use_case()
        dto = RetrieveRequest(
            query=req.query, document_id=req.document_id, method=req.method, limit=req.limit
        )
        result = await run_in_threadpool(uc.execute, dto)
        if not result.ok:
            return error_response(result.error)
        outcome = result.value
        return {
            "results": [r.to_dict() for r in outcome.results],
            "metadata": {"method": outcome.method.value, "query": req.query},
        }

    @app.post("/converse")
    async def converse(req: ConverseRequestModel, request: Request) -> Any:
        """Grounded answer, batched JSON or SSE stream.

        Streaming is selected with `"stream": true` or `Accept: text/event-stream`.
        """
        uc = request.app.state.container.get_converse_use_case()
        dto = ConverseRequest(
            message=req.message,
            document_id=req.document_id,
            user_id=req.user_id,
            session_id=req.session_id,
        )
        wants_stream = req.stream or "text/event-stream" in request.headers.get("accept", "")

        if not wants_stream:
            result = await run_in_threadpool(uc.execute, dto)
            if not result.ok:
                return error_response(result.error)
            return result.value.to_dict()

        cancel = threading.Event()
        opened = await run_in_threadpool(uc.open_stream, dto, cancel)
        if not opened.ok:
            return error_response(opened.error)
        return StreamingResponse(
            relay_events(opened.value, request, cancel),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/sessions/{session_id}/history")
    async def session_history(session_id: str, request: Request) -> Any:
        """Chronological turns of a session with their citations."""
        manager = request.app.state.container.get_session_manager()
        try:
            turns = await run_in_threadpool(manager.history, session_id)
        except DomainError as ex:
            return error_response(ex)
        return {
            "sessionId": session_id,
            "turns": [
                {
                    "role": t.role.value,
                    "content": t.content,
                    "sources": [c.to_dict() for c in t.citations],
                    "createdAt": t.created_at.isoformat(),
                }
                for t in turns
            ],
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "scope-assistant"}

    return app
