"""Ingestion triggers, previews, operation status and recent sources."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from pydantic import BaseModel, Field

from logterminator.errors import EnumerationError, LogTerminatorError
from logterminator.history import RecentSources
from logterminator.ingestion.engine import IngestionEngine
from logterminator.models import SessionPreview
from logterminator.sources.factory import is_http_locator

logger = logging.getLogger("logterminator.api")

ingest_router = APIRouter(prefix="/api/ingest", tags=["ingest"])
history_router = APIRouter(prefix="/api/history", tags=["history"])


class IngestRequest(BaseModel):
    locator: str = Field(..., min_length=1, description="Directory path or http(s) URL")
    sessions: Optional[list[str]] = Field(None, description="Only ingest these session names")
    background: bool = False
    trigger: str = "api"


class PreviewRequest(BaseModel):
    locator: str = Field(..., min_length=1)


class HistoryRequest(BaseModel):
    locator: str = Field(..., min_length=1)


def _get_engine(request: Request) -> IngestionEngine:
    engine = getattr(request.app.state, "ingest_engine", None)
    if not engine:
        raise HTTPException(status_code=503, detail="Ingestion engine not initialized")
    return engine


def _get_history(request: Request) -> RecentSources:
    history = getattr(request.app.state, "recent_sources", None)
    if history is None:
        raise HTTPException(status_code=503, detail="History store not initialized")
    return history


def _enumeration_http_error(exc: EnumerationError) -> HTTPException:
    if not is_http_locator(exc.locator):
        status = 404
    elif exc.reason.startswith("not an http"):
        status = 400
    else:
        status = 502
    return HTTPException(status_code=status, detail=exc.to_dict())


async def _ingest_in_background(
    engine: IngestionEngine,
    history: RecentSources,
    body: IngestRequest,
    operation_id: str,
) -> None:
    try:
        await engine.ingest(body.locator, body.sessions, operation_id=operation_id, trigger=body.trigger)
    except LogTerminatorError as exc:
        # Already recorded on the operation.
        logger.warning("Background ingestion of %s failed: %s", body.locator, exc)
        return
    history.add(body.locator)


@ingest_router.post("")
async def trigger_ingest(request: Request, background_tasks: BackgroundTasks, body: IngestRequest):
    """Ingest a directory or URL with operation tracking."""
    engine = _get_engine(request)
    history = _get_history(request)

    if body.background:
        operation_id = await engine.start_operation(body.locator, trigger=body.trigger, selected=body.sessions)
        background_tasks.add_task(_ingest_in_background, engine, history, body, operation_id)
        return {
            "status": "ok",
            "mode": "background",
            "message": "Ingestion triggered in background",
            "operationId": operation_id,
        }

    try:
        report = await engine.ingest(body.locator, body.sessions, trigger=body.trigger)
    except EnumerationError as exc:
        raise _enumeration_http_error(exc) from exc
    history.add(body.locator)
    return {
        "status": "ok",
        "mode": "foreground",
        "operationId": report.operationId,
        "summary": report.summary(),
        "report": report.model_dump(),
    }


@ingest_router.post("/preview", response_model=list[SessionPreview])
async def preview_ingest(request: Request, body: PreviewRequest):
    """List the sessions a locator would produce and which are already loaded."""
    engine = _get_engine(request)
    try:
        return await engine.preview(body.locator)
    except EnumerationError as exc:
        raise _enumeration_http_error(exc) from exc


@ingest_router.get("/operations")
async def list_ingest_operations(request: Request, limit: int = 20):
    engine = _get_engine(request)
    operations = await engine.list_operations(limit=limit)
    return {"status": "ok", "count": len(operations), "items": operations}


@ingest_router.get("/operations/{operation_id}")
async def get_ingest_operation(request: Request, operation_id: str):
    engine = _get_engine(request)
    operation = await engine.get_operation(operation_id)
    if not operation:
        raise HTTPException(status_code=404, detail=f"Operation {operation_id} not found")
    return operation


@history_router.get("")
async def get_history(request: Request, limit: Optional[int] = None):
    history = _get_history(request)
    items = history.recent(limit)
    return {"count": len(items), "items": items}


@history_router.post("")
async def add_history(request: Request, body: HistoryRequest):
    history = _get_history(request)
    items = history.add(body.locator)
    return {"count": len(items), "items": items}


@history_router.delete("")
async def clear_history(request: Request):
    _get_history(request).clear()
    return {"status": "ok"}
