from __future__ import annotations

import asyncio

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from helpdesk.api import router as api_router
from helpdesk.core.config import settings
from helpdesk.core.logging import setup_logging
from helpdesk.services.assignment import AlreadyClaimed, TicketNotFound
from helpdesk.services.container import build_services
from helpdesk.services.document_ingestion import UnsupportedFormat
from helpdesk.services.knowledge_base import DocumentNotFound, InvalidDocument
from helpdesk.services.llm_clients import LLMError
from helpdesk.services.snapshot_worker import load_snapshot, snapshot_worker

logger = structlog.get_logger(__name__)

app = FastAPI(title="Helpdesk AI")


@app.exception_handler(TicketNotFound)
async def ticket_not_found_handler(request: Request, exc: TicketNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Ticket not found"})


@app.exception_handler(DocumentNotFound)
async def document_not_found_handler(request: Request, exc: DocumentNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Document not found"})


@app.exception_handler(AlreadyClaimed)
async def already_claimed_handler(request: Request, exc: AlreadyClaimed) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "agent_id": exc.agent_id},
    )


@app.exception_handler(UnsupportedFormat)
async def unsupported_format_handler(request: Request, exc: UnsupportedFormat) -> JSONResponse:
    return JSONResponse(status_code=415, content={"detail": str(exc)})


@app.exception_handler(InvalidDocument)
async def invalid_document_handler(request: Request, exc: InvalidDocument) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.errors})


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    logger.warning("llm_request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "AI service unavailable"})


origins = [origin.strip() for origin in settings.ADMIN_UI_ORIGINS.split(",") if origin]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging()
    if settings.STORAGE_BACKEND == "sql":
        from helpdesk.core.database import init_db

        await init_db()
    services = build_services()
    app.state.services = services
    await load_snapshot(services.knowledge_base, settings.SNAPSHOT_DIR)
    app.state.snapshot_stop = asyncio.Event()
    app.state.snapshot_task = asyncio.create_task(
        snapshot_worker(services.knowledge_base, app.state.snapshot_stop)
    )
    logger.info(
        "app_started",
        storage_backend=settings.STORAGE_BACKEND,
        llm_configured=services.completion is not None,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    stop_event = getattr(app.state, "snapshot_stop", None)
    task = getattr(app.state, "snapshot_task", None)
    if stop_event:
        stop_event.set()
    if task:
        # The worker flushes once more after the stop event fires.
        await task
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.responder.queue.shutdown()


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(api_router)
