"""FastAPI application exposing the chat and indexing endpoints."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from repochat.chat.schemas import ChatRequest, ChatResponse
from repochat.config import AppConfig
from repochat.services import Services, build_services

LOGGER = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "The request took too long to complete. Please try again."

app = FastAPI(title="repochat", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_services: Services | None = None
_services_lock = threading.Lock()


class IndexPayload(BaseModel):
    reprocess: bool = False


def get_services() -> Services:
    global _services
    with _services_lock:
        if _services is None:
            _services = build_services(AppConfig.from_env())
        return _services


def _run_index_job(services: Services, reprocess: bool) -> None:
    try:
        stats = services.indexer.run_claimed(force=reprocess)
    except Exception:
        LOGGER.exception("Indexing failed")
        return
    LOGGER.info(
        "Indexing finished: inserted=%d updated=%d skipped=%d failed=%d",
        stats.inserted,
        stats.updated,
        stats.skipped,
        stats.failed,
    )


def _start_index_thread(services: Services, reprocess: bool) -> bool:
    """Claim the indexing guard and run a pass in the background.

    Returns False when another run already holds the guard.
    """
    if not services.indexer.guard.try_start():
        LOGGER.info("Repository indexing already in progress")
        return False
    thread = threading.Thread(
        target=_run_index_job, args=(services, reprocess), name="repochat-index", daemon=True
    )
    try:
        thread.start()
    except RuntimeError:
        services.indexer.guard.finish()
        raise
    return True


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    services = get_services()
    if services.config.clean_on_startup:
        LOGGER.info("Purging stored chunks before the initial index run")
        await asyncio.to_thread(services.indexer.purge)
    _start_index_thread(services, reprocess=False)
    services.indexer.start_scheduler()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    global _services
    with _services_lock:
        if _services is not None:
            _services.close()
            _services = None


@app.post("/api/chat/message")
async def chat_message(payload: ChatRequest, services: Services = Depends(get_services)) -> JSONResponse:
    try:
        response = await asyncio.wait_for(
            asyncio.to_thread(services.chat.process_message, payload),
            timeout=services.config.request_timeout,
        )
    except asyncio.TimeoutError:
        LOGGER.error("Chat request timed out after %.0fs", services.config.request_timeout)
        response = ChatResponse.failure(TIMEOUT_MESSAGE, payload.session_id or "")

    status_code = 200 if response.success else 500
    return JSONResponse(status_code=status_code, content=response.model_dump(by_alias=True))


@app.get("/api/health")
async def health(services: Services = Depends(get_services)) -> JSONResponse:
    checks: dict[str, bool] = {}
    checks["ollama"] = await asyncio.to_thread(services.generator.is_healthy)
    try:
        await asyncio.to_thread(services.store.count)
        checks["store"] = True
    except sqlite3.Error as exc:
        LOGGER.warning("Chunk store health check failed: %s", exc)
        checks["store"] = False

    healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "UP" if healthy else "DOWN", "services": checks},
    )


@app.post("/api/index")
async def start_indexing(
    payload: IndexPayload | None = None, services: Services = Depends(get_services)
) -> dict[str, Any]:
    reprocess = payload.reprocess if payload is not None else False
    if not _start_index_thread(services, reprocess):
        return {"status": "already_running"}
    return {"status": "started", "reprocess": reprocess}


@app.get("/api/index/status")
async def index_status(services: Services = Depends(get_services)) -> dict[str, Any]:
    return {
        "in_progress": services.indexer.in_progress,
        "last_index_time": services.indexer.last_index_time,
        "chunk_count": await asyncio.to_thread(services.store.count),
        "repositories": [asdict(status) for status in services.indexer.status()],
    }
