"""Chat pipeline: retrieve, then answer verbatim or through the generator."""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Protocol, Sequence

from repochat.chat.bypass import DIRECT_CONTENT_MODEL, format_direct_response, should_bypass
from repochat.chat.context import build_prompt
from repochat.chat.schemas import ChatRequest, ChatResponse
from repochat.index.retrieval import RetrievalOrchestrator
from repochat.models import Chunk

LOGGER = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "I apologize, but I encountered an error while processing your request. Please try again."
)
DEFAULT_SOURCE_LABEL = "Technical Documentation"

# Evaluated in order; the first rule whose terms all occur in the path wins.
SOURCE_LABEL_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("db2",), "Database Configuration Guide"),
    (("maximo", "install"), "Maximo Installation Guide"),
    (("maximo", "setup"), "Maximo Setup Guide"),
    (("liberty",), "WebSphere Liberty Configuration"),
    (("mongo",), "MongoDB Configuration Guide"),
    (("java",), "Java Configuration Guide"),
    (("openshift",), "OpenShift Deployment Guide"),
    (("system",), "System Configuration Guide"),
    (("restapi",), "REST API Documentation"),
    (("manage",), "Maximo Manage Configuration"),
    (("mas-suite",), "MAS Suite Installation Guide"),
)


class Generator(Protocol):
    model_name: str

    def generate(self, prompt: str) -> str: ...


def sanitize_source_file(file_path: str | None) -> str:
    """Map a file path to a generic category label that hides repository layout."""
    path = file_path or ""
    for terms, label in SOURCE_LABEL_RULES:
        if all(term in path for term in terms):
            return label
    return DEFAULT_SOURCE_LABEL


def source_labels(chunks: Sequence[Chunk], limit: int = 1) -> List[str]:
    labels: List[str] = []
    for chunk in chunks:
        label = sanitize_source_file(chunk.file_path)
        if label not in labels:
            labels.append(label)
        if len(labels) >= limit:
            break
    return labels


class ChatService:
    """Answers chat requests from the indexed repository content."""

    def __init__(
        self,
        orchestrator: RetrievalOrchestrator,
        generator: Generator,
        *,
        model_name: str | None = None,
        max_workers: int = 4,
    ) -> None:
        self.orchestrator = orchestrator
        self.generator = generator
        self.model_name = model_name or generator.model_name
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="repochat-chat")

    def submit(self, request: ChatRequest) -> "Future[ChatResponse]":
        return self._executor.submit(self.process_message, request)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    def process_message(self, request: ChatRequest) -> ChatResponse:
        started = time.monotonic()
        session_id = request.session_id or str(uuid.uuid4())
        try:
            LOGGER.info("Processing message for session: %s", session_id)
            chunks: List[Chunk] = []
            best_file: List[Chunk] = []
            if request.include_context:
                result = self.orchestrator.retrieve(
                    request.message,
                    fast_mode=request.fast_mode,
                    full_content=request.full_content,
                )
                chunks = result.chunks
                best_file = result.best_file

            if should_bypass(request.message):
                LOGGER.info("Bypassing generator for query: %r", request.message)
                # Verbatim answers carry the whole winning file, not the capped context.
                chunks = best_file or chunks
                answer = format_direct_response(chunks)
                model_used = DIRECT_CONTENT_MODEL
            else:
                LOGGER.info("Using generator for query: %r", request.message)
                answer = self.generator.generate(build_prompt(request.message, chunks))
                model_used = self.model_name

            elapsed_ms = int((time.monotonic() - started) * 1000)
            LOGGER.info("Successfully processed message in %dms", elapsed_ms)
            return ChatResponse.ok(answer, session_id, elapsed_ms, source_labels(chunks), model_used)
        except Exception:
            LOGGER.exception("Failed to process message for session: %s", session_id)
            return ChatResponse.failure(APOLOGY_MESSAGE, session_id)
