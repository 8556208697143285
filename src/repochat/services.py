"""Wiring of the runtime components from an :class:`AppConfig`."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from repochat.chat.service import ChatService
from repochat.config import AppConfig
from repochat.generation.ollama import OllamaGenerator
from repochat.index.indexer import Indexer
from repochat.index.retrieval import RetrievalOrchestrator
from repochat.index.search import Searcher
from repochat.index.storage import SQLiteChunkStore
from repochat.sources.github import GitHubSource

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    config: AppConfig
    store: SQLiteChunkStore
    source: GitHubSource
    generator: OllamaGenerator
    searcher: Searcher
    orchestrator: RetrievalOrchestrator
    indexer: Indexer
    chat: ChatService

    def close(self) -> None:
        self.indexer.stop_scheduler()
        self.chat.shutdown()
        self.source.close()
        self.generator.close()
        self.store.close()


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def build_services(config: AppConfig, base_dir: Path | None = None) -> Services:
    resolved_db = config.resolve_db_path(base_dir or Path.cwd())
    _ensure_db_parent(resolved_db)
    LOGGER.debug("Using database at %s", resolved_db)

    store = SQLiteChunkStore(resolved_db)
    source = GitHubSource(config.github_base_url, config.github_token)
    generator = OllamaGenerator(
        config.ollama_base_url, config.model_name, timeout=config.generator_timeout
    )
    searcher = Searcher(store)
    orchestrator = RetrievalOrchestrator(searcher)
    indexer = Indexer(
        source,
        store,
        config.repositories,
        chunk_chars=config.chunk_chars,
        batch_size=config.batch_size,
        max_workers=config.max_workers,
        reindex_interval=config.reindex_interval,
    )
    chat = ChatService(
        orchestrator, generator, model_name=config.model_name, max_workers=config.max_workers
    )
    return Services(
        config=config,
        store=store,
        source=source,
        generator=generator,
        searcher=searcher,
        orchestrator=orchestrator,
        indexer=indexer,
        chat=chat,
    )
