"""Repository indexing pipeline."""

from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

from repochat.index.storage import SQLiteChunkStore
from repochat.models import Chunk, Repository, SourceFile
from repochat.utils.files import compute_sha256
from repochat.utils.text import DEFAULT_CHUNK_CHARS, chunk_text

LOGGER = logging.getLogger(__name__)

DEFAULT_REINDEX_INTERVAL = 6 * 60 * 60
PROGRESS_EVERY = 20
# Returned by _index_single for files that produce no chunks.
EMPTY = "empty"


class SourceProvider(Protocol):
    def list_files(self, repository: Repository, path: str = "") -> List[SourceFile]: ...

    def get_file_content(self, repository: Repository, path: str) -> SourceFile: ...

    def is_text_file(self, name: str | None) -> bool: ...


class IndexingState(str, enum.Enum):
    IDLE = "idle"
    INDEXING = "indexing"


class IndexingGuard:
    """Idle/indexing state machine with an atomic start transition."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = IndexingState.IDLE

    @property
    def state(self) -> IndexingState:
        return self._state

    @property
    def in_progress(self) -> bool:
        return self._state is IndexingState.INDEXING

    def try_start(self) -> bool:
        """Move IDLE -> INDEXING. Returns False if a run already holds the guard."""
        with self._lock:
            if self._state is IndexingState.INDEXING:
                return False
            self._state = IndexingState.INDEXING
            return True

    def finish(self) -> None:
        with self._lock:
            self._state = IndexingState.IDLE


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    processed_files: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.skipped

    def increment(self, status: str, path: str) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


@dataclass(slots=True)
class RepositoryStatus:
    repository_owner: str
    repository_name: str
    branch_name: str
    full_name: str
    indexing_in_progress: bool
    last_index_time: float


class Indexer:
    """Coordinates repository fetching, chunking and persistence."""

    def __init__(
        self,
        source: SourceProvider,
        store: SQLiteChunkStore,
        repositories: Sequence[Repository],
        *,
        chunk_chars: int = DEFAULT_CHUNK_CHARS,
        batch_size: int = 10,
        max_workers: int = 4,
        reindex_interval: float = DEFAULT_REINDEX_INTERVAL,
    ) -> None:
        self.source = source
        self.store = store
        self.repositories = list(repositories)
        self.chunk_chars = chunk_chars
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.reindex_interval = reindex_interval
        self.guard = IndexingGuard()
        self.last_index_time = 0.0
        self._stop_event = threading.Event()
        self._scheduler: threading.Thread | None = None

    @property
    def in_progress(self) -> bool:
        return self.guard.in_progress

    def reprocess_repository(self, owner: str, name: str) -> int:
        """Drop every stored chunk of a repository."""
        LOGGER.info("Starting repository reprocessing for %s/%s", owner, name)
        return self.store.delete_by_repository(owner, name)

    def purge(self) -> None:
        """Remove stored chunks for all configured repositories."""
        for repo in self.repositories:
            try:
                self.reprocess_repository(repo.owner, repo.name)
            except Exception as exc:
                LOGGER.warning("Failed purge for %s: %s", repo.full_name, exc)

    def index(self, *, force: bool = False) -> IndexStats | None:
        """Index every configured repository.

        Returns None without doing anything when another run is in progress.
        """
        if not self.guard.try_start():
            LOGGER.info("Repository indexing already in progress")
            return None
        return self.run_claimed(force=force)

    def run_claimed(self, *, force: bool = False) -> IndexStats:
        """Run one pass for a caller that already moved the guard to INDEXING.

        The guard is released when the pass ends, successfully or not.
        """
        started = time.monotonic()
        try:
            LOGGER.info(
                "Starting repository indexing for %d repositories (force: %s)",
                len(self.repositories),
                force,
            )
            if force:
                self.purge()

            listings = self._collect_files()
            work = [(repo, file) for repo, files in listings for file in files]
            empty: set[tuple[str, str, str, str]] = set()
            LOGGER.info("Processing %d text files", len(work))
            stats = IndexStats()

            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                for i in range(0, len(work), self.batch_size):
                    batch = work[i : i + self.batch_size]
                    futures = [
                        (repo, file, executor.submit(self._index_single, repo, file))
                        for repo, file in batch
                    ]
                    for repo, file, future in futures:
                        try:
                            status = future.result()
                            if status == EMPTY:
                                empty.add((repo.owner, repo.name, repo.branch, file.path))
                                status = "skipped"
                            stats.increment(status, file.path)
                        except Exception as exc:
                            LOGGER.warning("Failed to process file %s: %s", file.path, exc)
                            stats.failed += 1
                            stats.processed_files.append(file.path)

                    done = stats.processed + stats.failed
                    if done % PROGRESS_EVERY == 0 or done == len(work):
                        LOGGER.info("Processed %d/%d files (%d failed)", done, len(work), stats.failed)

            self._prune(listings, empty)
            self.last_index_time = time.time()
            LOGGER.info(
                "Repository indexing completed in %.0fms. Processed: %d, Failed: %d",
                (time.monotonic() - started) * 1000,
                stats.processed,
                stats.failed,
            )
            return stats
        finally:
            self.guard.finish()

    def _collect_files(self) -> list[tuple[Repository, list[SourceFile]]]:
        listings: list[tuple[Repository, list[SourceFile]]] = []
        for repo in self.repositories:
            try:
                files = self.source.list_files(repo)
            except Exception as exc:
                LOGGER.error("Failed to list files for %s: %s", repo.full_name, exc)
                continue
            LOGGER.info("Found %d files in %s", len(files), repo.full_name)
            listings.append((repo, [file for file in files if self.source.is_text_file(file.name)]))
        return listings

    def _prune(
        self,
        listings: Sequence[tuple[Repository, list[SourceFile]]],
        empty: set[tuple[str, str, str, str]],
    ) -> None:
        """Drop chunks of files no longer listed, or that no longer yield any chunk."""
        for repo, files in listings:
            # An empty listing is indistinguishable from a failed one; keep what is stored.
            if not files:
                continue
            keep = [
                file.path
                for file in files
                if (repo.owner, repo.name, repo.branch, file.path) not in empty
            ]
            try:
                self.store.delete_files_except(repo.owner, repo.name, repo.branch, keep)
            except Exception as exc:
                LOGGER.warning("Failed to prune stale files for %s: %s", repo.full_name, exc)

    def _index_single(self, repo: Repository, file: SourceFile) -> str:
        """Fetch, chunk and store a single file."""
        fetched = self.source.get_file_content(repo, file.path)
        content = fetched.content
        if not content or not content.strip():
            LOGGER.warning("No text fetched for %s", file.path)
            return EMPTY

        content_hash = compute_sha256(content)
        chunks = [
            Chunk(
                file_path=file.path,
                repository_owner=repo.owner,
                repository_name=repo.name,
                branch_name=repo.branch,
                content=text,
                chunk_index=index,
                content_hash=content_hash,
            )
            for index, text in enumerate(chunk_text(content, max_chars=self.chunk_chars))
        ]
        if not chunks:
            return EMPTY

        status = self.store.upsert_file(
            repo.owner, repo.name, repo.branch, file.path, content_hash, chunks
        )
        LOGGER.debug("Stored %d chunks for %s (%s)", len(chunks), file.path, status)
        return status

    def run_scheduled(self, now: float | None = None) -> bool:
        """Re-index if idle and the last run is older than the interval."""
        current = time.time() if now is None else now
        if self.guard.in_progress or current - self.last_index_time <= self.reindex_interval:
            return False
        LOGGER.info("Starting scheduled repository re-indexing")
        return self.index() is not None

    def start_scheduler(self) -> None:
        if self._scheduler is not None and self._scheduler.is_alive():
            return
        self._stop_event.clear()
        self._scheduler = threading.Thread(target=self._schedule_loop, name="repochat-reindex", daemon=True)
        self._scheduler.start()

    def stop_scheduler(self) -> None:
        self._stop_event.set()
        if self._scheduler is not None:
            self._scheduler.join(timeout=5)
            self._scheduler = None

    def _schedule_loop(self) -> None:
        while not self._stop_event.wait(self.reindex_interval):
            try:
                self.run_scheduled()
            except Exception:
                LOGGER.exception("Scheduled re-indexing failed")

    def status(self) -> list[RepositoryStatus]:
        return [
            RepositoryStatus(
                repository_owner=repo.owner,
                repository_name=repo.name,
                branch_name=repo.branch,
                full_name=repo.full_name,
                indexing_in_progress=self.guard.in_progress,
                last_index_time=self.last_index_time,
            )
            for repo in self.repositories
        ]
