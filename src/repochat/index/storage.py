"""SQLite-backed chunk store with copy-on-write in-memory snapshots."""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Protocol, Sequence

from repochat.models import Chunk

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class ChunkStore(Protocol):
    """Operations the retrieval and indexing layers need from chunk storage."""

    def find_all(self) -> List[Chunk]: ...

    def save(self, chunk: Chunk) -> Chunk: ...

    def save_all(self, chunks: Iterable[Chunk]) -> List[Chunk]: ...

    def delete_by_repository(self, owner: str, name: str) -> int: ...

    def count(self) -> int: ...

    def size_on_disk_bytes(self) -> int: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteChunkStore:
    """Persistence layer for repository chunks.

    Every committed write publishes a fresh immutable tuple of chunks. Readers
    only ever copy the currently published tuple, so they never wait on writers
    and never observe a half-applied write.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()
        self._snapshot: tuple[Chunk, ...] = self._load()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version > SCHEMA_VERSION:
                raise RuntimeError(
                    f"Chunk database {self.db_path} has schema version {version}, "
                    f"this build supports up to {SCHEMA_VERSION}"
                )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    file_path TEXT NOT NULL,
                    repository_owner TEXT NOT NULL,
                    repository_name TEXT NOT NULL,
                    branch_name TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    content_hash TEXT,
                    created_at TEXT,
                    updated_at TEXT,
                    UNIQUE (file_path, repository_owner, repository_name, branch_name, chunk_index)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_repository
                    ON chunks(repository_owner, repository_name)
                """
            )
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def _load(self) -> tuple[Chunk, ...]:
        rows = self._conn.execute("SELECT * FROM chunks ORDER BY rowid").fetchall()
        chunks: list[Chunk] = []
        for row in rows:
            try:
                chunks.append(_row_to_chunk(row))
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed chunk row %s: %s", row["id"], exc)
        LOGGER.info("Loaded %d chunks from %s", len(chunks), self.db_path)
        return tuple(chunks)

    def find_all(self) -> List[Chunk]:
        """Return a copy of the current corpus."""
        return list(self._snapshot)

    def save(self, chunk: Chunk) -> Chunk:
        return self.save_all([chunk])[0]

    def save_all(self, chunks: Iterable[Chunk]) -> List[Chunk]:
        stamped = [_stamp(chunk) for chunk in chunks]
        if not stamped:
            return []
        with self._lock:
            with self.transaction() as conn:
                _insert(conn, stamped)
            self._snapshot = self._snapshot + tuple(stamped)
        return stamped

    def file_hash(self, owner: str, name: str, branch_name: str, file_path: str) -> str | None:
        """Content hash recorded for an indexed file, if any."""
        for chunk in self._snapshot:
            if _same_file(chunk, owner, name, branch_name, file_path):
                return chunk.content_hash
        return None

    def upsert_file(
        self,
        owner: str,
        name: str,
        branch_name: str,
        file_path: str,
        content_hash: str,
        chunks: Sequence[Chunk],
    ) -> str:
        """Replace the chunks of one file unless its content hash is unchanged.

        Returns 'inserted', 'updated' or 'skipped'.
        """
        with self._lock:
            existing = [
                chunk
                for chunk in self._snapshot
                if _same_file(chunk, owner, name, branch_name, file_path)
            ]
            if existing and existing[0].content_hash == content_hash:
                return "skipped"

            stamped = [_stamp(chunk) for chunk in chunks]
            with self.transaction() as conn:
                if existing:
                    conn.execute(
                        """
                        DELETE FROM chunks
                        WHERE repository_owner = ? AND repository_name = ?
                          AND branch_name = ? AND file_path = ?
                        """,
                        (owner, name, branch_name, file_path),
                    )
                _insert(conn, stamped)

            stale = {chunk.chunk_id for chunk in existing}
            kept = tuple(chunk for chunk in self._snapshot if chunk.chunk_id not in stale)
            self._snapshot = kept + tuple(stamped)
            return "updated" if existing else "inserted"

    def delete_files_except(
        self, owner: str, name: str, branch_name: str, keep_paths: Iterable[str]
    ) -> int:
        """Drop chunks of files in one repository branch that are not in ``keep_paths``."""
        keep = set(keep_paths)
        with self._lock:
            stale = [
                chunk
                for chunk in self._snapshot
                if chunk.repository_owner == owner
                and chunk.repository_name == name
                and chunk.branch_name == branch_name
                and chunk.file_path not in keep
            ]
            if not stale:
                return 0
            with self.transaction() as conn:
                conn.executemany(
                    "DELETE FROM chunks WHERE id = ?",
                    [(chunk.chunk_id,) for chunk in stale],
                )
            stale_ids = {chunk.chunk_id for chunk in stale}
            self._snapshot = tuple(
                chunk for chunk in self._snapshot if chunk.chunk_id not in stale_ids
            )
        LOGGER.info("Removed %d stale chunks for %s/%s@%s", len(stale), owner, name, branch_name)
        return len(stale)

    def delete_by_repository(self, owner: str, name: str) -> int:
        """Remove every chunk of a repository, returning how many were removed."""
        with self._lock:
            with self.transaction() as conn:
                removed = conn.execute(
                    "DELETE FROM chunks WHERE repository_owner = ? AND repository_name = ?",
                    (owner, name),
                ).rowcount
            self._snapshot = tuple(
                chunk
                for chunk in self._snapshot
                if not (chunk.repository_owner == owner and chunk.repository_name == name)
            )
        LOGGER.info("Deleted %d chunks for %s/%s", removed, owner, name)
        return removed

    def count(self) -> int:
        return len(self._snapshot)

    def size_on_disk_bytes(self) -> int:
        try:
            return self.db_path.stat().st_size
        except OSError:
            return -1


def _stamp(chunk: Chunk) -> Chunk:
    now = _now()
    return replace(
        chunk,
        chunk_id=chunk.chunk_id or str(uuid.uuid4()),
        created_at=chunk.created_at or now,
        updated_at=now,
    )


def _insert(conn: sqlite3.Connection, chunks: Sequence[Chunk]) -> None:
    conn.executemany(
        """
        INSERT INTO chunks(
            id, file_path, repository_owner, repository_name, branch_name,
            chunk_index, content, content_hash, created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (
                chunk.chunk_id,
                chunk.file_path,
                chunk.repository_owner,
                chunk.repository_name,
                chunk.branch_name,
                chunk.chunk_index,
                chunk.content,
                chunk.content_hash,
                chunk.created_at.isoformat() if chunk.created_at else None,
                chunk.updated_at.isoformat() if chunk.updated_at else None,
            )
            for chunk in chunks
        ],
    )


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        chunk_id=row["id"],
        file_path=row["file_path"],
        repository_owner=row["repository_owner"],
        repository_name=row["repository_name"],
        branch_name=row["branch_name"],
        chunk_index=int(row["chunk_index"]),
        content=row["content"],
        content_hash=row["content_hash"],
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row["updated_at"]),
    )


def _same_file(chunk: Chunk, owner: str, name: str, branch_name: str, file_path: str) -> bool:
    return (
        chunk.repository_owner == owner
        and chunk.repository_name == name
        and chunk.branch_name == branch_name
        and chunk.file_path == file_path
    )
