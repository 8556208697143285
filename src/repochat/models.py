"""Core repochat data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True, frozen=True)
class Repository:
    """A source repository configured for indexing."""

    owner: str
    name: str
    branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(slots=True)
class SourceFile:
    """Entry of a repository listing, optionally carrying its text."""

    path: str
    name: str
    type: str = "file"
    size: int = 0
    repository: str = ""
    content: str | None = None


@dataclass(slots=True, frozen=True)
class Chunk:
    """Fragment of a repository document, the unit of retrieval."""

    file_path: str
    repository_owner: str
    repository_name: str
    branch_name: str
    content: str
    chunk_index: int
    content_hash: str | None = None
    chunk_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str, str, str, int]:
        return (
            self.file_path,
            self.repository_owner,
            self.repository_name,
            self.branch_name,
            self.chunk_index,
        )


@dataclass(slots=True, frozen=True)
class ScoredChunk:
    chunk: Chunk
    score: float


@dataclass(slots=True, frozen=True)
class FileScore:
    file_path: str
    score: float
