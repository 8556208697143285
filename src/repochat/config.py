"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from repochat.models import Repository

ENV_PREFIX = "REPOCHAT_"


def _get_default_db_path() -> Path:
    """Get the default database path based on the execution context."""
    # When running from a checkout, prefer local data/ if it exists
    local_db = Path("data/repochat.db")
    if local_db.parent.exists():
        return local_db

    return Path.home() / ".repochat" / "repochat.db"


def parse_repositories(value: str) -> list[Repository]:
    """Parse ``owner/name[@branch]`` entries separated by commas."""
    repositories: list[Repository] = []
    for raw in value.split(","):
        entry = raw.strip()
        if not entry:
            continue
        slug, _, branch = entry.partition("@")
        owner, sep, name = slug.partition("/")
        if not sep or not owner or not name:
            raise ValueError(f"Invalid repository entry: {entry!r} (expected owner/name[@branch])")
        repositories.append(Repository(owner=owner, name=name, branch=branch or "main"))
    return repositories


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    chunk_chars: int = 3000
    repositories: list[Repository] = field(default_factory=list)
    github_base_url: str = "https://api.github.com"
    github_token: str | None = None
    ollama_base_url: str = "http://localhost:11434"
    model_name: str = "llama3.1"
    generator_timeout: float = 600.0
    request_timeout: float = 660.0
    clean_on_startup: bool = True
    reindex_interval: float = 6 * 60 * 60
    batch_size: int = 10
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from ``REPOCHAT_*`` environment variables."""
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        config = cls(db_path=Path(get("DB_PATH")) if get("DB_PATH") else None)
        if get("REPOSITORIES"):
            config.repositories = parse_repositories(get("REPOSITORIES") or "")
        if get("GITHUB_BASE_URL"):
            config.github_base_url = get("GITHUB_BASE_URL") or config.github_base_url
        config.github_token = get("GITHUB_TOKEN") or None
        if get("OLLAMA_BASE_URL"):
            config.ollama_base_url = get("OLLAMA_BASE_URL") or config.ollama_base_url
        if get("MODEL"):
            config.model_name = get("MODEL") or config.model_name
        if get("CHUNK_CHARS"):
            config.chunk_chars = int(get("CHUNK_CHARS") or config.chunk_chars)
        if get("GENERATOR_TIMEOUT"):
            config.generator_timeout = float(get("GENERATOR_TIMEOUT") or config.generator_timeout)
        if get("REQUEST_TIMEOUT"):
            config.request_timeout = float(get("REQUEST_TIMEOUT") or config.request_timeout)
        if get("CLEAN_ON_STARTUP") is not None:
            config.clean_on_startup = _as_bool(get("CLEAN_ON_STARTUP") or "")
        if get("REINDEX_INTERVAL"):
            config.reindex_interval = float(get("REINDEX_INTERVAL") or config.reindex_interval)
        return config

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
