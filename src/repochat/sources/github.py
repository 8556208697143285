"""GitHub contents API client used as the document source."""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Dict, List

import httpx

from repochat.models import Repository, SourceFile
from repochat.utils.files import is_text_file

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"


class SourceError(RuntimeError):
    """Raised when a file cannot be fetched from the source host."""


class GitHubSource:
    """Lists and fetches repository files through the GitHub contents API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"token {token}"
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
        )
        self._cache: Dict[str, List[SourceFile]] = {}
        self._cache_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def is_text_file(self, name: str | None) -> bool:
        return is_text_file(name)

    def _contents_url(self, repository: Repository, path: str) -> str:
        return f"/repos/{repository.owner}/{repository.name}/contents/{path}"

    def list_files(self, repository: Repository, path: str = "") -> List[SourceFile]:
        """Recursively list files under ``path``. Failures yield an empty list."""
        cache_key = f"{repository.full_name}:{path}"
        with self._cache_lock:
            if cache_key in self._cache:
                LOGGER.debug("Cache hit for: %s", cache_key)
                return list(self._cache[cache_key])

        try:
            response = self._client.get(
                self._contents_url(repository, path), params={"ref": repository.branch}
            )
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to fetch repository contents for %s: %s", repository.full_name, exc)
            return []

        if response.status_code != 200:
            LOGGER.error(
                "GitHub API error for %s/%s: %s - %s",
                repository.full_name,
                path,
                response.status_code,
                response.text,
            )
            return []

        payload = response.json()
        files: List[SourceFile] = []
        if isinstance(payload, list):
            for item in payload:
                entry = SourceFile(
                    path=item["path"],
                    name=item["name"],
                    type=item.get("type", "file"),
                    size=int(item.get("size") or 0),
                    repository=repository.full_name,
                )
                if entry.type == "dir":
                    files.extend(self.list_files(repository, entry.path))
                else:
                    files.append(entry)

        with self._cache_lock:
            self._cache[cache_key] = files
        return list(files)

    def get_file_content(self, repository: Repository, path: str) -> SourceFile:
        """Fetch and base64-decode one file."""
        try:
            response = self._client.get(
                self._contents_url(repository, path), params={"ref": repository.branch}
            )
        except httpx.HTTPError as exc:
            raise SourceError(f"Failed to fetch {path} from {repository.full_name}: {exc}") from exc

        if response.status_code != 200:
            raise SourceError(
                f"GitHub API error for file {path}: {response.status_code} - {response.text}"
            )

        payload = response.json()
        content: str | None = None
        if payload.get("content"):
            encoded = "".join(payload["content"].split())
            try:
                content = base64.b64decode(encoded).decode("utf-8", errors="replace")
            except (binascii.Error, ValueError) as exc:
                raise SourceError(f"Undecodable content for {path}: {exc}") from exc

        return SourceFile(
            path=payload.get("path", path),
            name=payload.get("name", path.rsplit("/", 1)[-1]),
            type=payload.get("type", "file"),
            size=int(payload.get("size") or 0),
            repository=repository.full_name,
            content=content,
        )

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()
        LOGGER.info("Repository cache cleared")

    @property
    def cache_size(self) -> int:
        return len(self._cache)
