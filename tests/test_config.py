"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from repochat.config import AppConfig, _get_default_db_path, parse_repositories
from repochat.models import Repository


class TestDefaultDbPath:
    """Test the default database location."""

    def test_home_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert _get_default_db_path() == Path.home() / ".repochat" / "repochat.db"

    def test_local_data_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "data").mkdir()
        assert _get_default_db_path() == Path("data/repochat.db")


class TestParseRepositories:
    """Test parse_repositories function."""

    def test_with_and_without_branch(self) -> None:
        repos = parse_repositories("acme/docs@develop, acme/wiki")

        assert repos == [
            Repository("acme", "docs", "develop"),
            Repository("acme", "wiki", "main"),
        ]

    def test_empty_entries_ignored(self) -> None:
        assert parse_repositories(" , acme/docs ,") == [Repository("acme", "docs")]

    @pytest.mark.parametrize("value", ["acme", "acme/", "/docs", "acme@main"])
    def test_invalid_entry(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_repositories(value)


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_config(self) -> None:
        """Should create config with default values."""
        config = AppConfig(db_path=Path("data/repochat.db"))

        assert config.chunk_chars == 3000
        assert config.repositories == []
        assert config.github_base_url == "https://api.github.com"
        assert config.github_token is None
        assert config.ollama_base_url == "http://localhost:11434"
        assert config.model_name == "llama3.1"
        assert config.generator_timeout == 600.0
        assert config.request_timeout == 660.0
        assert config.clean_on_startup is True
        assert config.reindex_interval == 21600
        assert config.batch_size == 10
        assert config.max_workers == 4

    def test_db_path_filled_in(self) -> None:
        assert AppConfig().db_path is not None

    def test_from_env_defaults(self) -> None:
        config = AppConfig.from_env({})

        assert config.repositories == []
        assert config.model_name == "llama3.1"
        assert config.clean_on_startup is True

    def test_from_env_values(self) -> None:
        config = AppConfig.from_env(
            {
                "REPOCHAT_DB_PATH": "/srv/repochat/chunks.db",
                "REPOCHAT_REPOSITORIES": "acme/docs@develop",
                "REPOCHAT_GITHUB_TOKEN": "secret",
                "REPOCHAT_OLLAMA_BASE_URL": "http://ollama:11434",
                "REPOCHAT_MODEL": "mistral",
                "REPOCHAT_CHUNK_CHARS": "1500",
                "REPOCHAT_REQUEST_TIMEOUT": "30",
                "REPOCHAT_CLEAN_ON_STARTUP": "false",
                "REPOCHAT_REINDEX_INTERVAL": "60",
            }
        )

        assert config.db_path == Path("/srv/repochat/chunks.db")
        assert config.repositories == [Repository("acme", "docs", "develop")]
        assert config.github_token == "secret"
        assert config.ollama_base_url == "http://ollama:11434"
        assert config.model_name == "mistral"
        assert config.chunk_chars == 1500
        assert config.request_timeout == 30.0
        assert config.clean_on_startup is False
        assert config.reindex_interval == 60.0

    def test_resolve_db_path_absolute(self) -> None:
        """Should return absolute path as-is."""
        config = AppConfig(db_path=Path("/absolute/path/db.db"))

        assert config.resolve_db_path() == Path("/absolute/path/db.db")

    def test_resolve_db_path_relative_no_base(self) -> None:
        """Should return relative path when no base_dir provided."""
        config = AppConfig(db_path=Path("relative/db.db"))

        assert config.resolve_db_path(base_dir=None) == Path("relative/db.db")

    def test_resolve_db_path_relative_with_base(self) -> None:
        """Should resolve relative path against base_dir."""
        config = AppConfig(db_path=Path("relative/db.db"))

        resolved = config.resolve_db_path(base_dir=Path("/base/directory"))

        assert resolved == Path("/base/directory/relative/db.db")
