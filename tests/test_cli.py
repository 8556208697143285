"""Tests for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from repochat.cli import _ensure_db_parent, _setup_logging, app
from repochat.generation.ollama import GenerationError
from repochat.index.storage import SQLiteChunkStore
from repochat.models import Chunk


runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("REPOCHAT_REPOSITORIES", "REPOCHAT_MODEL", "REPOCHAT_GITHUB_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    # The web command exports REPOCHAT_DB_PATH.
    monkeypatch.setenv("REPOCHAT_DB_PATH", "unused.db")


@pytest.fixture
def populated_db(tmp_path: Path) -> Path:
    db_path = tmp_path / "chunks.db"
    store = SQLiteChunkStore(db_path)
    store.save_all(
        [
            Chunk(
                file_path="docs/assets.md",
                repository_owner="acme",
                repository_name="docs",
                branch_name="main",
                content="To create an asset open the console and press new.",
                chunk_index=0,
            ),
            Chunk(
                file_path="docs/network.md",
                repository_owner="acme",
                repository_name="docs",
                branch_name="main",
                content="Configure the firewall rules for the cluster network.",
                chunk_index=0,
            ),
        ]
    )
    store.close()
    return db_path


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("repochat.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode sets INFO level."""
        with patch("repochat.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestEnsureDbParent:
    """Tests for _ensure_db_parent helper."""

    def test_ensure_db_parent_creates_directory(self, tmp_path: Path) -> None:
        """Creates parent directory if it doesn't exist."""
        db_path = tmp_path / "subdir" / "test.db"
        assert not db_path.parent.exists()
        _ensure_db_parent(db_path)
        assert db_path.parent.exists()


class TestIndexCommand:
    """Tests for the index command."""

    def test_no_repositories(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["index", "--db", str(tmp_path / "test.db")])
        assert result.exit_code == 0
        assert "No repositories configured" in result.stdout

    def test_invalid_repositories(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["index", "--repos", "not-a-repo", "--db", str(tmp_path / "t.db")])
        assert result.exit_code == 2

    @patch("repochat.cli.GitHubSource")
    @patch("repochat.cli.Indexer")
    def test_index_repositories(
        self,
        mock_indexer_class: MagicMock,
        mock_source_class: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_stats = MagicMock()
        mock_stats.inserted = 3
        mock_stats.updated = 1
        mock_stats.skipped = 0
        mock_stats.failed = 0
        mock_indexer_class.return_value.index.return_value = mock_stats

        result = runner.invoke(
            app,
            ["index", "--repos", "acme/docs@develop", "--reprocess", "--db", str(tmp_path / "t.db")],
        )

        assert result.exit_code == 0
        assert "Inserted: 3" in result.stdout
        mock_indexer_class.return_value.index.assert_called_once_with(force=True)
        repositories = mock_indexer_class.call_args.args[2]
        assert [repo.full_name for repo in repositories] == ["acme/docs"]
        assert repositories[0].branch == "develop"

    @patch("repochat.cli.GitHubSource")
    @patch("repochat.cli.Indexer")
    def test_index_busy(
        self,
        mock_indexer_class: MagicMock,
        mock_source_class: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_indexer_class.return_value.index.return_value = None

        result = runner.invoke(app, ["index", "--repos", "acme/docs", "--db", str(tmp_path / "t.db")])

        assert result.exit_code == 0
        assert "already in progress" in result.stdout


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_database_not_found(self, tmp_path: Path) -> None:
        """Raises error when database doesn't exist."""
        result = runner.invoke(app, ["search", "test query", "--db", str(tmp_path / "missing.db")])
        assert result.exit_code != 0

    def test_search_ranks_files(self, populated_db: Path) -> None:
        result = runner.invoke(app, ["search", "create asset", "--db", str(populated_db)])

        assert result.exit_code == 0
        assert "docs/assets.md" in result.stdout

    def test_search_relaxed(self, populated_db: Path) -> None:
        result = runner.invoke(app, ["search", "firewall", "--relaxed", "--db", str(populated_db)])

        assert result.exit_code == 0
        assert "docs/network.md" in result.stdout

    def test_search_no_results(self, populated_db: Path) -> None:
        result = runner.invoke(app, ["search", "zzz", "--db", str(populated_db)])

        assert result.exit_code == 0
        assert "No matches found" in result.stdout


class TestAskCommand:
    """Tests for the ask command."""

    @patch("repochat.cli.OllamaGenerator")
    def test_ask(self, mock_generator_class: MagicMock, populated_db: Path) -> None:
        mock_generator_class.return_value.model_name = "llama3.1"
        mock_generator_class.return_value.generate.return_value = "Open the console and press new."

        result = runner.invoke(app, ["ask", "how to create asset", "--db", str(populated_db)])

        assert result.exit_code == 0
        assert "Open the console and press new." in result.stdout
        assert "llama3.1" in result.stdout

    @patch("repochat.cli.OllamaGenerator")
    def test_ask_generation_failure(self, mock_generator_class: MagicMock, populated_db: Path) -> None:
        mock_generator_class.return_value.model_name = "llama3.1"
        mock_generator_class.return_value.generate.side_effect = GenerationError("down")

        result = runner.invoke(app, ["ask", "how to create asset", "--db", str(populated_db)])

        assert result.exit_code == 1
        assert "I apologize" in result.stdout

    def test_ask_blank_question(self, populated_db: Path) -> None:
        result = runner.invoke(app, ["ask", "   ", "--db", str(populated_db)])
        assert result.exit_code == 2

    def test_ask_database_not_found(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["ask", "how to create asset", "--db", str(tmp_path / "none.db")])
        assert result.exit_code != 0


class TestStatsCommand:
    """Tests for the stats command."""

    def test_stats_database_not_found(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["stats", "--db", str(tmp_path / "missing.db")])
        assert result.exit_code == 0
        assert "Database not found" in result.stdout

    def test_stats(self, populated_db: Path) -> None:
        result = runner.invoke(app, ["stats", "--db", str(populated_db)])

        assert result.exit_code == 0
        assert "Files: 2, chunks: 2" in result.stdout


class TestWebCommand:
    """Tests for the web command."""

    def test_web_starts_server(self, populated_db: Path) -> None:
        """Starts uvicorn server with correct parameters."""
        with patch("uvicorn.run") as mock_uvicorn_run:
            result = runner.invoke(
                app, ["web", "--host", "0.0.0.0", "--port", "9000", "--db", str(populated_db)]
            )
            assert result.exit_code == 0
            mock_uvicorn_run.assert_called_once()
            call_kwargs = mock_uvicorn_run.call_args[1]
            assert call_kwargs["host"] == "0.0.0.0"
            assert call_kwargs["port"] == 9000

    def test_web_warns_missing_database(self, tmp_path: Path) -> None:
        """Shows warning when database doesn't exist."""
        with patch("uvicorn.run"):
            result = runner.invoke(app, ["web", "--db", str(tmp_path / "nonexistent.db")])
            assert result.exit_code == 0
            assert "database not found" in result.stdout.lower()
