"""Tests for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from docrag.cli import _ensure_db_parent, _setup_logging, app
from docrag.errors import ModelUnavailable, StorageFailure

from conftest import FakeEmbedder

runner = CliRunner()

LAPTOP_TEXT = "Title: Laptop Recommender\nAbstract: A laptop recommender for students.\n"


@pytest.fixture
def fake_model():
    with patch("docrag.cli.EmbeddingModel", return_value=FakeEmbedder()) as mock_cls:
        yield mock_cls


@pytest.fixture
def paper(tmp_path: Path) -> Path:
    path = tmp_path / "paper.txt"
    path.write_text(LAPTOP_TEXT, encoding="utf-8")
    return path


class TestSetupLogging:
    def test_setup_logging_verbose(self) -> None:
        with patch("docrag.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        with patch("docrag.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestEnsureDbParent:
    def test_creates_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "test.db"
        _ensure_db_parent(db_path)
        assert db_path.parent.exists()


class TestIndexCommand:
    def test_index_file(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"

        result = runner.invoke(app, ["index", str(paper), "--db", str(db_path)])

        assert result.exit_code == 0, result.stdout
        assert "paper: 1 chunks" in result.stdout
        assert db_path.exists()

    def test_index_with_doc_id(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"

        result = runner.invoke(app, ["index", str(paper), "--doc-id", "custom", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "custom: 1 chunks" in result.stdout

    def test_doc_id_with_many_files(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        other = tmp_path / "other.txt"
        other.write_text(LAPTOP_TEXT, encoding="utf-8")

        result = runner.invoke(
            app, ["index", str(paper), str(other), "--doc-id", "x", "--db", str(tmp_path / "i.db")]
        )

        assert result.exit_code != 0

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["index", str(tmp_path / "nope.txt")])
        assert result.exit_code != 0

    def test_model_failure(self, paper: Path, tmp_path: Path) -> None:
        failing = MagicMock()
        failing.embed.side_effect = ModelUnavailable("no model")
        with patch("docrag.cli.EmbeddingModel", return_value=failing):
            result = runner.invoke(app, ["index", str(paper), "--db", str(tmp_path / "i.db")])

        assert result.exit_code == 1
        assert "no model" in result.stdout


class TestQueryCommands:
    def test_ask_title(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        runner.invoke(app, ["index", str(paper), "--db", str(db_path)])

        result = runner.invoke(app, ["ask", "what is the title?", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Laptop Recommender" in result.stdout

    def test_search(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        runner.invoke(app, ["index", str(paper), "--db", str(db_path)])

        result = runner.invoke(app, ["search", "laptop", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "paper" in result.stdout

    def test_search_missing_index(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["search", "laptop", "--db", str(tmp_path / "missing.db")])
        assert result.exit_code != 0

    def test_search_no_matches(self, fake_model: MagicMock, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        db_path.touch()

        result = runner.invoke(app, ["search", "laptop", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "No matches found" in result.stdout


class TestDocumentCommands:
    def test_chunks_info_delete(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        runner.invoke(app, ["index", str(paper), "--db", str(db_path)])

        chunks = runner.invoke(app, ["chunks", "paper", "--db", str(db_path)])
        assert chunks.exit_code == 0
        assert "No chunks stored" not in chunks.stdout
        assert "Title" in chunks.stdout

        info = runner.invoke(app, ["info", "paper", "--db", str(db_path)])
        assert info.exit_code == 0
        assert "Laptop Recommender" in info.stdout

        listing = runner.invoke(app, ["documents", "--db", str(db_path)])
        assert "paper" in listing.stdout

        deleted = runner.invoke(app, ["delete", "paper", "--db", str(db_path)])
        assert deleted.exit_code == 0
        assert "Removed 1 chunks of paper" in deleted.stdout

        after = runner.invoke(app, ["chunks", "paper", "--db", str(db_path)])
        assert "No chunks stored" in after.stdout

    def test_delete_missing_index(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["delete", "paper", "--db", str(tmp_path / "missing.db")])

        assert result.exit_code == 0
        assert "nothing to delete" in result.stdout

    def test_info_unknown_document(self, fake_model: MagicMock, paper: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        runner.invoke(app, ["index", str(paper), "--db", str(db_path)])

        result = runner.invoke(app, ["info", "ghost", "--db", str(db_path)])

        assert "Unknown document ghost" in result.stdout


class TestStorageErrors:
    @pytest.mark.parametrize(
        "args",
        [["delete", "paper"], ["chunks", "paper"], ["info", "paper"], ["documents"], ["search", "laptop"]],
    )
    def test_storage_failure_reported(self, args: list, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        db_path.touch()
        with patch("docrag.cli.SQLiteIndexStore", side_effect=StorageFailure("database is locked")):
            result = runner.invoke(app, [*args, "--db", str(db_path)])

        assert result.exit_code == 1
        assert "database is locked" in result.stdout
        assert not isinstance(result.exception, StorageFailure)
