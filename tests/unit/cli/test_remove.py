"""Tests for cairn add-folder / remove-folder commands."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from cairn.cli.main import app
from cairn.db.connection import Database
from cairn.db.repository import Repository

runner = CliRunner()


def _docs(tmp_path: Path) -> Path:
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "pump.txt").write_text(
        "The well pump pressure switch trips at forty psi.", encoding="utf-8"
    )
    return docs


def _indexed_folders(tmp_path: Path) -> list[str]:
    with Database(tmp_path / "index" / "cairn.db") as conn:
        return Repository(conn, vector_search=False).list_indexed_folders()


# ---------------------------------------------------------------------------
# add-folder
# ---------------------------------------------------------------------------


def test_add_folder_indexes(cli_env: list[str], tmp_path: Path) -> None:
    docs = _docs(tmp_path)
    result = runner.invoke(app, ["add-folder", str(docs), *cli_env])
    assert result.exit_code == 0, result.output
    assert "Indexed 1 files, 1 chunks" in result.output
    assert _indexed_folders(tmp_path) == [str(docs.resolve())]


def test_add_folder_missing_exits_one(cli_env: list[str], tmp_path: Path) -> None:
    result = runner.invoke(app, ["add-folder", str(tmp_path / "nope"), *cli_env])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_add_folder_twice_exits_one(cli_env: list[str], tmp_path: Path) -> None:
    docs = _docs(tmp_path)
    runner.invoke(app, ["add-folder", str(docs), *cli_env])
    result = runner.invoke(app, ["add-folder", str(docs), *cli_env])
    assert result.exit_code == 1
    assert "already indexed" in result.output


# ---------------------------------------------------------------------------
# remove-folder
# ---------------------------------------------------------------------------


def test_remove_folder_with_yes(cli_env: list[str], tmp_path: Path) -> None:
    docs = _docs(tmp_path)
    runner.invoke(app, ["add-folder", str(docs), *cli_env])
    result = runner.invoke(app, ["remove-folder", str(docs), "--yes", *cli_env])
    assert result.exit_code == 0, result.output
    assert "Removed" in result.output
    assert _indexed_folders(tmp_path) == []
    assert docs.exists()


def test_remove_folder_confirm_declined(cli_env: list[str], tmp_path: Path) -> None:
    docs = _docs(tmp_path)
    runner.invoke(app, ["add-folder", str(docs), *cli_env])
    result = runner.invoke(app, ["remove-folder", str(docs), *cli_env], input="n\n")
    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert _indexed_folders(tmp_path) == [str(docs.resolve())]


def test_remove_folder_confirm_accepted(cli_env: list[str], tmp_path: Path) -> None:
    docs = _docs(tmp_path)
    runner.invoke(app, ["add-folder", str(docs), *cli_env])
    result = runner.invoke(app, ["remove-folder", str(docs), *cli_env], input="y\n")
    assert result.exit_code == 0
    assert _indexed_folders(tmp_path) == []


def test_remove_unknown_folder_exits_one(cli_env: list[str], tmp_path: Path) -> None:
    result = runner.invoke(app, ["remove-folder", str(tmp_path / "never"), "-y", *cli_env])
    assert result.exit_code == 1
    assert "not indexed" in result.output
