"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from cairn.config import CairnConfig
from cairn.db.connection import Database
from cairn.db.repository import Repository
from cairn.db.schema import initialize


@pytest.fixture
def database(tmp_path):
    """File-based Database in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "cairn.db")
    conn = db.connect()
    initialize(conn)
    yield db, conn
    conn.close()


@pytest.fixture
def tmp_db(database):
    """Open connection with schema initialized."""
    return database[1]


@pytest.fixture
def repo(database):
    db, conn = database
    return Repository(conn, vector_search=db.vector_search)


@pytest.fixture
def vec_repo(repo):
    """Repository with sqlite-vec loaded; skips where the extension is unavailable."""
    if not repo.has_vector_search_capability():
        pytest.skip("sqlite-vec not loadable in this Python build")
    return repo


@pytest.fixture
def cfg(tmp_path, monkeypatch) -> CairnConfig:
    """Config pointing at tmp_path with remote embeddings disabled."""
    for var in ("CAIRN_EMBEDDING_MODEL", "CAIRN_DB", "CAIRN_WORKSPACE", "CAIRN_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    c = CairnConfig()
    c.storage.db = str(tmp_path / "index" / "cairn.db")
    c.storage.workspace = str(tmp_path / "workspace")
    c.embedding.model = ""
    c.watcher.debounce_seconds = 0.05
    return c


@pytest.fixture
def cli_env(tmp_path, monkeypatch) -> list[str]:
    """Isolate CLI runs from ~/.cairn and ./cairn.yaml; returns the --db/--workspace args."""
    for var in ("CAIRN_DB", "CAIRN_WORKSPACE", "CAIRN_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CAIRN_EMBEDDING_MODEL", "")
    monkeypatch.setattr("cairn.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    monkeypatch.chdir(tmp_path)
    return ["--db", str(tmp_path / "index" / "cairn.db"), "--workspace", str(tmp_path / "workspace")]
