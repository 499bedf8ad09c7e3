"""Tests for cairn rich error messages."""

from __future__ import annotations

import pytest

from cairn.cli.errors import (
    err_config,
    err_folder,
    err_index_not_ready,
    err_no_api_key,
    err_reindex_failed,
    warn_indexing_busy,
)


def _has_action(msg: str) -> bool:
    """Every error must contain a cause AND an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "set:", "fix ", "re-run", "export "])


# ---------------------------------------------------------------------------
# err_no_api_key
# ---------------------------------------------------------------------------


def test_err_no_api_key_names_model() -> None:
    assert "openai/text-embedding-3-small" in err_no_api_key("openai/text-embedding-3-small")


@pytest.mark.parametrize(
    "model, env_var",
    [
        ("openai/text-embedding-3-small", "OPENAI_API_KEY"),
        ("text-embedding-3-small", "OPENAI_API_KEY"),
        ("cohere/embed-english-v3.0", "COHERE_API_KEY"),
        ("myprovider/model", "MYPROVIDER_API_KEY"),
    ],
)
def test_err_no_api_key_env_var(model: str, env_var: str) -> None:
    assert env_var in err_no_api_key(model)


def test_err_no_api_key_mentions_fallback() -> None:
    msg = err_no_api_key("openai/x")
    assert "local embeddings" in msg
    assert "CAIRN_EMBEDDING_MODEL" in msg


# ---------------------------------------------------------------------------
# Other errors
# ---------------------------------------------------------------------------


def test_err_config_includes_message() -> None:
    msg = err_config("retrieval.top_k must be >= 1, got 0")
    assert "retrieval.top_k" in msg
    assert _has_action(msg)


def test_err_folder_points_to_status() -> None:
    msg = err_folder("Folder is not indexed: /x")
    assert "/x" in msg
    assert "cairn status" in msg


def test_err_index_not_ready_has_action() -> None:
    msg = err_index_not_ready()
    assert "cairn reindex" in msg
    assert _has_action(msg)


def test_err_reindex_failed_includes_error() -> None:
    assert "disk full" in err_reindex_failed("disk full")
    assert "unknown error" in err_reindex_failed(None)
    assert _has_action(err_reindex_failed("x"))


def test_warn_indexing_busy() -> None:
    assert "already in progress" in warn_indexing_busy()


@pytest.mark.parametrize(
    "msg",
    [
        err_config("bad"),
        err_folder("bad"),
        err_index_not_ready(),
        err_reindex_failed("bad"),
    ],
)
def test_errors_are_red(msg: str) -> None:
    assert msg.startswith("[red]Error:[/]")
