"""Tests for cairn config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from cairn.config import ConfigError, ensure_global_config, load_config


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("CAIRN_EMBEDDING_MODEL", "CAIRN_DB", "CAIRN_WORKSPACE", "CAIRN_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


def _load(tmp_path: Path, global_cfg: Path | None = None):
    return load_config(
        project_dir=tmp_path,
        global_config_path=global_cfg or tmp_path / "nonexistent" / "config.yaml",
    )


# ---------------------------------------------------------------------------
# Defaults: no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = _load(tmp_path)

    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.fallback_dimensions == 256
    assert cfg.embedding.provider_batch_size == 2048
    assert cfg.embedding.batch_size == 100
    assert cfg.cache.hot_max_entries == 10_000
    assert cfg.chunking.max_chars == 1500
    assert cfg.chunking.min_chars == 20
    assert cfg.indexing.max_files == 10_000
    assert cfg.indexing.extensions is None
    assert cfg.watcher.enabled is True
    assert cfg.watcher.debounce_seconds == 5.0
    assert cfg.retrieval.top_k == 5
    assert cfg.retrieval.rrf_k == 60
    assert cfg.logging.level == "WARNING"
    assert cfg.storage.db.endswith("cairn.db")


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "cohere/embed-english-v3.0"}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.embedding.model == "cohere/embed-english-v3.0"
    assert cfg.embedding.fallback_dimensions == 256


def test_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("# nothing here\n", encoding="utf-8")
    assert _load(tmp_path, global_cfg).retrieval.top_k == 5


def test_project_partial_override_keeps_global_values(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"retrieval": {"top_k": 20, "min_score": 0.2}})
    _write_yaml(tmp_path / "cairn.yaml", {"retrieval": {"top_k": 3}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.retrieval.top_k == 3
    assert cfg.retrieval.min_score == 0.2


def test_empty_model_disables_remote(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"embedding": {"model": None}})
    assert _load(tmp_path).embedding.model == ""


def test_indexing_lists(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "cairn.yaml",
        {"indexing": {"extensions": [".md", ".txt"], "excluded_dirs": ["archive"]}},
    )
    cfg = _load(tmp_path)
    assert cfg.indexing.extensions == [".md", ".txt"]
    assert cfg.indexing.excluded_dirs == ["archive"]


def test_indexing_list_must_be_list(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"indexing": {"extensions": ".md"}})
    with pytest.raises(ConfigError, match="Expected a list"):
        _load(tmp_path)


def test_watcher_section(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"watcher": {"enabled": False, "debounce_seconds": 1}})
    cfg = _load(tmp_path)
    assert cfg.watcher.enabled is False
    assert cfg.watcher.debounce_seconds == 1.0


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "data, field",
    [
        ({"retrieval": {"top_k": 0}}, "retrieval.top_k"),
        ({"chunking": {"max_chars": 0}}, "chunking.max_chars"),
        ({"embedding": {"provider_batch_size": -1}}, "embedding.provider_batch_size"),
    ],
)
def test_out_of_range_values_rejected(tmp_path: Path, data: dict, field: str) -> None:
    _write_yaml(tmp_path / "cairn.yaml", data)
    with pytest.raises(ConfigError, match=field):
        _load(tmp_path)


def test_invalid_log_level(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"logging": {"level": "LOUD"}})
    with pytest.raises(ConfigError, match="logging.level"):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# API key validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "bad_key",
    ["api_key", "apikey", "OPENAI_API_KEY", "secret", "password", "token", "api-key"],
)
def test_global_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    """Global config containing API key-like field names raises ConfigError."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text(f"{bad_key}: sk-abc123\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_global_config_rejects_nested_api_key(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"api_key": "sk-secret"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_context_max_tokens_is_not_a_secret(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"retrieval": {"context_max_tokens": 900, "rrf_k": 30}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.retrieval.context_max_tokens == 900
    assert cfg.retrieval.rrf_k == 30


# ---------------------------------------------------------------------------
# Unknown key warnings
# ---------------------------------------------------------------------------


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"generation": {"model": "x"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)

    assert any("generation" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


def test_env_var_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"storage": {"db": "/from/yaml.db"}})
    monkeypatch.setenv("CAIRN_EMBEDDING_MODEL", "ollama/nomic-embed-text")
    monkeypatch.setenv("CAIRN_DB", "/from/env.db")
    monkeypatch.setenv("CAIRN_WORKSPACE", "/from/env/ws")
    monkeypatch.setenv("CAIRN_LOG_LEVEL", "debug")

    cfg = _load(tmp_path)
    assert cfg.embedding.model == "ollama/nomic-embed-text"
    assert cfg.storage.db == "/from/env.db"
    assert cfg.storage.workspace == "/from/env/ws"
    assert cfg.logging.level == "debug"


def test_env_var_empty_model_disables_remote(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAIRN_EMBEDDING_MODEL", "")
    assert _load(tmp_path).embedding.model == ""


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".cairn" / "config.yaml"
    assert ensure_global_config(target) == target

    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["embedding"]["model"] == "openai/text-embedding-3-small"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    # The generated file must pass its own API key check.
    assert _load(tmp_path, target).retrieval.top_k == 5


def test_ensure_global_config_idempotent(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("retrieval:\n  top_k: 7\n", encoding="utf-8")
    ensure_global_config(target)
    assert "top_k: 7" in target.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# yaml.safe_load enforcement (regression guard)
# ---------------------------------------------------------------------------


def test_config_does_not_execute_yaml_load(tmp_path: Path) -> None:
    """Python object tags are rejected by safe_load instead of executed."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("!!python/object/apply:os.system ['echo pwned']\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        _load(tmp_path, global_cfg)
