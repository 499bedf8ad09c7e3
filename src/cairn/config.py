"""Cairn configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site: not in this module)
  2. Environment variables  (CAIRN_EMBEDDING_MODEL, CAIRN_DB, CAIRN_WORKSPACE,
                             CAIRN_LOG_LEVEL)
  3. Per-project cairn.yaml  (current directory)
  4. Global ~/.cairn/config.yaml  (no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; the embedding provider reads
them from environment variables (litellm conventions).
All YAML reads use yaml.safe_load(): never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".cairn"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "cairn.yaml"

# Fields that suggest an API key: forbidden in global config.
# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
# Does NOT match legitimate config keys like max_tokens or rrf_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

# Known top-level sections: unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "embedding", "cache", "chunking", "indexing", "watcher", "retrieval", "logging"]
)

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Index database and agent workspace locations (cairn.yaml: storage:)."""

    db: str = str(_GLOBAL_CONFIG_DIR / "cairn.db")
    workspace: str = str(_GLOBAL_CONFIG_DIR / "workspace")


@dataclass
class EmbeddingCfg:
    """Embedding generation (cairn.yaml: embedding:).

    Attributes:
        model: litellm model string for the remote provider. An empty string
            disables the remote provider; only local vectors are produced.
        fallback_dimensions: Size of the local statistical vectors.
        batch_size: Chunks embedded and persisted per indexing batch.
        provider_batch_size: Maximum inputs per remote provider call.
        offload_threshold: Uncached fallback batches larger than this are
            computed in the background worker process.
        max_input_chars: Texts are truncated to this length before a
            remote call.
    """

    model: str = "openai/text-embedding-3-small"
    fallback_dimensions: int = 256
    batch_size: int = 100
    provider_batch_size: int = 2048
    offload_threshold: int = 50
    max_input_chars: int = 8000


@dataclass
class CacheCfg:
    """Embedding cache ceilings (cairn.yaml: cache:)."""

    hot_max_entries: int = 10_000
    persistent_max_entries: int = 200_000


@dataclass
class ChunkingCfg:
    """Chunk sizing (cairn.yaml: chunking:)."""

    max_chars: int = 1500
    min_chars: int = 20
    lines_per_block: int = 80
    csv_rows_per_block: int = 50


@dataclass
class IndexingCfg:
    """File enumeration and indexing limits (cairn.yaml: indexing:).

    ``extensions`` and ``excluded_dirs`` replace the built-in sets when
    given; None keeps the defaults in cairn.index.scanner.
    """

    max_files: int = 10_000
    max_file_bytes: int = 500 * 1024 * 1024
    max_text_read_bytes: int = 10 * 1024 * 1024
    extensions: list[str] | None = None
    excluded_dirs: list[str] | None = None
    progress_throttle_ms: int = 500
    chunk_batch_size: int = 500
    yield_every_files: int = 20
    folder_yield_every_files: int = 50


@dataclass
class WatcherCfg:
    """File watcher (cairn.yaml: watcher:)."""

    enabled: bool = True
    debounce_seconds: float = 5.0


@dataclass
class RetrievalCfg:
    """Hybrid search defaults (cairn.yaml: retrieval:)."""

    top_k: int = 5
    min_score: float = 0.0
    rrf_k: int = 60
    context_max_tokens: int = 2_000


@dataclass
class LoggingCfg:
    """Log verbosity (cairn.yaml: logging:)."""

    level: str = "WARNING"


@dataclass
class CairnConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)
    watcher: WatcherCfg = field(default_factory=WatcherCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}': ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: CairnConfig) -> None:
    positive = {
        "embedding.fallback_dimensions": cfg.embedding.fallback_dimensions,
        "embedding.batch_size": cfg.embedding.batch_size,
        "embedding.provider_batch_size": cfg.embedding.provider_batch_size,
        "embedding.max_input_chars": cfg.embedding.max_input_chars,
        "chunking.max_chars": cfg.chunking.max_chars,
        "chunking.lines_per_block": cfg.chunking.lines_per_block,
        "chunking.csv_rows_per_block": cfg.chunking.csv_rows_per_block,
        "indexing.max_files": cfg.indexing.max_files,
        "indexing.chunk_batch_size": cfg.indexing.chunk_batch_size,
        "retrieval.top_k": cfg.retrieval.top_k,
    }
    for name, value in positive.items():
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    if cfg.logging.level.upper() not in _LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {', '.join(sorted(_LOG_LEVELS))}, "
            f"got '{cfg.logging.level}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _str_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ConfigError(f"Expected a list, got {type(value).__name__}: {value!r}")
    return [str(v) for v in value]


def _cfg_from_dict(data: dict[str, Any]) -> CairnConfig:
    """Build a *CairnConfig* from a merged raw YAML dict."""
    cfg = CairnConfig()

    if "storage" in data:
        s = data["storage"]
        cfg.storage = StorageCfg(
            db=str(s.get("db", cfg.storage.db)),
            workspace=str(s.get("workspace", cfg.storage.workspace)),
        )

    if "embedding" in data:
        e = data["embedding"]
        d = cfg.embedding
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", d.model) or ""),
            fallback_dimensions=int(e.get("fallback_dimensions", d.fallback_dimensions)),
            batch_size=int(e.get("batch_size", d.batch_size)),
            provider_batch_size=int(e.get("provider_batch_size", d.provider_batch_size)),
            offload_threshold=int(e.get("offload_threshold", d.offload_threshold)),
            max_input_chars=int(e.get("max_input_chars", d.max_input_chars)),
        )

    if "cache" in data:
        c = data["cache"]
        cfg.cache = CacheCfg(
            hot_max_entries=int(c.get("hot_max_entries", cfg.cache.hot_max_entries)),
            persistent_max_entries=int(
                c.get("persistent_max_entries", cfg.cache.persistent_max_entries)
            ),
        )

    if "chunking" in data:
        ch = data["chunking"]
        d = cfg.chunking
        cfg.chunking = ChunkingCfg(
            max_chars=int(ch.get("max_chars", d.max_chars)),
            min_chars=int(ch.get("min_chars", d.min_chars)),
            lines_per_block=int(ch.get("lines_per_block", d.lines_per_block)),
            csv_rows_per_block=int(ch.get("csv_rows_per_block", d.csv_rows_per_block)),
        )

    if "indexing" in data:
        ix = data["indexing"]
        d = cfg.indexing
        cfg.indexing = IndexingCfg(
            max_files=int(ix.get("max_files", d.max_files)),
            max_file_bytes=int(ix.get("max_file_bytes", d.max_file_bytes)),
            max_text_read_bytes=int(ix.get("max_text_read_bytes", d.max_text_read_bytes)),
            extensions=_str_list(ix.get("extensions")),
            excluded_dirs=_str_list(ix.get("excluded_dirs")),
            progress_throttle_ms=int(ix.get("progress_throttle_ms", d.progress_throttle_ms)),
            chunk_batch_size=int(ix.get("chunk_batch_size", d.chunk_batch_size)),
            yield_every_files=int(ix.get("yield_every_files", d.yield_every_files)),
            folder_yield_every_files=int(
                ix.get("folder_yield_every_files", d.folder_yield_every_files)
            ),
        )

    if "watcher" in data:
        w = data["watcher"]
        cfg.watcher = WatcherCfg(
            enabled=bool(w.get("enabled", cfg.watcher.enabled)),
            debounce_seconds=float(w.get("debounce_seconds", cfg.watcher.debounce_seconds)),
        )

    if "retrieval" in data:
        r = data["retrieval"]
        d = cfg.retrieval
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", d.top_k)),
            min_score=float(r.get("min_score", d.min_score)),
            rrf_k=int(r.get("rrf_k", d.rrf_k)),
            context_max_tokens=int(r.get("context_max_tokens", d.context_max_tokens)),
        )

    if "logging" in data:
        cfg.logging = LoggingCfg(level=str(data["logging"].get("level", cfg.logging.level)))

    return cfg


def _apply_env_overrides(cfg: CairnConfig) -> CairnConfig:
    """Apply CAIRN_* environment variable overrides (layer 2)."""
    if (model := os.environ.get("CAIRN_EMBEDDING_MODEL")) is not None:
        cfg.embedding.model = model
    if db := os.environ.get("CAIRN_DB"):
        cfg.storage.db = db
    if workspace := os.environ.get("CAIRN_WORKSPACE"):
        cfg.storage.workspace = workspace
    if level := os.environ.get("CAIRN_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CairnConfig:
    """Load and return a merged *CairnConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *cairn.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *CairnConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.cairn/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Cairn global configuration.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "\n"
            "retrieval:\n"
            "  top_k: 5\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
