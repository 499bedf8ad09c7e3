"""Remote embedding provider over LiteLLM, plus its health state.

Calls are made with ``num_retries=0``: a failed call is answered locally by
the statistical fallback, never retried upstream.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

# HTTP statuses that permanently disable the provider for the process.
FATAL_STATUSES = frozenset({401, 403, 429})
QUOTA_CODE = "insufficient_quota"

MAX_BATCH = 2048
MAX_INPUT_CHARS = 8000

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
}


# ------------------------------------------------------------------
# Errors + health
# ------------------------------------------------------------------


class ProviderError(RuntimeError):
    """A remote embedding call failed.

    Attributes:
        status: HTTP status code when the failure came from the API.
        code: Provider error code (e.g. ``insufficient_quota``), if any.
    """

    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def disables_provider(self) -> bool:
        """True for auth and quota failures; these will not heal on retry."""
        return self.status in FATAL_STATUSES or self.code == QUOTA_CODE


@dataclass(frozen=True)
class Healthy:
    pass


@dataclass(frozen=True)
class Disabled:
    reason: str


ProviderHealth = Healthy | Disabled


# ------------------------------------------------------------------
# Provider
# ------------------------------------------------------------------


def api_key_available(model: str) -> bool:
    """Return True if the env var LiteLLM needs for *model* is set (or none is needed)."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    if provider not in _PROVIDER_ENV:
        return True  # unknown provider: let LiteLLM decide at call time
    env_var = _PROVIDER_ENV[provider]
    return env_var is None or bool(os.getenv(env_var))


class RemoteEmbeddingProvider:
    """Thin synchronous wrapper around ``litellm.embedding()``.

    Args:
        model: LiteLLM model string in 'provider/model' format.
        max_batch: Largest number of inputs accepted per call.
        max_input_chars: Each input is truncated to this many characters.
    """

    def __init__(
        self,
        model: str,
        *,
        max_batch: int = MAX_BATCH,
        max_input_chars: int = MAX_INPUT_CHARS,
    ) -> None:
        if not model:
            raise ValueError("model must be a non-empty LiteLLM model string")
        self.model = model
        self.max_batch = max_batch
        self.max_input_chars = max_input_chars

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed up to ``max_batch`` texts in one upstream call.

        Raises:
            ValueError: If *texts* is larger than ``max_batch``.
            ProviderError: On any upstream failure.
        """
        if len(texts) > self.max_batch:
            raise ValueError(f"batch of {len(texts)} exceeds provider limit {self.max_batch}")
        if not texts:
            return []
        inputs = [t[: self.max_input_chars] for t in texts]
        try:
            response = litellm.embedding(model=self.model, input=inputs, num_retries=0)
        except Exception as exc:
            raise _to_provider_error(exc) from exc

        data = sorted(response.data, key=lambda d: _field(d, "index", 0))
        vectors = [list(_field(d, "embedding")) for d in data]
        if len(vectors) != len(texts):
            raise ProviderError(
                f"provider returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        return vectors


def _field(item: object, name: str, default: object = None) -> object:
    # LiteLLM returns plain dicts for OpenAI-compatible providers, objects for some others.
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _to_provider_error(exc: Exception) -> ProviderError:
    status = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)
    if not isinstance(status, int):
        status = None
    if not isinstance(code, str):
        code = None
    if code is None and QUOTA_CODE in str(exc):
        code = QUOTA_CODE
    return ProviderError(f"{type(exc).__name__}: {exc}", status=status, code=code)
