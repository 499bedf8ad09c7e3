"""Cairn rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from cairn.cli.errors import err_folder
    console.print(err_folder(str(exc)))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*.

    Example:
        No API key for 'openai/text-embedding-3-small'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "voyage": "VOYAGE_API_KEY",
        "azure": "AZURE_API_KEY",
    }
    provider = model.split("/")[0] if "/" in model else "openai"
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[yellow]Warning:[/] No API key for '{model}'. Using local embeddings.\n"
        f"  Set:  export {env_var}=sk-...\n"
        "  Or disable remote embeddings:  export CAIRN_EMBEDDING_MODEL="
    )


def err_config(message: str) -> str:
    """Config file could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix ~/.cairn/config.yaml or ./cairn.yaml and retry."
    )


def err_folder(message: str) -> str:
    """add-folder / remove-folder rejected the path."""
    return (
        f"[red]Error:[/] {message}\n"
        "  Run:  cairn status  to see the indexed folders."
    )


def err_index_not_ready() -> str:
    """Search could not bootstrap the index."""
    return (
        "[red]Error:[/] The index is not ready and could not be built.\n"
        "  Run:  cairn reindex  and check the log output for the failing step."
    )


def err_reindex_failed(error: str | None) -> str:
    """A reindex ended with an error progress event."""
    return (
        f"[red]Error:[/] Indexing failed: {error or 'unknown error'}\n"
        "  Re-run with  CAIRN_LOG_LEVEL=DEBUG  for details."
    )


def warn_indexing_busy() -> str:
    """Another index operation was already running."""
    return "[yellow]⚠[/] Indexing already in progress; request ignored."
