"""deskmate rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from deskmate.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from deskmate.rag.llm_client import api_key_env


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*. Chat continues, but every turn will abort.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = api_key_env(provider) or f"{provider.upper()}_API_KEY"
    return (
        f"[yellow]Warning:[/] No API key for '{provider}'. Replies are disabled.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(detail: str) -> str:
    """Configuration could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix deskmate.yaml or ~/.deskmate/config.yaml and run the command again."
    )


def err_index_path(path: str, reason: str) -> str:
    """Indexing target is missing or not a directory."""
    return (
        f"[red]Error:[/] Cannot index '{path}': {reason}.\n"
        "  Use:  deskmate index <existing-project-folder>"
    )


def err_project_not_found(key: str, known: list[str]) -> str:
    """--project did not match any indexed project."""
    known_list = ", ".join(known) if known else "(none)"
    return (
        f"[red]Error:[/] Project '{key}' is not indexed.\n"
        f"  Indexed projects: {known_list}\n"
        "  Run:  deskmate index <path>  or  deskmate projects"
    )


def err_no_projects() -> str:
    return (
        "[yellow]No projects indexed yet.[/]\n"
        "  Run:  deskmate index <path>"
    )


def err_recall_unavailable(provider: str) -> str:
    """Memory recall needs the embedding service."""
    return (
        f"[red]Error:[/] Memory recall needs an embedding API key for '{provider}'.\n"
        "  Set the provider's API key environment variable and run the command again."
    )
