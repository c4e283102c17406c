"""deskmate recall command: search long-term memory like the assistant does."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from deskmate.cli.common import console, load_settings, open_db
from deskmate.cli.errors import err_recall_unavailable
from deskmate.db.repository import Repository
from deskmate.rag.insights import InsightStore
from deskmate.rag.llm_client import LLMClient, provider_of, validate_api_key


def recall_cmd(
    query: Annotated[str, typer.Argument(help="Text to match against saved memories.")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Maximum number of memories to show."),
    ] = 5,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the deskmate database."),
    ] = None,
) -> None:
    """Show the saved memories most similar to QUERY."""
    cfg = load_settings(db)
    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError:
        console.print(err_recall_unavailable(provider_of(cfg.embedding.model)))
        raise typer.Exit(1)

    embedder = LLMClient(
        model=cfg.completion.model,
        embedding_model=cfg.embedding.model,
        num_retries=cfg.completion.num_retries,
        max_embed_chars=cfg.embedding.max_input_chars,
    )
    conn = open_db(cfg.storage.db_path)
    try:
        repo = Repository(conn)
        total = repo.count_insights()
        found = InsightStore(repo, embedder).find_relevant(query, limit)
    finally:
        conn.close()

    if not found:
        console.print(f"[yellow]No matching memories[/] ({total} stored).")
        return

    table = Table(title=f"Memories matching '{query}'")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Similarity", justify="right")
    table.add_column("Text")
    for item in found:
        table.add_row(str(item.id), f"{item.similarity:.3f}", item.text)
    console.print(table)
