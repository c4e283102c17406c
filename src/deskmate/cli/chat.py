"""deskmate chat command.

Interactive loop (or a single --message turn) against the completion
orchestrator. Commands inside the loop:

  /use <project>   switch the active project (name or id)
  /none            clear the active project
  exit, quit       leave

Background re-indexing started by tool calls is flushed before exit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown

from deskmate.cli.common import console, load_settings, open_db
from deskmate.cli.errors import err_no_api_key, err_project_not_found
from deskmate.config import DeskmateConfig
from deskmate.db.models import Project
from deskmate.db.repository import Repository
from deskmate.indexing.reindex import ReindexScheduler
from deskmate.messages import ChatMessage
from deskmate.orchestrator import AssistantContext, CompletionOrchestrator, TurnResult
from deskmate.rag.llm_client import LLMClient, provider_of, validate_api_key

logger = logging.getLogger(__name__)

_EXIT_WORDS = frozenset(["exit", "quit", ":q"])


def build_client(cfg: DeskmateConfig) -> LLMClient | None:
    """Return a client for the configured models, or None if no API key is set."""
    model = cfg.completion.model
    if not model:
        return None
    try:
        validate_api_key(model)
    except EnvironmentError:
        console.print(err_no_api_key(provider_of(model)))
        return None
    return LLMClient(
        model=model,
        embedding_model=cfg.embedding.model,
        num_retries=cfg.completion.num_retries,
        temperature=cfg.completion.temperature,
        max_embed_chars=cfg.embedding.max_input_chars,
    )


def chat_cmd(
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Active project (name or id)."),
    ] = None,
    message: Annotated[
        str | None,
        typer.Option("--message", "-m", help="Send a single message and exit."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the deskmate database."),
    ] = None,
) -> None:
    """Chat with the assistant about your indexed projects."""
    cfg = load_settings(db)
    conn = open_db(cfg.storage.db_path)
    repo = Repository(conn)

    active: Project | None = None
    if project:
        active = repo.find_project(project)
        if active is None:
            console.print(err_project_not_found(project, [p.name for p in repo.list_projects()]))
            conn.close()
            raise typer.Exit(1)

    scheduler = ReindexScheduler.for_database(
        cfg.storage.db_path,
        max_depth=cfg.indexing.max_depth,
        delay=cfg.indexing.reindex_delay,
    )
    orchestrator = CompletionOrchestrator(
        AssistantContext(
            config=cfg,
            repo=repo,
            llm=build_client(cfg),
            scheduler=scheduler,
        )
    )

    try:
        if message is not None:
            result = orchestrator.run_turn(
                [ChatMessage.user(message)], active.id if active else None
            )
            _print_result(result)
            if not result.ok:
                raise typer.Exit(1)
        else:
            _loop(orchestrator, repo, active)
    finally:
        scheduler.shutdown(wait=True)
        conn.close()


def _loop(orchestrator: CompletionOrchestrator, repo: Repository, active: Project | None) -> None:
    history: list[ChatMessage] = []
    label = active.name if active else "no project"
    console.print(f"[dim]deskmate chat ({label}). Type 'exit' to quit.[/]")

    while True:
        try:
            text = console.input("[bold cyan]you>[/] ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            return
        if not text:
            continue
        if text.lower() in _EXIT_WORDS:
            return
        if text.startswith("/use "):
            key = text[5:].strip()
            found = repo.find_project(key)
            if found is None:
                console.print(err_project_not_found(key, [p.name for p in repo.list_projects()]))
            else:
                active = found
                console.print(f"[green]✓[/] Active project: [bold]{found.name}[/]")
            continue
        if text == "/none":
            active = None
            console.print("[green]✓[/] No active project.")
            continue

        turn = history + [ChatMessage.user(text)]
        result = orchestrator.run_turn(turn, active.id if active else None)
        _print_result(result)
        if result.ok:
            history = [m for m in result.messages if m.role != "system"]


def _print_result(result: TurnResult) -> None:
    if result.ok:
        console.print(Markdown(result.content))
    else:
        console.print(f"[red]{result.content}[/]")
