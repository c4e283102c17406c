"""deskmate index command.

Scans a project folder, stores its structure snapshot and makes it available
as a chat project. Re-running on the same folder refreshes the snapshot.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from deskmate.cli.common import console, load_settings, open_db
from deskmate.cli.errors import err_index_path
from deskmate.config import ensure_global_config
from deskmate.db.repository import Repository
from deskmate.indexing.indexer import index_project


def index_cmd(
    path: Annotated[Path, typer.Argument(help="Project folder to index.")],
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", min=0, help="Deepest folder level recorded (default from config)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the deskmate database."),
    ] = None,
) -> None:
    """Index a project folder (structure snapshot + AIContext.md)."""
    cfg_path = ensure_global_config()
    cfg = load_settings(db)
    depth = max_depth if max_depth is not None else cfg.indexing.max_depth

    conn = open_db(cfg.storage.db_path)
    try:
        project = index_project(Repository(conn), path, max_depth=depth)
    except FileNotFoundError:
        console.print(err_index_path(str(path), "folder not found"))
        raise typer.Exit(1)
    except NotADirectoryError:
        console.print(err_index_path(str(path), "not a directory"))
        raise typer.Exit(1)
    finally:
        conn.close()

    console.print(
        f"[green]✓[/] Indexed [bold]{project.name}[/] (id {project.id})\n"
        f"  Root:  {project.root_path}\n"
        f"  Config: {cfg_path}"
    )
