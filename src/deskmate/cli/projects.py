"""deskmate projects command: list indexed projects."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from deskmate.cli.common import console, load_settings, open_db
from deskmate.cli.errors import err_no_projects
from deskmate.db.repository import Repository


def projects_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the deskmate database."),
    ] = None,
) -> None:
    """List indexed projects."""
    cfg = load_settings(db)
    conn = open_db(cfg.storage.db_path)
    try:
        projects = Repository(conn).list_projects()
    finally:
        conn.close()

    if not projects:
        console.print(err_no_projects())
        return

    table = Table(title="Indexed projects", show_lines=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Root")
    table.add_column("Last indexed", style="dim")
    for p in projects:
        table.add_row(str(p.id), p.name, p.root_path, p.last_indexed or "-")
    console.print(table)
