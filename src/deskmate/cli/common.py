"""Helpers shared by the deskmate commands: config, database and logging setup."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from deskmate.cli.errors import err_config
from deskmate.config import ConfigError, DeskmateConfig, load_config
from deskmate.db.connection import Database
from deskmate.db.schema import initialize

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route log records to stderr through rich. DEBUG with *verbose*, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    if not verbose:
        # litellm and httpx log request chatter at INFO
        for name in ("LiteLLM", "httpx"):
            logging.getLogger(name).setLevel(logging.WARNING)


def load_settings(db: Path | None = None) -> DeskmateConfig:
    """Load config or exit with an actionable message. *db* overrides storage.db_path."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if db is not None:
        cfg.storage.db_path = db
    return cfg


def open_db(path: Path) -> sqlite3.Connection:
    conn = Database(path).connect()
    initialize(conn)
    return conn
