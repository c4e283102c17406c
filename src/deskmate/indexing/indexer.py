"""Project indexing: scan a folder into a structure snapshot and store it.

Indexing is the only way a Project row is created or updated. The row is keyed
on the resolved root path, so re-indexing the same folder refreshes it in
place (name, snapshot, last_indexed).
"""

from __future__ import annotations

import logging
from pathlib import Path

from deskmate.db.connection import Database
from deskmate.db.models import Project
from deskmate.db.repository import Repository
from deskmate.db.schema import initialize
from deskmate.tools.notes import ensure_ai_context
from deskmate.tools.sandbox import SandboxViolation
from deskmate.tools.tree import build_tree, tree_to_json

logger = logging.getLogger(__name__)


def index_project(repo: Repository, root_path: Path | str, max_depth: int = 5) -> Project:
    """Scan *root_path* and upsert it as an indexed project.

    Creates ``AIContext.md`` in the project root if it is missing (failure to
    create it is logged, not fatal).

    Args:
        repo: Repository bound to an initialised database.
        root_path: Project folder.
        max_depth: Deepest directory level recorded in the snapshot.

    Returns:
        The stored Project.

    Raises:
        FileNotFoundError: If *root_path* does not exist.
        NotADirectoryError: If *root_path* is not a directory.
    """
    root = Path(root_path).expanduser().resolve()
    if not root.exists():
        raise FileNotFoundError(f"Project folder not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Project path is not a directory: {root}")

    name = root.name or str(root)
    try:
        ensure_ai_context(root, name)
    except (OSError, SandboxViolation) as exc:
        logger.warning("Could not create AIContext.md in %s: %s", root, exc)

    tree = build_tree(root, max_depth=max_depth)
    structure_json = tree_to_json(tree)
    logger.debug("Scanned %s: %d chars of structure", root, len(structure_json))

    project = repo.upsert_project(name, str(root), structure_json)
    logger.info("Indexed project %s (%s)", project.name, project.root_path)
    return project


def reindex_project(db_path: Path | str, root_path: Path | str, max_depth: int = 5) -> Project:
    """Re-index *root_path* on a fresh connection to *db_path*.

    Used from background threads, which may not share the caller's connection.
    """
    with Database(db_path) as conn:
        initialize(conn)
        return index_project(Repository(conn), root_path, max_depth=max_depth)
