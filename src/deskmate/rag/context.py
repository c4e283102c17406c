"""Context loader: indexed-project summary and the active project's snapshot.

load() never raises. Problems are reported as diagnostics that are appended
to the project summary as warning lines, so the model sees them too.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

from deskmate.db.models import Project
from deskmate.db.repository import Repository
from deskmate.tools.tree import DirectoryNode, SerializationError, tree_from_json

logger = logging.getLogger(__name__)


@dataclass
class LoadedContext:
    """Result of ContextLoader.load().

    Attributes:
        summary: Natural-language description of indexed and active projects.
        active_project: The active project, if one was requested and found.
        project_tree: Parsed structure snapshot of the active project, if valid.
        diagnostics: Soft problems found while loading.
    """

    summary: str = ""
    active_project: Project | None = None
    project_tree: DirectoryNode | None = None
    diagnostics: list[str] = field(default_factory=list)

    @property
    def project_summary(self) -> str:
        """Summary followed by one warning line per diagnostic."""
        warnings_ = "".join(f"\n\nWarning: {d}" for d in self.diagnostics)
        return self.summary + warnings_


class ContextLoader:
    """Loads project context for a turn from the repository."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def load(self, active_project_id: int | None) -> LoadedContext:
        ctx = LoadedContext()
        try:
            projects = self._repo.list_projects()
        except sqlite3.Error as exc:
            logger.error("Could not load indexed projects: %s", exc)
            ctx.summary = " Error: Could not load indexed projects list."
            return ctx

        if not projects:
            ctx.summary = " The user has not indexed any projects yet."
            if active_project_id is not None:
                ctx.diagnostics.append(
                    f"The requested project (id {active_project_id}) does not exist."
                )
            return ctx

        names = ", ".join(p.name for p in projects)
        ctx.summary = f" The user has indexed the following projects: [{names}]."

        if active_project_id is None:
            ctx.summary += " No specific project context is active."
            return ctx

        try:
            project = self._repo.get_project(active_project_id)
        except sqlite3.Error as exc:
            logger.error("Could not load project %s: %s", active_project_id, exc)
            ctx.diagnostics.append(f"Could not load details for project id {active_project_id}.")
            return ctx

        if project is None:
            logger.warning("Active project %s not found", active_project_id)
            ctx.summary += " An invalid project context was requested."
            ctx.diagnostics.append(
                f"The requested project (id {active_project_id}) does not exist."
            )
            return ctx

        ctx.active_project = project
        ctx.summary += (
            f" The currently active project is '{project.name}' "
            f"located at path '{project.root_path}'."
        )

        if not project.structure_json:
            ctx.diagnostics.append(
                f"File structure details not found for active project '{project.name}'. "
                "Re-index might be needed."
            )
            return ctx

        try:
            ctx.project_tree = tree_from_json(project.structure_json)
        except SerializationError as exc:
            logger.warning("Stored structure for %s is corrupted: %s", project.name, exc)
            ctx.diagnostics.append(
                f"Stored file structure for '{project.name}' appears corrupted."
            )
        return ctx
