"""Base tool interface and shared helpers for the model-callable tools."""

from __future__ import annotations

import os
import stat
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from deskmate.config import ToolsCfg

if TYPE_CHECKING:
    from deskmate.db.models import Project
    from deskmate.rag.insights import InsightStore


@dataclass
class ToolExecutionResult:
    """Outcome of one tool call.

    Attributes:
        result: Text returned to the model as the ``tool`` message content.
        needs_reindex: True when the call changed the project's file structure.
    """

    result: str
    needs_reindex: bool = False


@dataclass
class ToolContext:
    """Everything a tool may touch during one call.

    Attributes:
        base_path: Sandbox root (active project root or home directory); None
            for tools that need no filesystem access.
        description: Human-readable description of the sandbox root, used in
            access-denied messages.
        project: Active project, if any.
        insights: Long-term memory store (``save_memory``).
        settings: Size and depth limits.
    """

    base_path: Path | None
    description: str
    project: Project | None = None
    insights: InsightStore | None = None
    settings: ToolsCfg = field(default_factory=ToolsCfg)


class Tool(ABC):
    """Abstract base for all model-callable tools.

    Subclasses declare ``name``, ``description`` and a JSON-schema
    ``parameters`` object, and implement ``execute()``. Path arguments must be
    passed through deskmate.tools.sandbox.resolve() before use; sandbox
    violations and OSErrors are left to propagate to the dispatcher, which turns
    them into tool-result text.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}, "required": []}
    requires_project: bool = False
    uses_filesystem: bool = True

    @abstractmethod
    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        """Run the tool with validated *args* inside *ctx*."""

    def schema(self) -> dict[str, Any]:
        """Return the OpenAI-style function tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def write_atomic(path: Path, content: str) -> None:
    """Write *content* to *path* atomically (temp → rename).

    The parent directory must already exist. An existing file keeps its
    permission bits; a new one gets 0o644.
    """
    mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o644
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
