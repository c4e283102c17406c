"""Memory tools: long-term insights and the per-project AIContext.md notes file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from deskmate.rag.insights import InsightError
from deskmate.tools.base import Tool, ToolContext, ToolExecutionResult, write_atomic
from deskmate.tools.sandbox import resolve

logger = logging.getLogger(__name__)

AI_CONTEXT_FILE = "AIContext.md"
SECTION_SEPARATOR = "\n\n---\n\n"


def ai_context_header(project_name: str) -> str:
    return f"# AI Context for {project_name}\n\n"


def ensure_ai_context(root: Path, project_name: str) -> bool:
    """Create ``AIContext.md`` under *root* with its header if missing.

    Returns:
        True if the file was created.

    Raises:
        SandboxViolation: If an existing AIContext.md links outside *root*.
    """
    path = resolve(root, AI_CONTEXT_FILE)
    if path.exists():
        return False
    path.write_text(ai_context_header(project_name), encoding="utf-8")
    logger.info("Created %s", path)
    return True


def append_section(existing: str, text: str) -> str:
    """Return *existing* with *text* appended as a new separator-delimited section."""
    return existing.rstrip() + SECTION_SEPARATOR + text.strip() + "\n"


class SaveMemoryTool(Tool):
    name = "save_memory"
    description = "Saves a concise summary or key fact discussed to the user's long-term memory."
    parameters = {
        "type": "object",
        "properties": {
            "summary_text": {
                "type": "string",
                "description": "The concise text summary or key fact to be remembered.",
            }
        },
        "required": ["summary_text"],
    }
    uses_filesystem = False

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        text = (args.get("summary_text") or "").strip()
        if not text:
            return ToolExecutionResult("Error: No summary text provided to save.")
        if ctx.insights is None:
            return ToolExecutionResult("Error: Failed to save summary to memory.")
        try:
            ctx.insights.save(text, ctx.project.id if ctx.project else None)
        except InsightError as exc:
            logger.warning("save_memory failed: %s", exc)
            return ToolExecutionResult("Error: Failed to save summary to memory.")
        return ToolExecutionResult("Successfully saved summary to long-term memory.")


class AppendToAIContextTool(Tool):
    name = "append_to_ai_context"
    description = (
        "Appends the provided text (like summaries, notes, decisions) to the 'AIContext.md' "
        "file located in the root of the currently active project. Use this to save "
        "project-specific information persistently. Requires an active project."
    )
    parameters = {
        "type": "object",
        "properties": {
            "text_to_append": {
                "type": "string",
                "description": (
                    "The text content (markdown format recommended) to append to the "
                    "AIContext.md file. Include necessary formatting like headings or lists."
                ),
            }
        },
        "required": ["text_to_append"],
    }
    requires_project = True

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        text = args.get("text_to_append") or ""
        if not text.strip():
            return ToolExecutionResult("Error: No valid text provided to append.")
        if ctx.base_path is None or ctx.project is None:
            raise RuntimeError("append_to_ai_context called without an active project")

        path = resolve(ctx.base_path, AI_CONTEXT_FILE)
        if path.exists():
            existing = path.read_text(encoding="utf-8")
        else:
            logger.warning("%s not found, creating it", path)
            existing = ai_context_header(ctx.project.name)

        write_atomic(path, append_section(existing, text))
        return ToolExecutionResult(
            f"Successfully appended notes to {AI_CONTEXT_FILE} for the active project."
        )
