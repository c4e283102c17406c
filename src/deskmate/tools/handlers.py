"""Filesystem tools: listing, reading, creating and editing files.

Each tool resolves its ``path`` argument through the sandbox before touching
the filesystem. Read-only tools may run against the home directory when no
project is active; mutating tools require an active project.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from deskmate.tools.base import Tool, ToolContext, ToolExecutionResult, write_atomic
from deskmate.tools.sandbox import resolve
from deskmate.tools.tree import EXCLUDED_NAMES, render_text_tree

logger = logging.getLogger(__name__)

_PATH_HINT = (
    "Use forward slashes `/`. Relative to the active project root, or to the user's "
    "home directory if no project is active."
)

_CONTENT_TRUNCATED = "\n... (Content Truncated)"


def _path_param(description: str) -> dict[str, Any]:
    return {"type": "string", "description": f"{description} {_PATH_HINT}"}


def _target(args: dict[str, Any], ctx: ToolContext) -> Path:
    if ctx.base_path is None:
        raise RuntimeError("Filesystem tool called without a base path")
    return resolve(ctx.base_path, args["path"])


class ListDirectoryTool(Tool):
    name = "list_directory"
    description = (
        "Lists files/subdirs within a specified path. If a project context is active, "
        "path is relative to project root. Otherwise, relative to home. Forbids absolute "
        "paths or '..'."
    )
    parameters = {
        "type": "object",
        "properties": {"path": _path_param('The directory to list (e.g., "src").')},
        "required": ["path"],
    }

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        target = _target(args, ctx)
        items = sorted(
            f"{p.name}/" if p.is_dir() else p.name
            for p in target.iterdir()
            if p.name not in EXCLUDED_NAMES
        )
        return ToolExecutionResult("\n".join(items) or "(Directory is empty)")


class ListDirectoryRecursiveTool(Tool):
    name = "list_directory_recursive"
    description = (
        "Recursively lists files/subdirs for a path, up to a max depth. If a project "
        "context is active, path is relative to project root. Otherwise, relative to "
        "home. Returns text tree. Forbids absolute paths or '..'."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": _path_param('The starting directory (e.g., "src" or "./").'),
            "maxDepth": {
                "type": "integer",
                "description": "Optional. Max depth to recurse. Defaults to 3. Higher values may be truncated.",
                "default": 3,
            },
        },
        "required": ["path"],
    }

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        target = _target(args, ctx)
        depth = _coerce_depth(args.get("maxDepth"), ctx.settings.default_depth)
        depth = min(depth, ctx.settings.max_depth)
        text = render_text_tree(target, max_depth=depth, max_chars=ctx.settings.max_listing_chars)
        return ToolExecutionResult(text)


def _coerce_depth(raw: Any, default: int) -> int:
    """Accept ints, floats and numeric strings; anything else falls back to *default*."""
    if isinstance(raw, bool) or raw is None:
        return default
    if isinstance(raw, (int, float)):
        return max(0, int(raw))
    if isinstance(raw, str):
        try:
            return max(0, int(raw.strip()))
        except ValueError:
            return default
    return default


class ReadFileTool(Tool):
    name = "read_file"
    description = (
        "Reads content of a file at a specified path. If a project context is active, "
        "path is relative to project root. Otherwise, relative to home. Content may be "
        "truncated. Forbids absolute paths or '..'."
    )
    parameters = {
        "type": "object",
        "properties": {"path": _path_param('The file to read (e.g., "src/main.ts").')},
        "required": ["path"],
    }

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        target = _target(args, ctx)
        if target.is_dir():
            raise IsADirectoryError(str(target))
        content = target.read_text(encoding="utf-8", errors="replace")
        limit = ctx.settings.max_read_chars
        if len(content) > limit:
            content = content[: limit - len(_CONTENT_TRUNCATED)] + _CONTENT_TRUNCATED
        return ToolExecutionResult(content)


class CreateDirectoryTool(Tool):
    name = "create_directory"
    description = (
        "Creates a new directory (including parents if needed) at the specified path. "
        "Requires an active project. Forbids absolute paths or '..'."
    )
    parameters = {
        "type": "object",
        "properties": {"path": _path_param('The new directory (e.g., "src/components").')},
        "required": ["path"],
    }
    requires_project = True

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        target = _target(args, ctx)
        requested = args["path"]
        if target.is_dir():
            return ToolExecutionResult(f'Directory already exists: "{requested}"')
        if target.exists():
            raise FileExistsError(str(target))
        target.mkdir(parents=True)
        logger.info("Created directory %s", target)
        return ToolExecutionResult(f'Successfully created directory: "{requested}"', needs_reindex=True)


class CreateFileTool(Tool):
    name = "create_file"
    description = (
        "Creates a new file with specified content at the specified path. Creates parent "
        "directories if needed. Fails if the file already exists. Requires an active "
        "project. Forbids absolute paths or '..'."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": _path_param('The new file (e.g., "src/helpers.ts").'),
            "content": {"type": "string", "description": "The initial text content for the new file."},
        },
        "required": ["path", "content"],
    }
    requires_project = True

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        target = _target(args, ctx)
        target.parent.mkdir(parents=True, exist_ok=True)
        # "x" mode: never overwrite an existing file
        with target.open("x", encoding="utf-8") as f:
            f.write(args.get("content") or "")
        logger.info("Created file %s", target)
        return ToolExecutionResult(f'Successfully created file: "{args["path"]}"', needs_reindex=True)


class EditFileTool(Tool):
    name = "edit_file"
    description = (
        "Overwrites an existing file at the specified path with new content. Use "
        "'read_file' first if modifying based on current content. Fails if the file "
        "doesn't exist. Requires an active project. Forbids absolute paths or '..'."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": _path_param('The file to overwrite (e.g., "src/main.ts").'),
            "new_content": {"type": "string", "description": "The complete new text content for the file."},
        },
        "required": ["path", "new_content"],
    }
    requires_project = True

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        target = _target(args, ctx)
        if not target.exists():
            raise FileNotFoundError(str(target))
        if not target.is_file():
            raise IsADirectoryError(str(target))
        write_atomic(target, args.get("new_content") or "")
        logger.info("Edited file %s", target)
        return ToolExecutionResult(f'Successfully edited file: "{args["path"]}"')
