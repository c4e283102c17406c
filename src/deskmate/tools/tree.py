"""Directory snapshots and text listings.

build_tree() produces the DirectoryNode snapshot stored per project at index
time (serialized as JSON). render_text_tree() produces the indented listing
returned by the ``list_directory_recursive`` tool. Both share EXCLUDED_NAMES,
skip symlinks and other non-regular entries, and sort children by name.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

NodeType = Literal["file", "directory", "error"]

# Build output, dependency and VCS folders hidden from indexing and listings
EXCLUDED_NAMES: frozenset[str] = frozenset(
    [
        "node_modules",
        ".git",
        "dist",
        "build",
        "out",
        ".output",
        ".next",
        ".nuxt",
        "vendor",
        "__pycache__",
        ".DS_Store",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "public",
    ]
)

TRUNCATION_MARKER = "[... Output truncated due to size]"


class SerializationError(ValueError):
    """A stored structure snapshot could not be parsed."""


@dataclass
class DirectoryNode:
    """One entry of a project structure snapshot.

    Attributes:
        name: Base name of the file or directory.
        type: 'file', 'directory', or 'error' (unreadable directory).
        children: Child nodes, sorted by name (directories only).
        error: Set on error nodes and on directories cut off at max depth.
    """

    name: str
    type: NodeType
    children: list[DirectoryNode] = field(default_factory=list)
    error: str | None = None

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "type": self.type}
        if self.type == "directory":
            data["children"] = [c.to_dict() for c in self.children]
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Any) -> DirectoryNode:
        """Build a node tree from its dict form.

        Raises:
            SerializationError: If the structure is not a valid node tree.
        """
        if not isinstance(data, dict):
            raise SerializationError(f"Expected an object, got {type(data).__name__}")
        name = data.get("name")
        node_type = data.get("type")
        if not isinstance(name, str) or node_type not in ("file", "directory", "error"):
            raise SerializationError(f"Invalid node: name={name!r} type={node_type!r}")
        raw_children = data.get("children") or []
        if not isinstance(raw_children, list):
            raise SerializationError(f"Invalid children for node '{name}'")
        error = data.get("error")
        return cls(
            name=name,
            type=node_type,
            children=[cls.from_dict(c) for c in raw_children],
            error=str(error) if error is not None else None,
        )


def tree_to_json(node: DirectoryNode) -> str:
    return json.dumps(node.to_dict())


def tree_from_json(text: str) -> DirectoryNode:
    """Parse a snapshot produced by tree_to_json().

    Raises:
        SerializationError: On invalid JSON or an invalid node structure.
    """
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise SerializationError(f"Invalid structure JSON: {exc}") from exc
    return DirectoryNode.from_dict(data)


# ------------------------------------------------------------------
# Scanning
# ------------------------------------------------------------------


def _sorted_entries(path: Path) -> list[os.DirEntry[str]]:
    with os.scandir(path) as it:
        entries = [e for e in it if e.name not in EXCLUDED_NAMES]
    return sorted(entries, key=lambda e: e.name.lower())


def build_tree(path: Path, max_depth: int = 5, _depth: int = 0) -> DirectoryNode:
    """Scan *path* into a DirectoryNode snapshot.

    Directories deeper than *max_depth* are kept as childless nodes carrying a
    "Max depth" note. A directory that cannot be read becomes an error node
    instead of failing the whole scan.
    """
    name = path.name or str(path)
    if _depth > max_depth:
        return DirectoryNode(name=name, type="directory", error=f"Max depth ({max_depth}) reached")

    try:
        entries = _sorted_entries(path)
    except OSError as exc:
        logger.warning("Failed to read directory %s: %s", path, exc)
        return DirectoryNode(name=name, type="error", error=f"Failed to read: {exc.strerror or exc}")

    children: list[DirectoryNode] = []
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            children.append(build_tree(Path(entry.path), max_depth, _depth + 1))
        elif entry.is_file(follow_symlinks=False):
            children.append(DirectoryNode(name=entry.name, type="file"))
    return DirectoryNode(name=name, type="directory", children=children)


def find_node(tree: DirectoryNode, relative_path: str) -> DirectoryNode | None:
    """Walk *tree* segment by segment (case-insensitive). Returns None if absent.

    Empty and '.' segments are ignored, so '' and '.' return the root.
    """
    node = tree
    for part in relative_path.replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if not node.is_directory:
            return None
        lowered = part.lower()
        match = next((c for c in node.children if c.name.lower() == lowered), None)
        if match is None:
            return None
        node = match
    return node


# ------------------------------------------------------------------
# Text rendering
# ------------------------------------------------------------------


class _Budget(Exception):
    """Raised internally once the character budget is spent."""


def render_text_tree(path: Path, max_depth: int = 3, max_chars: int = 20_000) -> str:
    """Return an indented text listing of *path*, two spaces per level.

    Directories end in '/', empty ones are tagged ``[Empty]``, directories past
    *max_depth* are tagged ``[... Max depth reached]`` and unreadable ones carry
    ``[Error: ...]``. Once the output would exceed *max_chars* it stops with
    TRUNCATION_MARKER on the last line.

    Raises:
        OSError: If *path* itself cannot be listed.
    """
    lines: list[str] = []
    used = 0

    def emit(line: str) -> None:
        nonlocal used
        if used + len(line) + 1 > max_chars:
            indent = line[: len(line) - len(line.lstrip(" "))]
            lines.append(f"{indent}{TRUNCATION_MARKER}")
            raise _Budget
        lines.append(line)
        used += len(line) + 1

    def walk(directory: Path, depth: int, indent: str) -> None:
        try:
            entries = _sorted_entries(directory)
        except OSError as exc:
            emit(f"{indent}{directory.name or directory}/ [Error: {exc.strerror or exc}]")
            return
        if not entries:
            emit(f"{indent}{directory.name or directory}/ [Empty]")
            return
        emit(f"{indent}{directory.name or directory}/")
        for entry in entries:
            child_indent = indent + "  "
            if entry.is_dir(follow_symlinks=False):
                if depth + 1 > max_depth:
                    emit(f"{child_indent}{entry.name}/ [... Max depth reached]")
                else:
                    walk(Path(entry.path), depth + 1, child_indent)
            elif entry.is_file(follow_symlinks=False):
                emit(f"{child_indent}{entry.name}")

    root_entries = _sorted_entries(path)  # surface OSError for the requested path
    root_name = path.name or str(path)
    try:
        if not root_entries:
            emit(f"{root_name}/")
            emit("  [Empty]")
        else:
            walk(path, 0, "")
    except _Budget:
        logger.debug("Text tree for %s truncated at %d chars", path, max_chars)

    return "\n".join(lines) + "\n"
