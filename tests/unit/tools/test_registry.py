"""Tests for the tool registry and dispatcher."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from deskmate.db.models import Project
from deskmate.messages import ToolCall
from deskmate.tools.base import Tool, ToolContext, ToolExecutionResult
from deskmate.tools.registry import (
    HOME_DESCRIPTION,
    ToolDispatcher,
    ToolRegistry,
    access_denied_message,
    default_registry,
    describe_os_error,
    validate_args,
)


class _BoomTool(Tool):
    name = "boom"
    parameters = {"type": "object", "properties": {}, "required": []}

    def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolExecutionResult:
        raise KeyError("kaboom")


def _call(name: str, args: Any = None, raw: str | None = None) -> ToolCall:
    arguments = raw if raw is not None else json.dumps(args or {})
    return ToolCall(id="call_1", name=name, arguments=arguments)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    (home / "docs").mkdir(parents=True)
    (home / "docs" / "plan.md").write_text("plan", encoding="utf-8")
    return home


@pytest.fixture
def project(tmp_path: Path) -> Project:
    root = tmp_path / "web"
    (root / "src").mkdir(parents=True)
    (root / "src" / "a.ts").write_text("a", encoding="utf-8")
    return Project(id=1, name="web", root_path=str(root))


@pytest.fixture
def dispatcher(home: Path) -> ToolDispatcher:
    return ToolDispatcher(default_registry(), home_dir=home)


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------


def test_default_registry_tools():
    registry = default_registry()
    assert len(registry) == 8
    assert registry.names() == [
        "list_directory",
        "list_directory_recursive",
        "read_file",
        "save_memory",
        "create_directory",
        "create_file",
        "edit_file",
        "append_to_ai_context",
    ]
    assert "read_file" in registry


def test_schemas_are_function_definitions():
    for schema in default_registry().schemas():
        assert schema["type"] == "function"
        assert schema["function"]["name"]
        assert schema["function"]["parameters"]["type"] == "object"


def test_register_duplicate_raises():
    registry = ToolRegistry([_BoomTool()])
    with pytest.raises(ValueError, match="already registered"):
        registry.register(_BoomTool())


def test_register_nameless_raises():
    tool = _BoomTool()
    tool.name = ""
    with pytest.raises(ValueError):
        ToolRegistry().register(tool)


# ------------------------------------------------------------------
# validate_args / error text
# ------------------------------------------------------------------


def test_validate_args():
    tool = default_registry().get("list_directory_recursive")
    assert validate_args(tool, {"path": "src"}) is None
    assert validate_args(tool, {"path": "src", "maxDepth": "2"}) is None
    assert "missing required argument 'path'" == validate_args(tool, {})
    assert "must be of type string" in validate_args(tool, {"path": 3})
    assert "must be of type integer" in validate_args(tool, {"path": "x", "maxDepth": "deep"})
    assert "must be of type integer" in validate_args(tool, {"path": "x", "maxDepth": True})


@pytest.mark.parametrize(
    "exc, expected",
    [
        (FileNotFoundError(), 'Error: Path not found "p".'),
        (PermissionError(), 'Error: Permission denied for path "p".'),
        (FileExistsError(), 'Error: A file or directory already exists at path "p".'),
        (NotADirectoryError(), 'Error: Path "p" is not a directory.'),
        (IsADirectoryError(), 'Error: Path "p" is a directory, not a file.'),
        (OSError("disk on fire"), "Error: Failed to execute read_file due to a filesystem error."),
    ],
)
def test_describe_os_error(exc, expected):
    assert describe_os_error(exc, "read_file", "p") == expected


# ------------------------------------------------------------------
# Dispatch: argument and lookup failures
# ------------------------------------------------------------------


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"'])
def test_dispatch_malformed_arguments(dispatcher, raw):
    out = dispatcher.dispatch(_call("read_file", raw=raw), None)
    assert out.result == "Error: Invalid arguments for tool read_file."


def test_dispatch_empty_arguments_are_missing_path(dispatcher):
    out = dispatcher.dispatch(_call("read_file", raw=""), None)
    assert out.result == (
        "Error: Invalid arguments for tool read_file: missing required argument 'path'."
    )


def test_dispatch_unknown_tool(dispatcher):
    out = dispatcher.dispatch(_call("delete_everything"), None)
    assert out.result == 'Error: Tool "delete_everything" not found.'


# ------------------------------------------------------------------
# Dispatch: base path resolution
# ------------------------------------------------------------------


def test_dispatch_read_only_tool_uses_home_without_project(dispatcher):
    out = dispatcher.dispatch(_call("read_file", {"path": "docs/plan.md"}), None)
    assert out.result == "plan"


def test_dispatch_uses_project_root(dispatcher, project):
    out = dispatcher.dispatch(_call("list_directory", {"path": "src"}), project)
    assert out.result == "a.ts"


@pytest.mark.parametrize(
    "name, args",
    [
        ("create_file", {"path": "x.md", "content": ""}),
        ("create_directory", {"path": "x"}),
        ("edit_file", {"path": "x.md", "new_content": ""}),
        ("append_to_ai_context", {"text_to_append": "note"}),
    ],
)
def test_dispatch_mutating_tool_requires_project(dispatcher, home, name, args):
    out = dispatcher.dispatch(_call(name, args), None)
    assert out.result == (
        f"Error: Tool {name} requires an active project context. Select a project first."
    )
    assert not (home / "x.md").exists()
    assert not (home / "x").exists()


def test_dispatch_save_memory_without_project(home):
    insights = MagicMock()
    dispatcher = ToolDispatcher(default_registry(), home_dir=home, insights=insights)
    out = dispatcher.dispatch(_call("save_memory", {"summary_text": "likes tabs"}), None)
    assert out.result == "Successfully saved summary to long-term memory."
    insights.save.assert_called_once_with("likes tabs", None)


# ------------------------------------------------------------------
# Dispatch: execution failures
# ------------------------------------------------------------------


def test_dispatch_traversal_is_access_denied(dispatcher, project):
    out = dispatcher.dispatch(_call("read_file", {"path": "../secret.txt"}), project)
    assert out.result == access_denied_message("relative to the active project root (web)")


def test_dispatch_absolute_path_in_home_is_access_denied(dispatcher):
    out = dispatcher.dispatch(_call("list_directory", {"path": "/etc"}), None)
    assert out.result == access_denied_message(HOME_DESCRIPTION)
    assert "cannot contain '..'" in out.result


def test_dispatch_missing_file(dispatcher, project):
    out = dispatcher.dispatch(_call("read_file", {"path": "src/missing.ts"}), project)
    assert out.result == 'Error: Path not found "src/missing.ts".'


def test_dispatch_create_existing_file(dispatcher, project):
    out = dispatcher.dispatch(_call("create_file", {"path": "src/a.ts", "content": "x"}), project)
    assert out.result == 'Error: A file or directory already exists at path "src/a.ts".'
    assert out.needs_reindex is False


def test_dispatch_create_file_requests_reindex(dispatcher, project):
    out = dispatcher.dispatch(
        _call("create_file", {"path": "notes/todo.md", "content": "- [ ] x"}), project
    )
    assert out.result == 'Successfully created file: "notes/todo.md"'
    assert out.needs_reindex is True
    assert (project.root / "notes" / "todo.md").is_file()


def test_dispatch_unexpected_exception(home):
    dispatcher = ToolDispatcher(ToolRegistry([_BoomTool()]), home_dir=home)
    out = dispatcher.dispatch(_call("boom"), None)
    assert out.result == "Error: Tool boom failed unexpectedly."
