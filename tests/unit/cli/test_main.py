"""Tests for the deskmate CLI commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from deskmate.cli.main import app
from deskmate.db.connection import Database
from deskmate.db.repository import Repository
from deskmate.db.schema import initialize
from deskmate.messages import ChatMessage, ToolCall

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command from an empty directory with no DESKMATE_* overrides.

    The global config file is redirected under *tmp_path*; its path is returned.
    """
    global_config = tmp_path / "home" / ".deskmate" / "config.yaml"
    monkeypatch.setattr("deskmate.config._GLOBAL_CONFIG_PATH", global_config)
    monkeypatch.chdir(tmp_path)
    for var in ("DESKMATE_COMPLETION_MODEL", "DESKMATE_EMBEDDING_MODEL", "DESKMATE_DB"):
        monkeypatch.delenv(var, raising=False)
    return global_config


def _make_db(path: Path) -> sqlite3.Connection:
    conn = Database(path).connect()
    initialize(conn)
    return conn


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "deskmate.db"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "web"
    (root / "src").mkdir(parents=True)
    (root / "src" / "a.ts").write_text("export {}\n", encoding="utf-8")
    return root


class _ScriptedClient:
    def __init__(self, *replies: ChatMessage) -> None:
        self.replies = list(replies)
        self.requests: list[list[ChatMessage]] = []

    def complete(self, messages, tools=None):
        self.requests.append(list(messages))
        return self.replies.pop(0)

    def embed(self, text: str) -> list[float]:
        return [1.0, 0.0]


# ---------------------------------------------------------------------------
# deskmate --version / version
# ---------------------------------------------------------------------------


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "deskmate" in result.output.lower()


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("deskmate ")


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("index", "projects", "chat", "recall"):
        assert name in result.output


# ---------------------------------------------------------------------------
# deskmate index / projects
# ---------------------------------------------------------------------------


def test_index_creates_project(db_path: Path, project_dir: Path) -> None:
    result = runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Indexed web" in result.output
    assert (project_dir / "AIContext.md").exists()

    conn = _make_db(db_path)
    try:
        projects = Repository(conn).list_projects()
    finally:
        conn.close()
    assert [p.name for p in projects] == ["web"]


def test_index_creates_global_config_on_first_run(
    db_path: Path, project_dir: Path, _isolated_config: Path
) -> None:
    assert not _isolated_config.exists()

    result = runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert _isolated_config.exists()
    assert "completion:" in _isolated_config.read_text(encoding="utf-8")


def test_index_keeps_existing_global_config(
    db_path: Path, project_dir: Path, _isolated_config: Path
) -> None:
    _isolated_config.parent.mkdir(parents=True)
    _isolated_config.write_text("indexing:\n  max_depth: 2\n", encoding="utf-8")

    result = runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert _isolated_config.read_text(encoding="utf-8") == "indexing:\n  max_depth: 2\n"


def test_index_twice_keeps_one_project(db_path: Path, project_dir: Path) -> None:
    runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])
    result = runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])
    assert result.exit_code == 0

    conn = _make_db(db_path)
    try:
        assert len(Repository(conn).list_projects()) == 1
    finally:
        conn.close()


def test_index_missing_folder_exits_1(db_path: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["index", str(tmp_path / "nope"), "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Cannot index" in result.output


def test_index_file_exits_1(db_path: Path, tmp_path: Path) -> None:
    f = tmp_path / "file.txt"
    f.write_text("x", encoding="utf-8")
    result = runner.invoke(app, ["index", str(f), "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Cannot index" in result.output


def test_projects_empty(db_path: Path) -> None:
    result = runner.invoke(app, ["projects", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No projects indexed yet" in result.output


def test_projects_lists_indexed(db_path: Path, project_dir: Path) -> None:
    runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])
    result = runner.invoke(app, ["projects", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Indexed projects" in result.output
    assert "web" in result.output


def test_invalid_config_exits_1(db_path: Path, tmp_path: Path) -> None:
    (tmp_path / "deskmate.yaml").write_text("retrieval:\n  memory_limit: -5\n", encoding="utf-8")
    result = runner.invoke(app, ["projects", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


# ---------------------------------------------------------------------------
# deskmate chat
# ---------------------------------------------------------------------------


def test_chat_one_shot(db_path: Path) -> None:
    client = _ScriptedClient(ChatMessage.assistant("Hello from deskmate"))
    with patch("deskmate.cli.chat.build_client", return_value=client):
        result = runner.invoke(app, ["chat", "-m", "Hi", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Hello from deskmate" in result.output
    assert client.requests[0][-1].content == "Hi"


def test_chat_without_client_exits_1(db_path: Path) -> None:
    with patch("deskmate.cli.chat.build_client", return_value=None):
        result = runner.invoke(app, ["chat", "-m", "Hi", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "No completion service is configured" in result.output


def test_chat_unknown_project_exits_1(db_path: Path) -> None:
    result = runner.invoke(app, ["chat", "-p", "ghost", "-m", "Hi", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Project 'ghost' is not indexed" in result.output


def test_chat_with_project_runs_tools_and_reindexes(db_path: Path, project_dir: Path) -> None:
    runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])
    client = _ScriptedClient(
        ChatMessage.assistant(
            None,
            [ToolCall(id="c1", name="create_file", arguments='{"path": "notes/todo.md", "content": "- [ ] x"}')],
        ),
        ChatMessage.assistant("Created notes/todo.md."),
    )
    with patch("deskmate.cli.chat.build_client", return_value=client):
        result = runner.invoke(
            app, ["chat", "-p", "web", "-m", "add a todo", "--db", str(db_path)]
        )

    assert result.exit_code == 0, result.output
    assert (project_dir / "notes" / "todo.md").exists()
    # Background re-index is flushed before the command exits
    conn = _make_db(db_path)
    try:
        project = Repository(conn).find_project("web")
    finally:
        conn.close()
    assert '"notes"' in project.structure_json


def test_chat_loop_switches_project_and_exits(db_path: Path, project_dir: Path) -> None:
    runner.invoke(app, ["index", str(project_dir), "--db", str(db_path)])
    client = _ScriptedClient(ChatMessage.assistant("First"), ChatMessage.assistant("Second"))
    with patch("deskmate.cli.chat.build_client", return_value=client):
        result = runner.invoke(
            app,
            ["chat", "--db", str(db_path)],
            input="/use ghost\n/use web\nhello\nagain\nexit\n",
        )

    assert result.exit_code == 0, result.output
    assert "Project 'ghost' is not indexed" in result.output
    assert "Active project: web" in result.output
    assert "First" in result.output and "Second" in result.output
    # The second turn carries the first exchange as history
    second = client.requests[1]
    contents = [m.content for m in second if m.role != "system"]
    assert contents == ["hello", "First", "again"]
    assert "The currently active project is 'web'" in second[0].content


# ---------------------------------------------------------------------------
# deskmate recall
# ---------------------------------------------------------------------------


def test_recall_lists_matches(db_path: Path) -> None:
    conn = _make_db(db_path)
    repo = Repository(conn)
    repo.add_insight("User prefers pnpm", [1.0, 0.0])
    repo.add_insight("User likes dark mode", [0.0, 1.0])
    conn.close()

    with (
        patch("deskmate.cli.recall.validate_api_key"),
        patch("deskmate.cli.recall.LLMClient", return_value=_ScriptedClient()),
    ):
        result = runner.invoke(app, ["recall", "package manager", "-n", "1", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "User prefers pnpm" in result.output
    assert "dark mode" not in result.output


def test_recall_no_memories(db_path: Path) -> None:
    with (
        patch("deskmate.cli.recall.validate_api_key"),
        patch("deskmate.cli.recall.LLMClient", return_value=_ScriptedClient()),
    ):
        result = runner.invoke(app, ["recall", "anything", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No matching memories" in result.output
    assert "0 stored" in result.output


def test_recall_without_key_exits_1(db_path: Path) -> None:
    with patch("deskmate.cli.recall.validate_api_key", side_effect=EnvironmentError("missing")):
        result = runner.invoke(app, ["recall", "anything", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "embedding API key" in result.output
