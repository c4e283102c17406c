"""Tests for project indexing."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from deskmate.db.connection import Database
from deskmate.db.repository import Repository
from deskmate.indexing.indexer import index_project, reindex_project
from deskmate.tools.tree import tree_from_json


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "web"
    (root / "src" / "b").mkdir(parents=True)
    (root / "src" / "a.ts").write_text("", encoding="utf-8")
    (root / "node_modules" / "left-pad").mkdir(parents=True)
    return root


def test_index_project_stores_snapshot(tmp_db, project_dir: Path) -> None:
    repo = Repository(tmp_db)
    project = index_project(repo, project_dir)

    assert project.name == "web"
    assert project.root_path == str(project_dir.resolve())
    assert project.last_indexed is not None

    tree = tree_from_json(project.structure_json)
    names = [c.name for c in tree.children]
    assert "src" in names
    assert "node_modules" not in names


def test_index_project_creates_ai_context(tmp_db, project_dir: Path) -> None:
    project = index_project(Repository(tmp_db), project_dir)

    ai_context = project_dir / "AIContext.md"
    assert ai_context.read_text(encoding="utf-8") == "# AI Context for web\n\n"
    tree = tree_from_json(project.structure_json)
    assert "AIContext.md" in [c.name for c in tree.children]


def test_index_project_keeps_existing_ai_context(tmp_db, project_dir: Path) -> None:
    (project_dir / "AIContext.md").write_text("my notes", encoding="utf-8")
    index_project(Repository(tmp_db), project_dir)
    assert (project_dir / "AIContext.md").read_text(encoding="utf-8") == "my notes"


@pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
def test_index_project_skips_ai_context_linked_outside(tmp_db, project_dir: Path) -> None:
    outside = project_dir.parent / "elsewhere.md"
    (project_dir / "AIContext.md").symlink_to(outside)

    project = index_project(Repository(tmp_db), project_dir)

    assert project.name == "web"
    assert not outside.exists()


def test_reindex_same_root_updates_in_place(tmp_db, project_dir: Path) -> None:
    repo = Repository(tmp_db)
    first = index_project(repo, project_dir)
    (project_dir / "src" / "new.ts").write_text("", encoding="utf-8")
    second = index_project(repo, project_dir)

    assert second.id == first.id
    assert len(repo.list_projects()) == 1
    src = [c for c in tree_from_json(second.structure_json).children if c.name == "src"][0]
    assert "new.ts" in [c.name for c in src.children]


def test_index_project_respects_max_depth(tmp_db, project_dir: Path) -> None:
    project = index_project(Repository(tmp_db), project_dir, max_depth=0)
    src = [c for c in tree_from_json(project.structure_json).children if c.name == "src"][0]
    assert src.children == []
    assert src.error == "Max depth (0) reached"


def test_index_missing_folder_raises(tmp_db, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        index_project(Repository(tmp_db), tmp_path / "missing")


def test_index_file_raises(tmp_db, tmp_path: Path) -> None:
    f = tmp_path / "notes.txt"
    f.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        index_project(Repository(tmp_db), f)


def test_reindex_project_uses_own_connection(tmp_path: Path, project_dir: Path) -> None:
    db_path = tmp_path / "other.db"
    project = reindex_project(db_path, project_dir)

    with Database(db_path) as conn:
        stored = Repository(conn).get_project(project.id)
    assert stored is not None
    assert stored.name == "web"
