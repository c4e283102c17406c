"""Tests for the Repository pattern."""

from __future__ import annotations

import pytest

from deskmate.db.repository import Repository
from deskmate.db.vectors import decode_embedding


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


# ------------------------------------------------------------------
# Projects
# ------------------------------------------------------------------


def test_upsert_project_inserts(repo):
    project = repo.upsert_project("app", "/work/app", '{"name": "app"}')
    assert project.id is not None
    assert project.name == "app"
    assert project.root_path == "/work/app"
    assert project.last_indexed is not None
    assert project.structure_json == '{"name": "app"}'


def test_upsert_project_updates_same_root(repo):
    first = repo.upsert_project("app", "/work/app", "{}")
    second = repo.upsert_project("renamed", "/work/app", '{"v": 2}')
    assert second.id == first.id
    assert second.name == "renamed"
    assert second.structure_json == '{"v": 2}'
    assert len(repo.list_projects()) == 1


def test_get_project_not_found(repo):
    assert repo.get_project(999) is None


def test_get_project_by_root(repo):
    repo.upsert_project("app", "/work/app", None)
    assert repo.get_project_by_root("/work/app").name == "app"
    assert repo.get_project_by_root("/other") is None


def test_find_project_by_id(repo):
    p = repo.upsert_project("app", "/work/app", None)
    assert repo.find_project(str(p.id)).root_path == "/work/app"


def test_find_project_by_name_case_insensitive(repo):
    repo.upsert_project("WebApp", "/work/webapp", None)
    assert repo.find_project("webapp").name == "WebApp"


def test_find_project_missing(repo):
    assert repo.find_project("nope") is None


def test_list_projects_ordered_by_name_without_snapshot(repo):
    repo.upsert_project("zeta", "/z", '{"big": true}')
    repo.upsert_project("alpha", "/a", '{"big": true}')
    projects = repo.list_projects()
    assert [p.name for p in projects] == ["alpha", "zeta"]
    assert all(p.structure_json is None for p in projects)


def test_project_root_property(repo):
    p = repo.upsert_project("app", "/work/app", None)
    assert p.root.name == "app"


# ------------------------------------------------------------------
# Insights
# ------------------------------------------------------------------


def test_add_insight_returns_id(repo):
    insight_id = repo.add_insight("prefers TypeScript", [0.1, 0.2])
    assert insight_id >= 1
    assert repo.count_insights() == 1


def test_list_insights_newest_first(repo):
    a = repo.add_insight("first", [1.0, 0.0])
    b = repo.add_insight("second", [0.0, 1.0])
    assert [i.id for i in repo.list_insights()] == [b, a]


def test_insight_embedding_roundtrip(repo):
    repo.add_insight("note", [0.5, -0.25, 1.0])
    record = repo.list_insights()[0]
    assert decode_embedding(record.embedding) == [0.5, -0.25, 1.0]
    assert record.created_at is not None


def test_insight_source_project(repo):
    p = repo.upsert_project("app", "/work/app", None)
    repo.add_insight("note", [1.0], source_project_id=p.id)
    assert repo.list_insights()[0].source_project_id == p.id
