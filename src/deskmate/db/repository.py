"""Repository pattern for all deskmate database operations.

Single interface for: indexed projects (with their structure snapshots) and
long-term memory insights (text + float32 embedding blob).
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from deskmate.db.models import InsightRecord, Project
from deskmate.db.vectors import encode_embedding

_PROJECT_COLUMNS = "id, name, root_path, last_indexed, structure_json"
_INSIGHT_COLUMNS = "id, text, embedding, source_project_id, created_at"


class Repository:
    """Data access layer for projects and insights.

    Wraps an open sqlite3.Connection. The connection is owned by the caller and
    must be closed after use. Writes commit per statement; no multi-statement
    transactions are used.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see deskmate.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def upsert_project(self, name: str, root_path: str, structure_json: str | None) -> Project:
        """Insert or update the project keyed on *root_path*.

        Refreshes ``last_indexed`` to the current time.

        Returns:
            The stored Project.
        """
        self._conn.execute(
            """
            INSERT INTO projects (name, root_path, last_indexed, structure_json)
            VALUES (?, ?, datetime('now'), ?)
            ON CONFLICT(root_path) DO UPDATE SET
                name = excluded.name,
                last_indexed = excluded.last_indexed,
                structure_json = excluded.structure_json
            """,
            (name, root_path, structure_json),
        )
        self._conn.commit()
        project = self.get_project_by_root(root_path)
        if project is None:
            raise RuntimeError(f"Project upsert for '{root_path}' was not persisted.")
        return project

    def get_project(self, project_id: int) -> Project | None:
        """Return a project by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def get_project_by_root(self, root_path: str) -> Project | None:
        """Return a project by its root path, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE root_path = ?", (root_path,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def find_project(self, key: str) -> Project | None:
        """Look a project up by numeric id or by (case-insensitive) name.

        When several projects share a name the most recently indexed one wins.
        """
        if key.isdigit():
            project = self.get_project(int(key))
            if project is not None:
                return project
        row = self._conn.execute(
            f"""
            SELECT {_PROJECT_COLUMNS} FROM projects
            WHERE name = ? COLLATE NOCASE
            ORDER BY last_indexed DESC LIMIT 1
            """,
            (key,),
        ).fetchone()
        return _row_to_project(row) if row else None

    def list_projects(self) -> list[Project]:
        """Return all indexed projects ordered by name.

        The structure snapshot is not loaded; use get_project() for it.
        """
        rows = self._conn.execute(
            "SELECT id, name, root_path, last_indexed, NULL AS structure_json "
            "FROM projects ORDER BY name COLLATE NOCASE"
        ).fetchall()
        return [_row_to_project(r) for r in rows]

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def add_insight(
        self,
        text: str,
        embedding: Sequence[float],
        source_project_id: int | None = None,
    ) -> int:
        """Insert an insight with its embedding. Returns the new id."""
        cur = self._conn.execute(
            """
            INSERT INTO insights (text, embedding, source_project_id)
            VALUES (?, ?, ?)
            """,
            (text, encode_embedding(embedding), source_project_id),
        )
        self._conn.commit()
        return int(cur.lastrowid)

    def list_insights(self) -> list[InsightRecord]:
        """Return every insight, newest first (id descending, stable)."""
        rows = self._conn.execute(
            f"SELECT {_INSIGHT_COLUMNS} FROM insights ORDER BY id DESC"
        ).fetchall()
        return [_row_to_insight(r) for r in rows]

    def count_insights(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM insights").fetchone()[0]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        root_path=row["root_path"],
        last_indexed=row["last_indexed"],
        structure_json=row["structure_json"],
    )


def _row_to_insight(row: sqlite3.Row) -> InsightRecord:
    return InsightRecord(
        id=row["id"],
        text=row["text"],
        embedding=bytes(row["embedding"]) if row["embedding"] is not None else b"",
        source_project_id=row["source_project_id"],
        created_at=row["created_at"],
    )
