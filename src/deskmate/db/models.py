"""Domain models for the deskmate database layer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class Project:
    id: int
    name: str
    root_path: str
    last_indexed: str | None = None
    structure_json: str | None = None

    @property
    def root(self) -> Path:
        return Path(self.root_path)


@dataclass
class InsightRecord:
    id: int
    text: str
    embedding: bytes
    source_project_id: int | None = None
    created_at: str | None = None
