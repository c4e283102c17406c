"""deskmate database layer."""

from deskmate.db.connection import Database
from deskmate.db.migrations import MIGRATIONS, run_migrations
from deskmate.db.schema import initialize
from deskmate.db.vectors import cosine_similarity, decode_embedding, encode_embedding

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "cosine_similarity",
    "decode_embedding",
    "encode_embedding",
]
