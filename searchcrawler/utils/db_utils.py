"""Helpers for database connection strings.

Tortoise ORM selects its PostgreSQL backend from the ``asyncpg://`` scheme,
while operators usually hand us ``postgresql://`` style URLs (sometimes with a
SQLAlchemy driver suffix). Anything else, such as ``sqlite://``, is passed
through untouched.
"""

from __future__ import annotations

import os


def to_asyncpg_dsn(url: str) -> str:
    """Convert a PostgreSQL DSN to the ``asyncpg://`` scheme for Tortoise."""

    if url.startswith("postgresql+"):
        url = "postgresql://" + url.split("://", 1)[1]
    if url.startswith("postgresql://"):
        return "asyncpg://" + url[len("postgresql://") :]
    if url.startswith("postgres://"):
        return "asyncpg://" + url[len("postgres://") :]
    return url


def resolve_database_url(database_url: str | None = None) -> str:
    """Pick the database URL, falling back to the ``POSTGRES_*`` variables."""

    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        user = os.getenv("POSTGRES_USER", "crawler")
        password = os.getenv("POSTGRES_PASSWORD", "postgres")
        host = os.getenv("POSTGRES_HOST", "postgres")
        port = os.getenv("POSTGRES_PORT", "5432")
        db = os.getenv("POSTGRES_DB", "searchengine")
        url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

    return to_asyncpg_dsn(url)
