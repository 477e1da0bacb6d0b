from __future__ import annotations

import contextlib
from typing import Iterator, Optional

import psycopg

from .config import get_settings
from .repository import PostgresContactStore


@contextlib.contextmanager
def get_connection(database_url: Optional[str] = None, autocommit: bool = True) -> Iterator[psycopg.Connection]:
    conn = psycopg.connect(database_url or get_settings().database_url)
    conn.autocommit = autocommit
    try:
        yield conn
    finally:
        conn.close()


@contextlib.contextmanager
def open_store(database_url: Optional[str] = None) -> Iterator[PostgresContactStore]:
    with get_connection(database_url) as conn:
        yield PostgresContactStore(conn)


__all__ = ["get_connection", "open_store"]
