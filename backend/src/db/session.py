"""SQLAlchemy engine factory and transaction scope for SQLite stores."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from .config import get_settings


def build_engine(path: Path, *, read_only: bool = False) -> Engine:
    """Return an engine bound to a single SQLite connection on ``path``.

    Read-only engines open the file through a ``mode=ro`` URI so no statement
    issued through them can modify the database.
    """

    settings = get_settings()
    resolved = Path(path).resolve()
    uri = f"file:{quote(resolved.as_posix())}"
    if read_only:
        uri += "?mode=ro"

    def _connect() -> sqlite3.Connection:
        return sqlite3.connect(uri, uri=True, timeout=settings.timeout, check_same_thread=False)

    return create_engine(
        "sqlite+pysqlite://",
        creator=_connect,
        poolclass=StaticPool,
        future=True,
    )


@contextmanager
def transaction_scope(engine: Engine) -> Iterator[Connection]:
    connection = engine.connect()
    transaction = connection.begin()
    try:
        yield connection
        transaction.commit()
    except Exception:
        transaction.rollback()
        raise
    finally:
        connection.close()


@contextmanager
def autocommit_scope(engine: Engine) -> Iterator[Connection]:
    """Yield a connection outside any transaction (VACUUM, ANALYZE)."""

    with engine.connect() as connection:
        yield connection.execution_options(isolation_level="AUTOCOMMIT")
