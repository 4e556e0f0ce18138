"""Row count comparison between the source store and its anonymised copy."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from sqlalchemy import func, inspect, select, table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from db.session import build_engine

from .errors import QueryError, VerificationError

logger = logging.getLogger(__name__)


def count_rows(engine: Engine, exclude: Iterable[str] = ()) -> dict[str, int]:
    skipped = set(exclude)
    counts: dict[str, int] = {}
    try:
        with engine.connect() as conn:
            for name in inspect(conn).get_table_names():
                if name in skipped or name.startswith("sqlite_"):
                    continue
                counts[name] = conn.execute(select(func.count()).select_from(table(name))).scalar_one()
    except SQLAlchemyError as exc:
        raise QueryError(f"counting rows: {exc}") from exc
    return counts


def verify_row_counts(source_path: Path, engine: Engine, exclude: Iterable[str] = ()) -> int:
    """Raise VerificationError when any table gained or lost rows.

    Returns the number of tables compared.
    """

    exclude = set(exclude)
    source_engine = build_engine(source_path, read_only=True)
    try:
        expected = count_rows(source_engine, exclude)
    finally:
        source_engine.dispose()
    actual = count_rows(engine, exclude)

    mismatches = {
        name: (expected.get(name, 0), actual.get(name, 0))
        for name in expected.keys() | actual.keys()
        if expected.get(name, 0) != actual.get(name, 0)
    }
    if mismatches:
        raise VerificationError(mismatches)

    logger.info("Row counts match for %d tables", len(expected))
    return len(expected)
