"""Removal of values that cannot be anonymised.

Binary media (cover art, portraits) and identifiers pointing at external
services are removed rather than randomised.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import column, delete, null, table, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from db.session import transaction_scope

from .config import BlobColumn
from .errors import QueryError

logger = logging.getLogger(__name__)


def strip_blob_columns(engine: Engine, columns: Iterable[BlobColumn]) -> int:
    """Set every configured blob column to NULL; returns rows touched."""

    touched = 0
    current = "blob columns"
    try:
        with transaction_scope(engine) as conn:
            for blob in columns:
                current = f"{blob.table}.{blob.column}"
                target = table(blob.table, column(blob.column))
                result = conn.execute(update(target).values({blob.column: null()}))
                touched += result.rowcount or 0
                logger.info("Cleared %s", current)
    except SQLAlchemyError as exc:
        raise QueryError(f"clearing {current}: {exc}") from exc
    return touched


def truncate_tables(engine: Engine, tables: Iterable[str]) -> int:
    """Delete every row of each table; returns rows deleted."""

    deleted = 0
    current = "tables"
    try:
        with transaction_scope(engine) as conn:
            for name in tables:
                current = name
                result = conn.execute(delete(table(name)))
                deleted += result.rowcount or 0
                logger.info("Emptied %s", name)
    except SQLAlchemyError as exc:
        raise QueryError(f"emptying {current}: {exc}") from exc
    return deleted
