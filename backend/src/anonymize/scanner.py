"""Keyset pagination over large tables.

Each page is selected with ``key > cursor ORDER BY key LIMIT page_size`` and
processed inside its own transaction, so memory is bounded to one page and a
failure rolls back only the page in progress. Composite keys are compared as
SQL row values, which makes tables without a single-column key (fingerprints
per file, aliases per owner) pageable too.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import select, tuple_
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import TableClause

from db.session import transaction_scope

from .errors import QueryError

logger = logging.getLogger(__name__)


RowVisitor = Callable[[Connection, Row], None]


@dataclass
class ScanState:
    """Progress of one table scan."""

    cursor: Optional[tuple[Any, ...]] = None
    rows: int = 0
    pages: int = 0


def _page_query(
    table: TableClause,
    key_columns: Sequence[str],
    columns: Sequence[str],
    cursor: Optional[tuple[Any, ...]],
    page_size: int,
):
    keys = [table.c[name] for name in key_columns]
    selected = list(keys) + [table.c[name] for name in columns if name not in key_columns]
    query = select(*selected).order_by(*keys).limit(page_size)

    if cursor is not None:
        if len(keys) == 1:
            query = query.where(keys[0] > cursor[0])
        else:
            query = query.where(tuple_(*keys) > tuple_(*cursor))
    return query


def scan_table(
    engine: Engine,
    table: TableClause,
    key_columns: Sequence[str],
    columns: Sequence[str],
    visit: RowVisitor,
    *,
    page_size: int = 1000,
    log_every: int = 10000,
    label: Optional[str] = None,
) -> ScanState:
    """Visit every row of ``table`` in key order, one transaction per page."""

    if not key_columns:
        raise ValueError("key_columns must not be empty")
    label = label or table.name
    state = ScanState()

    while True:
        query = _page_query(table, key_columns, columns, state.cursor, page_size)
        try:
            with transaction_scope(engine) as conn:
                rows = conn.execute(query).fetchall()
                for row in rows:
                    visit(conn, row)
                    state.rows += 1
                    if state.rows % log_every == 0:
                        logger.info("Anonymised %d %s", state.rows, label)
        except SQLAlchemyError as exc:
            raise QueryError(f"scanning {table.name}: {exc}") from exc

        if not rows:
            break

        last = rows[-1]._mapping
        next_cursor = tuple(last[name] for name in key_columns)
        if state.cursor is not None and not next_cursor > state.cursor:
            raise QueryError(f"cursor on {table.name} did not advance past {state.cursor!r}")
        state.cursor = next_cursor
        state.pages += 1

    return state
