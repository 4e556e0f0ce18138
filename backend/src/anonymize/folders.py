"""Rewrite folder paths into chains of folder ids."""

from __future__ import annotations

import logging
import os
from collections import deque
from typing import Deque, Optional

from sqlalchemy import String, cast, column, literal, select, table, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from db.session import transaction_scope

from .errors import QueryError

logger = logging.getLogger(__name__)


def folder_table(name: str = "folders"):
    return table(name, column("id"), column("path"), column("parent_folder_id"))


def rewrite_folder_paths(engine: Engine, table_name: str = "folders", separator: str = os.sep) -> int:
    """Replace every folder path with the ids of the folder and its ancestors.

    A root folder with id 5 becomes ``"5"``; its child with id 9 becomes
    ``"5/9"`` (with ``/`` as separator). Children of one parent are rewritten
    with a single update. The tree is walked breadth-first from an explicit
    worklist so deep hierarchies do not grow the call stack.

    Returns the number of folders rewritten.
    """

    folders = folder_table(table_name)
    rewritten = 0

    # (parent id, new parent path); None marks the roots
    pending: Deque[tuple[Optional[int], Optional[str]]] = deque([(None, None)])

    try:
        with transaction_scope(engine) as conn:
            while pending:
                parent_id, parent_path = pending.popleft()

                if parent_id is None:
                    condition = folders.c.parent_folder_id.is_(None)
                    new_path = cast(folders.c.id, String)
                else:
                    condition = folders.c.parent_folder_id == parent_id
                    new_path = literal(parent_path + separator, String) + cast(folders.c.id, String)

                result = conn.execute(update(folders).values(path=new_path).where(condition))
                rewritten += result.rowcount or 0

                children = conn.execute(select(folders.c.id, folders.c.path).where(condition)).fetchall()
                pending.extend((child.id, child.path) for child in children)
    except SQLAlchemyError as exc:
        raise QueryError(f"anonymising {table_name}: {exc}") from exc

    logger.info("Rewrote %d folder paths", rewritten)
    return rewritten
