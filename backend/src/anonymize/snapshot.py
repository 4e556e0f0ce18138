"""Working copies of a library store.

The source database is exported with ``VACUUM INTO`` through a read-only
connection, so the copy is a consistent snapshot and the source file is never
written. All anonymisation happens on the copy.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from db.session import autocommit_scope, build_engine

from .errors import CopyError, QueryError, WorkingCopyError

logger = logging.getLogger(__name__)

SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")
OPTIMISE_STATEMENTS = ("ANALYZE", "VACUUM")


@dataclass
class WorkingStore:
    """Mutable copy of the source store and the engine bound to it."""

    path: Path
    engine: Engine

    def close(self) -> None:
        self.engine.dispose()

    def discard(self) -> None:
        """Close the store and delete its backing file."""

        self.close()
        for candidate in [self.path, *(Path(f"{self.path}{suffix}") for suffix in SIDECAR_SUFFIXES)]:
            try:
                candidate.unlink(missing_ok=True)
            except OSError as exc:
                raise WorkingCopyError(f"deleting {candidate}: {exc}") from exc
        logger.info("Discarded working copy %s", self.path)

    def optimise(self) -> None:
        """Refresh planner statistics and compact the file."""

        try:
            with autocommit_scope(self.engine) as connection:
                for statement in OPTIMISE_STATEMENTS:
                    connection.exec_driver_sql(statement)
        except SQLAlchemyError as exc:
            raise QueryError(f"optimising {self.path}: {exc}") from exc


def _check_destination(dest_path: Path) -> None:
    if dest_path.exists():
        raise WorkingCopyError(f"destination {dest_path} already exists")
    parent = dest_path.parent
    if not parent.is_dir():
        raise WorkingCopyError(f"destination directory {parent} does not exist")
    if not os.access(parent, os.W_OK):
        raise WorkingCopyError(f"destination directory {parent} is not writable")


def create_working_copy(source_path: Path, dest_path: Path) -> WorkingStore:
    """Export ``source_path`` into ``dest_path`` and open the copy."""

    source_path = Path(source_path)
    dest_path = Path(dest_path)

    if not source_path.is_file():
        raise WorkingCopyError(f"source store {source_path} does not exist")
    _check_destination(dest_path)

    source_engine = build_engine(source_path, read_only=True)
    try:
        with autocommit_scope(source_engine) as connection:
            connection.execute(text("VACUUM INTO :target"), {"target": str(dest_path.resolve())})
    except SQLAlchemyError as exc:
        dest_path.unlink(missing_ok=True)
        raise CopyError(f"vacuuming into {dest_path}: {exc}") from exc
    finally:
        source_engine.dispose()

    logger.info("Copied %s to %s", source_path, dest_path)

    engine = build_engine(dest_path)
    try:
        with engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1 FROM sqlite_master LIMIT 1")
    except SQLAlchemyError as exc:
        engine.dispose()
        dest_path.unlink(missing_ok=True)
        raise WorkingCopyError(f"opening {dest_path}: {exc}") from exc

    return WorkingStore(path=dest_path, engine=engine)


@contextmanager
def working_copy(source_path: Path, dest_path: Path) -> Iterator[WorkingStore]:
    """Yield a fresh working copy, deleting it unless the block succeeds."""

    store = create_working_copy(source_path, dest_path)
    try:
        yield store
    except BaseException:
        try:
            store.discard()
        except WorkingCopyError:
            logger.exception("Failed to discard working copy %s", store.path)
        raise
    store.close()
