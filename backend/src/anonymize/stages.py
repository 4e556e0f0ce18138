"""Stages of the anonymisation run and the entity columns they rewrite."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import String, cast, column, exists, select, table, update
from sqlalchemy.engine import Connection, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import TableClause

from db.session import transaction_scope

from .config import AliasTable, AnonymizeConfig
from .errors import QueryError
from .folders import rewrite_folder_paths
from .obfuscate import (
    HEXADECIMAL,
    MAX_DRAWS,
    SharedValueTracker,
    anonymise_shared_value,
    as_text,
    build_patch,
    has_content,
    obfuscate,
    write_patch,
)
from .pipeline import Stage, StageContext
from .scanner import scan_table
from .stripper import strip_blob_columns, truncate_tables
from .verify import verify_row_counts

logger = logging.getLogger(__name__)


ID_COLUMN = "id"


@dataclass(frozen=True)
class EntityColumns:
    """Text columns of an entity table.

    ``row_columns`` are obfuscated independently per row. ``shared_columns``
    hold values that several rows may share (studio codes, directors, marker
    titles) and are replaced per distinct value.
    """

    table: str
    title: str
    row_columns: tuple[str, ...] = ()
    shared_columns: tuple[str, ...] = ()

    def table_clause(self):
        names = (ID_COLUMN, *self.row_columns, *self.shared_columns)
        return table(self.table, *(column(name) for name in names))


ENTITIES: tuple[EntityColumns, ...] = (
    EntityColumns("scenes", "scenes", ("title", "details", "url"), ("code", "director")),
    EntityColumns("scene_markers", "scene markers", shared_columns=("title",)),
    EntityColumns("images", "images", ("title", "url")),
    EntityColumns("galleries", "galleries", ("title", "details")),
    EntityColumns(
        "performers",
        "performers",
        ("name", "details", "url", "twitter", "instagram", "tattoos", "piercings"),
    ),
    EntityColumns("studios", "studios", ("name", "url", "details")),
    EntityColumns("tags", "tags", ("name", "description")),
    EntityColumns("movies", "movies", ("name", "aliases", "synopsis", "url", "director")),
)

FILES_TABLE = "files"
FINGERPRINTS_TABLE = "files_fingerprints"


def strip_blobs(context: StageContext) -> int:
    engine = context.store.engine
    touched = strip_blob_columns(engine, context.config.blob_columns)
    return touched + truncate_tables(engine, context.config.blob_tables)


def delete_external_ids(context: StageContext) -> int:
    return truncate_tables(context.store.engine, context.config.external_id_tables)


def anonymise_folders(context: StageContext) -> int:
    return rewrite_folder_paths(context.store.engine, separator=context.config.path_separator)


def anonymise_files(context: StageContext) -> int:
    """Rename every file to its own id."""

    files = table(FILES_TABLE, column(ID_COLUMN), column("basename"))
    try:
        with transaction_scope(context.store.engine) as conn:
            result = conn.execute(update(files).values(basename=cast(files.c.id, String)))
    except SQLAlchemyError as exc:
        raise QueryError(f"anonymising {FILES_TABLE}: {exc}") from exc
    return result.rowcount or 0


def anonymise_fingerprints(context: StageContext) -> int:
    fingerprints = table(FINGERPRINTS_TABLE, column("file_id"), column("type"), column("fingerprint"))
    tracker = SharedValueTracker(HEXADECIMAL)

    def visit(conn: Connection, row: Row) -> None:
        key = {"file_id": row.file_id, "type": row.type}
        anonymise_shared_value(conn, fingerprints, key, "fingerprint", row.fingerprint, tracker)

    state = scan_table(
        context.store.engine,
        fingerprints,
        ("file_id", "type"),
        ("fingerprint",),
        visit,
        page_size=context.config.page_size,
        log_every=context.config.log_every,
        label="fingerprints",
    )
    logger.info("Replaced %d distinct fingerprints", tracker.distinct_values("fingerprint"))
    return state.rows


def _unused_alias(conn: Connection, aliases: TableClause, owner_col: Any, owner: Any, text: str) -> str:
    """Draw a replacement no alias of ``owner`` currently holds."""

    for _ in range(MAX_DRAWS):
        candidate = obfuscate(text)
        try:
            taken = conn.execute(select(exists().where(owner_col == owner, aliases.c.alias == candidate))).scalar()
        except SQLAlchemyError as exc:
            raise QueryError(f"checking {aliases.name}: {exc}") from exc
        if not taken:
            return candidate
    raise QueryError(f"no unused alias for {aliases.name} owner {owner!r} after {MAX_DRAWS} draws")


def anonymise_aliases(context: StageContext, alias: AliasTable) -> int:
    """Obfuscate each alias row, paging on ``(owner, alias)``.

    A rewritten alias may sort after the cursor and show up again in a later
    page; replacements written for the current owner are remembered so it is
    skipped. Replacements never collide with an alias the owner still holds,
    so no original can be mistaken for one.
    """

    aliases = table(alias.table, column(alias.owner_column), column("alias"))
    owner_col = aliases.c[alias.owner_column]
    current_owner: Any = None
    rewritten: set[str] = set()

    def visit(conn: Connection, row: Row) -> None:
        nonlocal current_owner
        values = row._mapping
        owner, value = values[alias.owner_column], values["alias"]
        if owner != current_owner:
            current_owner = owner
            rewritten.clear()
        if value is None or value in rewritten or not has_content(as_text(value)):
            return

        replacement = _unused_alias(conn, aliases, owner_col, owner, as_text(value))
        write_patch(conn, aliases, {alias.owner_column: owner, "alias": value}, {"alias": replacement})
        rewritten.add(replacement)

    state = scan_table(
        context.store.engine,
        aliases,
        (alias.owner_column, "alias"),
        (),
        visit,
        page_size=context.config.page_size,
        log_every=context.config.log_every,
        label=f"{alias.table} aliases",
    )
    return state.rows


def anonymise_entity(context: StageContext, entity: EntityColumns) -> int:
    entity_table = entity.table_clause()
    tracker = SharedValueTracker()

    def visit(conn: Connection, row: Row) -> None:
        values = row._mapping
        patch = build_patch(values, entity.row_columns)
        for name in entity.shared_columns:
            replacement = tracker.replacement_for(name, values[name])
            if replacement is not None:
                patch[name] = replacement
        write_patch(conn, entity_table, {ID_COLUMN: values[ID_COLUMN]}, patch)

    state = scan_table(
        context.store.engine,
        entity_table,
        (ID_COLUMN,),
        (*entity.row_columns, *entity.shared_columns),
        visit,
        page_size=context.config.page_size,
        log_every=context.config.log_every,
        label=entity.title,
    )

    total = state.rows
    for alias in context.config.aliases_for(entity.table):
        total += anonymise_aliases(context, alias)
    return total


def optimise_store(context: StageContext) -> Optional[int]:
    context.store.optimise()
    return None


def verify_store(context: StageContext) -> int:
    return verify_row_counts(
        context.config.source_path,
        context.store.engine,
        exclude=context.config.emptied_tables,
    )


def _entity_stage(entity: EntityColumns) -> Stage:
    return Stage(entity.table, entity.title, lambda context: anonymise_entity(context, entity))


def build_stages(config: AnonymizeConfig) -> list[Stage]:
    """Default stage order: removals first, then paths, then per-table scans."""

    stages = [
        Stage("strip_blobs", "blobs", strip_blobs),
        Stage("delete_external_ids", "external ids", delete_external_ids),
        Stage("folders", "folders", anonymise_folders),
        Stage("files", "files", anonymise_files),
        Stage("fingerprints", "fingerprints", anonymise_fingerprints),
        *(_entity_stage(entity) for entity in ENTITIES),
    ]
    if config.optimise:
        stages.append(Stage("optimise", "store compaction", optimise_store))
    if config.verify_row_counts:
        stages.append(Stage("verify_row_counts", "row count verification", verify_store))
    return stages
