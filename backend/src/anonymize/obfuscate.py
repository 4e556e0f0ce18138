"""Shape-preserving random replacement of sensitive text.

Every non-whitespace character is replaced by a character drawn from an
alphabet with the operating system's secure random source; whitespace is kept
so the replacement has the same length and word layout as the original.

Values shared between rows (fingerprints, codes, directors) are replaced by
value: one replacement is generated per distinct value and written to every
row holding it, so rows that were equal stay equal.
"""

from __future__ import annotations

import logging
import secrets
import string
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import TableClause

from .errors import QueryError, RandomnessError

logger = logging.getLogger(__name__)


ALPHANUMERIC = string.ascii_lowercase + string.ascii_uppercase + string.digits
HEXADECIMAL = "0123456789abcdef"

# Draws allowed before giving up on a replacement that differs from its input
MAX_DRAWS = 64

_random = secrets.SystemRandom()


def obfuscate(text: str, alphabet: str = ALPHANUMERIC) -> str:
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    try:
        return "".join(char if char.isspace() else _random.choice(alphabet) for char in text)
    except (NotImplementedError, OSError) as exc:
        raise RandomnessError(f"generating random characters: {exc}") from exc


def has_content(text: str) -> bool:
    return any(not char.isspace() for char in text)


def obfuscate_changed(text: str, alphabet: str = ALPHANUMERIC) -> str:
    """Like :func:`obfuscate`, but never hands back ``text`` itself.

    Short values (initials, one-letter titles) would otherwise survive a
    draw now and then. Whitespace-only text has nothing to replace and is
    returned as is.
    """

    if not has_content(text):
        return text
    for _ in range(MAX_DRAWS):
        result = obfuscate(text, alphabet)
        if result != text:
            return result
    raise RandomnessError(f"no replacement differing from {len(text)}-character input after {MAX_DRAWS} draws")


def as_text(value: Any) -> str:
    """Text form of a stored value (perceptual hashes are integers, some hashes blobs)."""

    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def build_patch(row: Mapping[str, Any], columns: Sequence[str], alphabet: str = ALPHANUMERIC) -> dict[str, str]:
    """Column set patch for ``columns``; null columns are left out."""

    patch: dict[str, str] = {}
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        patch[column] = obfuscate_changed(as_text(value), alphabet)
    return patch


def write_patch(conn: Connection, table: TableClause, key: Mapping[str, Any], patch: Mapping[str, Any]) -> bool:
    """Apply ``patch`` to the row identified by ``key``; False when there is nothing to write."""

    if not patch:
        return False

    stmt = update(table).values(dict(patch))
    for column, value in key.items():
        stmt = stmt.where(table.c[column] == value)

    try:
        conn.execute(stmt)
    except SQLAlchemyError as exc:
        raise QueryError(f"anonymising {table.name}: {exc}") from exc
    return True


def anonymise_row_columns(
    conn: Connection,
    table: TableClause,
    key: Mapping[str, Any],
    row: Mapping[str, Any],
    columns: Sequence[str],
    alphabet: str = ALPHANUMERIC,
) -> bool:
    """Write one combined update for the row identified by ``key``.

    Returns False when every column was null and nothing was written.
    """

    return write_patch(conn, table, key, build_patch(row, columns, alphabet))


class SharedValueTracker:
    """One replacement per distinct value of a column, for the length of a stage.

    Replacements are written row by row on the scan key, never by value, so
    an original that happens to equal another value's replacement is still
    rewritten.
    """

    def __init__(self, alphabet: str = ALPHANUMERIC) -> None:
        self.alphabet = alphabet
        self._replacements: dict[str, dict[Any, str]] = {}

    def replacement_for(self, column: str, value: Any) -> Optional[str]:
        if value is None:
            return None
        replacements = self._replacements.setdefault(column, {})
        replacement = replacements.get(value)
        if replacement is None:
            replacement = obfuscate_changed(as_text(value), self.alphabet)
            replacements[value] = replacement
        return replacement

    def distinct_values(self, column: str) -> int:
        return len(self._replacements.get(column, ()))


def anonymise_shared_value(
    conn: Connection,
    table: TableClause,
    key: Mapping[str, Any],
    column: str,
    value: Any,
    tracker: SharedValueTracker,
) -> Optional[str]:
    """Write the replacement ``tracker`` holds for ``value`` into the row at ``key``.

    Every row sharing ``value`` receives the same replacement. Returns the
    replacement, or None for a null value.
    """

    replacement = tracker.replacement_for(column, value)
    if replacement is None:
        return None
    write_patch(conn, table, key, {column: replacement})
    return replacement
