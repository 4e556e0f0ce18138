from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest


SCHEMA = """
CREATE TABLE folders (
    id INTEGER PRIMARY KEY,
    path VARCHAR(255) NOT NULL,
    parent_folder_id INTEGER REFERENCES folders(id)
);
CREATE TABLE files (
    id INTEGER PRIMARY KEY,
    basename VARCHAR(255) NOT NULL,
    parent_folder_id INTEGER NOT NULL REFERENCES folders(id)
);
CREATE TABLE files_fingerprints (
    file_id INTEGER NOT NULL REFERENCES files(id),
    type VARCHAR(255) NOT NULL,
    fingerprint BLOB NOT NULL,
    PRIMARY KEY (file_id, type)
);
CREATE TABLE blobs (checksum VARCHAR(255) PRIMARY KEY, blob BLOB);
CREATE TABLE scenes (
    id INTEGER PRIMARY KEY,
    title TEXT,
    details TEXT,
    url TEXT,
    code TEXT,
    director TEXT,
    cover_blob VARCHAR(255)
);
CREATE TABLE scene_markers (id INTEGER PRIMARY KEY, title VARCHAR(255) NOT NULL, scene_id INTEGER);
CREATE TABLE images (id INTEGER PRIMARY KEY, title TEXT, url TEXT);
CREATE TABLE galleries (id INTEGER PRIMARY KEY, title TEXT, details TEXT);
CREATE TABLE performers (
    id INTEGER PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    details TEXT,
    url TEXT,
    twitter TEXT,
    instagram TEXT,
    tattoos TEXT,
    piercings TEXT,
    image_blob VARCHAR(255)
);
CREATE TABLE performer_aliases (
    performer_id INTEGER NOT NULL,
    alias VARCHAR(255) NOT NULL,
    PRIMARY KEY (performer_id, alias)
);
CREATE TABLE studios (id INTEGER PRIMARY KEY, name TEXT, url TEXT, details TEXT, image_blob VARCHAR(255));
CREATE TABLE studio_aliases (studio_id INTEGER NOT NULL, alias VARCHAR(255) NOT NULL, PRIMARY KEY (studio_id, alias));
CREATE TABLE tags (id INTEGER PRIMARY KEY, name TEXT, description TEXT, image_blob VARCHAR(255));
CREATE TABLE tag_aliases (tag_id INTEGER NOT NULL, alias VARCHAR(255) NOT NULL, PRIMARY KEY (tag_id, alias));
CREATE TABLE movies (
    id INTEGER PRIMARY KEY,
    name TEXT,
    aliases TEXT,
    synopsis TEXT,
    url TEXT,
    director TEXT,
    front_image_blob VARCHAR(255),
    back_image_blob VARCHAR(255)
);
CREATE TABLE scene_stash_ids (scene_id INTEGER, endpoint TEXT, stash_id TEXT);
CREATE TABLE studio_stash_ids (studio_id INTEGER, endpoint TEXT, stash_id TEXT);
CREATE TABLE performer_stash_ids (performer_id INTEGER, endpoint TEXT, stash_id TEXT);
"""

SHARED_MD5 = "d41d8cd98f00b204e9800998ecf8427e"
PHASH = 8070834532098765432


def _seed(conn: sqlite3.Connection) -> None:
    conn.executemany(
        "INSERT INTO folders (id, path, parent_folder_id) VALUES (?, ?, ?)",
        [
            (5, "/media/private", None),
            (9, "/media/private/holiday", 5),
            (12, "/media/private/holiday/beach", 9),
            (14, "/media/private/family", 5),
            (20, "/downloads", None),
        ],
    )
    conn.executemany(
        "INSERT INTO files (id, basename, parent_folder_id) VALUES (?, ?, ?)",
        [
            (1, "jane doe at the beach.mp4", 12),
            (2, "copy of jane doe at the beach.mp4", 20),
            (3, "birthday.jpg", 14),
        ],
    )
    conn.executemany(
        "INSERT INTO files_fingerprints (file_id, type, fingerprint) VALUES (?, ?, ?)",
        [
            (1, "md5", SHARED_MD5),
            (1, "oshash", "a1b2c3d4e5f60718"),
            (2, "md5", SHARED_MD5),
            (2, "oshash", "0f1e2d3c4b5a6978"),
            (3, "phash", PHASH),
        ],
    )
    conn.executemany(
        "INSERT INTO blobs (checksum, blob) VALUES (?, ?)",
        [("c0ffee", b"\x89PNG...."), ("beef", b"\xff\xd8\xff....")],
    )
    conn.executemany(
        "INSERT INTO scenes (id, title, details, url, code, director, cover_blob) VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            (1, "Jane Doe at the beach", "Filmed in Brighton", "https://example.com/1", "ABC-123", "John Smith", "c0ffee"),
            (2, "Jane Doe again", None, None, "ABC-123", "John Smith", None),
            (3, "Untitled", None, "https://example.com/3", None, "Alice Jones", "beef"),
        ],
    )
    conn.executemany(
        "INSERT INTO scene_markers (id, title, scene_id) VALUES (?, ?, ?)",
        [(1, "Intro", 1), (2, "Intro", 2), (3, "Finale", 1)],
    )
    conn.executemany(
        "INSERT INTO images (id, title, url) VALUES (?, ?, ?)",
        [(1, "Birthday party", "https://example.com/img/1"), (2, None, None)],
    )
    conn.executemany(
        "INSERT INTO galleries (id, title, details) VALUES (?, ?, ?)",
        [(1, "Holiday 2019", "Two weeks in Spain"), (2, "Misc", None)],
    )
    conn.executemany(
        "INSERT INTO performers (id, name, details, url, twitter, instagram, tattoos, piercings, image_blob)"
        " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            (1, "Jane Doe", "Born in Leeds", None, "@janedoe", "janedoe", "rose on left arm", None, "c0ffee"),
            (2, "John Smith", None, None, None, None, None, "ear", None),
        ],
    )
    conn.executemany(
        "INSERT INTO performer_aliases (performer_id, alias) VALUES (?, ?)",
        [(1, "J. Doe"), (1, "Janey"), (1, "Jane D"), (2, "Janey"), (2, "Johnny")],
    )
    conn.executemany(
        "INSERT INTO studios (id, name, url, details, image_blob) VALUES (?, ?, ?, ?, ?)",
        [(1, "Seaside Films", "https://seaside.example", None, "beef"), (2, "Home Videos", None, None, None)],
    )
    conn.executemany(
        "INSERT INTO studio_aliases (studio_id, alias) VALUES (?, ?)",
        [(1, "Seaside"), (1, "SSF")],
    )
    conn.executemany(
        "INSERT INTO tags (id, name, description, image_blob) VALUES (?, ?, ?, ?)",
        [(1, "beach", "Sandy places", None), (2, "family", None, "c0ffee")],
    )
    conn.executemany(
        "INSERT INTO tag_aliases (tag_id, alias) VALUES (?, ?)",
        [(1, "seaside"), (2, "relatives")],
    )
    conn.executemany(
        "INSERT INTO movies (id, name, aliases, synopsis, url, director, front_image_blob, back_image_blob)"
        " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        [(1, "Summer", "Summer 2019, Holiday", "A summer holiday", None, "John Smith", "c0ffee", "beef")],
    )
    conn.executemany(
        "INSERT INTO scene_stash_ids (scene_id, endpoint, stash_id) VALUES (?, ?, ?)",
        [(1, "https://stashdb.example/graphql", "2f6b5a1c")],
    )
    conn.executemany(
        "INSERT INTO studio_stash_ids (studio_id, endpoint, stash_id) VALUES (?, ?, ?)",
        [(1, "https://stashdb.example/graphql", "77aa")],
    )
    conn.executemany(
        "INSERT INTO performer_stash_ids (performer_id, endpoint, stash_id) VALUES (?, ?, ?)",
        [(1, "https://stashdb.example/graphql", "9c0d")],
    )


@pytest.fixture
def library_db(tmp_path: Path) -> Path:
    """A small media library database with every anonymised table populated."""

    path = tmp_path / "library.sqlite"
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA)
        _seed(conn)
        conn.commit()
    finally:
        conn.close()
    return path


def query(path: Path, sql: str, params: tuple = ()) -> list[tuple]:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()


@pytest.fixture
def fetch():
    return query
