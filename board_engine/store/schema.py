"""SQLite schema for the Dream store.

Notes
-----
`history` is the persistent change history used by replication to find local
changes that still need exporting, and to remember deletions so that stale
remote records never resurrect a deleted Dream.
"""

from __future__ import annotations

SCHEMA_V1 = """
PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS dreams (
    dream_id    TEXT PRIMARY KEY,
    title       TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    image_data  BLOB NULL
);

CREATE INDEX IF NOT EXISTS idx_dreams_title ON dreams(title, dream_id);

CREATE TABLE IF NOT EXISTS field_stamps (
    dream_id TEXT NOT NULL,
    field    TEXT NOT NULL CHECK(field IN ('title','description','image_data')),
    stamp    TEXT NOT NULL,
    PRIMARY KEY (dream_id, field),
    FOREIGN KEY (dream_id) REFERENCES dreams(dream_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS history (
    change_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    generation INTEGER NOT NULL,
    dream_id   TEXT NOT NULL,
    kind       TEXT NOT NULL CHECK(kind IN ('insert','update','delete')),
    origin     TEXT NOT NULL CHECK(origin IN ('local','remote'))
);

CREATE INDEX IF NOT EXISTS idx_history_dream_kind ON history(dream_id, kind);
"""
