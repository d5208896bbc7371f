"""SQLite storage for links and clicks."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from .models import Click, Link


class RecordNotFound(LookupError):
    """Raised when a requested record does not exist."""


class LinkRepository(Protocol):
    """Data access for links."""

    def create_link(self, link: Link) -> None: ...

    def get_link_by_short_code(self, short_code: str) -> Link: ...

    def get_all_links(self) -> list[Link]: ...

    def count_clicks_by_link_id(self, link_id: int) -> int: ...


class ClickRepository(Protocol):
    """Data access for clicks."""

    def create_click(self, click: Click) -> None: ...

    def count_clicks_by_link_id(self, link_id: int) -> int: ...


_SCHEMA = """
CREATE TABLE IF NOT EXISTS links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT,
    updated_at TEXT,
    deleted_at TEXT,
    short_code TEXT NOT NULL UNIQUE,
    long_url TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_links_deleted_at ON links (deleted_at);
CREATE TABLE IF NOT EXISTS clicks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    link_id INTEGER REFERENCES links (id),
    timestamp TEXT,
    user_agent VARCHAR(255),
    ip_address VARCHAR(50)
);
CREATE INDEX IF NOT EXISTS idx_clicks_link_id ON clicks (link_id);
"""

_LINK_COLUMNS = "id, created_at, updated_at, deleted_at, short_code, long_url"


def connect(path: str | Path) -> sqlite3.Connection:
    """Open a SQLite connection usable from several threads."""
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def migrate(conn: sqlite3.Connection) -> None:
    """Create the links and clicks tables and their indexes if missing."""
    with conn:
        conn.executescript(_SCHEMA)


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_link(row: sqlite3.Row) -> Link:
    return Link(
        id=row["id"],
        short_code=row["short_code"],
        long_url=row["long_url"],
        created_at=_from_text(row["created_at"]),
        updated_at=_from_text(row["updated_at"]),
        deleted_at=_from_text(row["deleted_at"]),
    )


def _count_clicks(conn: sqlite3.Connection, link_id: int) -> int:
    row = conn.execute("SELECT COUNT(*) FROM clicks WHERE link_id = ?", (link_id,)).fetchone()
    return int(row[0])


class SqliteLinkRepository:
    """Link storage backed by SQLite."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_link(self, link: Link) -> None:
        """Insert ``link`` and fill in its id and timestamps."""
        now = datetime.now(timezone.utc)
        if link.created_at is None:
            link.created_at = now
        if link.updated_at is None:
            link.updated_at = now
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO links (created_at, updated_at, deleted_at, short_code, long_url)"
                " VALUES (?, ?, ?, ?, ?)",
                (
                    _to_text(link.created_at),
                    _to_text(link.updated_at),
                    _to_text(link.deleted_at),
                    link.short_code,
                    link.long_url,
                ),
            )
        link.id = cursor.lastrowid

    def get_link_by_short_code(self, short_code: str) -> Link:
        """Return the link with ``short_code`` or raise :class:`RecordNotFound`."""
        row = self._conn.execute(
            f"SELECT {_LINK_COLUMNS} FROM links"
            " WHERE short_code = ? AND deleted_at IS NULL ORDER BY id LIMIT 1",
            (short_code,),
        ).fetchone()
        if row is None:
            raise RecordNotFound(f"no link with short code {short_code!r}")
        return _row_to_link(row)

    def get_all_links(self) -> list[Link]:
        """Return every link that has not been deleted."""
        rows = self._conn.execute(
            f"SELECT {_LINK_COLUMNS} FROM links WHERE deleted_at IS NULL ORDER BY id"
        ).fetchall()
        return [_row_to_link(row) for row in rows]

    def count_clicks_by_link_id(self, link_id: int) -> int:
        """Return the number of clicks recorded for ``link_id``."""
        return _count_clicks(self._conn, link_id)


class SqliteClickRepository:
    """Click storage backed by SQLite."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_click(self, click: Click) -> None:
        """Insert ``click`` and fill in its id."""
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO clicks (link_id, timestamp, user_agent, ip_address)"
                " VALUES (?, ?, ?, ?)",
                (click.link_id, _to_text(click.timestamp), click.user_agent, click.ip_address),
            )
        click.id = cursor.lastrowid

    def count_clicks_by_link_id(self, link_id: int) -> int:
        """Return the number of clicks recorded for ``link_id``."""
        return _count_clicks(self._conn, link_id)