"""Persistent bookmark storage backed by a single SQLite file."""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .config import BOOKMARKS_DB, SCHEMA_VERSION
from .datamodels import ARTICLE_FIELDS, Article
from .errors import StoreError, StoreErrorKind

logger = logging.getLogger("news")

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS bookmarks (
        url TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        description TEXT NOT NULL DEFAULT '',
        image_url TEXT NOT NULL DEFAULT '',
        published_at TEXT NOT NULL DEFAULT '',
        source TEXT NOT NULL DEFAULT ''
    )
"""

_COLUMNS = ", ".join(ARTICLE_FIELDS)
_PLACEHOLDERS = ", ".join(f":{name}" for name in ARTICLE_FIELDS)


class BookmarkStore:
    """Bookmarked articles keyed by url.

    The database is opened on first use and the connection is kept for the
    lifetime of the store. Opening and every operation happen under one lock,
    so concurrent first callers trigger exactly one initialization and all
    share the resulting connection.
    """

    def __init__(self, db_path: str = BOOKMARKS_DB):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # --- lifecycle ---
    def _connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        logger.debug("Opening bookmark database %s", self.db_path)
        try:
            if self.db_path != ":memory:":
                db_dir = os.path.dirname(os.path.abspath(self.db_path))
                os.makedirs(db_dir, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            logger.error("Failed to open bookmark database %s: %s", self.db_path, e)
            raise StoreError(
                StoreErrorKind.INIT_FAILURE, f"cannot open {self.db_path}: {e}"
            ) from e

        conn.row_factory = sqlite3.Row
        try:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version == 0:
                self._create_schema(conn)
            elif version != SCHEMA_VERSION:
                raise StoreError(
                    StoreErrorKind.INIT_FAILURE,
                    f"unsupported bookmark schema version {version} "
                    f"(expected {SCHEMA_VERSION})",
                )
        except sqlite3.Error as e:
            conn.close()
            logger.error("Failed to initialize bookmark database %s: %s", self.db_path, e)
            raise StoreError(
                StoreErrorKind.INIT_FAILURE, f"cannot initialize {self.db_path}: {e}"
            ) from e
        except StoreError:
            conn.close()
            raise

        self._conn = conn
        return conn

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        # An unversioned file may already hold a bookmarks table from
        # elsewhere; stamp it only if its columns match ours.
        existing = [row["name"] for row in conn.execute("PRAGMA table_info(bookmarks)")]
        if existing and sorted(existing) != sorted(ARTICLE_FIELDS):
            raise StoreError(
                StoreErrorKind.INIT_FAILURE,
                f"{self.db_path} has an unversioned bookmarks table with "
                f"unexpected columns: {', '.join(existing)}",
            )
        logger.info("Creating bookmark schema v%d in %s", SCHEMA_VERSION, self.db_path)
        with conn:
            conn.execute(CREATE_TABLE_SQL)
            # PRAGMA does not accept bound parameters.
            conn.execute(f"PRAGMA user_version = {int(SCHEMA_VERSION)}")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            except sqlite3.Error as e:
                logger.error("Bookmark database operation failed: %s", e)
                raise StoreError(StoreErrorKind.IO_FAILURE, str(e)) from e

    # --- operations ---
    def add(self, article: Article) -> None:
        """Insert or replace the bookmark for ``article.url``."""
        if not article.url:
            raise ValueError("cannot bookmark an article without a url")
        with self._transaction() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO bookmarks ({_COLUMNS}) VALUES ({_PLACEHOLDERS})",
                article.to_dict(),
            )
        logger.debug("Bookmarked %s", article.url)

    def remove(self, url: str) -> None:
        """Delete the bookmark for ``url``; a missing bookmark is not an error."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM bookmarks WHERE url = ?", (url,))
        logger.debug("Removed bookmark %s", url)

    def is_bookmarked(self, url: str) -> bool:
        with self._transaction() as conn:
            row = conn.execute("SELECT 1 FROM bookmarks WHERE url = ?", (url,)).fetchone()
        return row is not None

    def list(self) -> List[Article]:
        """Return every bookmark in insertion order."""
        with self._transaction() as conn:
            rows = conn.execute(f"SELECT {_COLUMNS} FROM bookmarks ORDER BY rowid").fetchall()
        return [Article.from_row(row) for row in rows]

    def toggle(self, article: Article) -> bool:
        """Flip the bookmark for ``article`` and return the new state."""
        with self._lock:
            if self.is_bookmarked(article.url):
                self.remove(article.url)
                return False
            self.add(article)
            return True
