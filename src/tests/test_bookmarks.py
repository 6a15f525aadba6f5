from __future__ import annotations

import sqlite3
import threading
from unittest.mock import patch

import pytest

from news_reader import bookmarks as bookmarks_module
from news_reader.bookmarks import BookmarkStore
from news_reader.datamodels import Article
from news_reader.errors import StoreError, StoreErrorKind


@pytest.fixture
def store(tmp_path):
    s = BookmarkStore(str(tmp_path / "data" / "bookmarks.db"))
    yield s
    s.close()


@pytest.fixture
def article():
    return Article(
        title="Markets rally",
        description="Stocks up",
        url="https://news.test/1",
        image_url="https://img.test/1.png",
        published_at="2024-05-01T10:00:00Z",
        source="Wire",
    )


def test_add_then_list_round_trips(store, article):
    store.add(article)
    assert store.list() == [article]


def test_add_twice_keeps_one_row_with_latest_values(store, article):
    store.add(article)
    updated = Article(title="Markets slump", url=article.url, source="Other")
    store.add(updated)

    items = store.list()
    assert items == [updated]


def test_remove_missing_is_noop(store, article):
    store.add(article)
    store.remove("https://news.test/missing")
    assert store.list() == [article]


def test_is_bookmarked_follows_add_and_remove(store, article):
    assert store.is_bookmarked(article.url) is False
    store.add(article)
    assert store.is_bookmarked(article.url) is True
    store.remove(article.url)
    assert store.is_bookmarked(article.url) is False


def test_list_order_is_stable(store):
    items = [Article(title=str(i), url=f"https://news.test/{i}") for i in range(5)]
    for a in items:
        store.add(a)
    assert store.list() == items
    assert store.list() == store.list()


def test_toggle(store, article):
    assert store.toggle(article) is True
    assert store.is_bookmarked(article.url)
    assert store.toggle(article) is False
    assert not store.is_bookmarked(article.url)


def test_add_requires_url(store):
    with pytest.raises(ValueError):
        store.add(Article(title="no url"))


def test_bookmarks_persist_across_instances(tmp_path, article):
    path = str(tmp_path / "bookmarks.db")
    first = BookmarkStore(path)
    first.add(article)
    first.close()

    second = BookmarkStore(path)
    try:
        assert second.list() == [article]
    finally:
        second.close()


def test_schema_version_marker(store, tmp_path):
    store.list()
    conn = sqlite3.connect(store.db_path)
    try:
        assert conn.execute("PRAGMA user_version").fetchone()[0] == 1
    finally:
        conn.close()


def test_unknown_schema_version_is_init_failure(tmp_path):
    path = str(tmp_path / "bookmarks.db")
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA user_version = 7")
    conn.commit()
    conn.close()

    store = BookmarkStore(path)
    with pytest.raises(StoreError) as info:
        store.list()
    assert info.value.kind is StoreErrorKind.INIT_FAILURE


def test_unopenable_path_is_init_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = BookmarkStore(str(blocker / "bookmarks.db"))
    with pytest.raises(StoreError) as info:
        store.is_bookmarked("https://news.test/1")
    assert info.value.kind is StoreErrorKind.INIT_FAILURE


def test_io_failure_after_init(store, article):
    store.list()
    store._conn.execute("DROP TABLE bookmarks")
    with pytest.raises(StoreError) as info:
        store.add(article)
    assert info.value.kind is StoreErrorKind.IO_FAILURE
    assert isinstance(info.value.__cause__, sqlite3.Error)


def test_concurrent_first_use_initializes_once(tmp_path):
    store = BookmarkStore(str(tmp_path / "bookmarks.db"))
    n = 16
    barrier = threading.Barrier(n)
    errors = []
    create_schema = BookmarkStore._create_schema

    def worker(i):
        barrier.wait()
        try:
            store.add(Article(title=str(i), url=f"https://news.test/{i}"))
        except Exception as e:  # pragma: no cover - reported below
            errors.append(e)

    with patch.object(
        BookmarkStore, "_create_schema", autospec=True, side_effect=create_schema
    ) as mock_create, patch.object(
        bookmarks_module.sqlite3, "connect", wraps=sqlite3.connect
    ) as mock_connect:
        threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

    try:
        assert errors == []
        assert mock_create.call_count == 1
        assert mock_connect.call_count == 1
        assert len(store.list()) == n
    finally:
        store.close()


def test_unversioned_foreign_table_is_init_failure(tmp_path, article):
    path = str(tmp_path / "bookmarks.db")
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE bookmarks(url TEXT PRIMARY KEY, title TEXT, description TEXT, "
        "imageUrl TEXT, publishedAt TEXT, source TEXT)"
    )
    conn.commit()
    conn.close()

    store = BookmarkStore(path)
    with pytest.raises(StoreError) as info:
        store.add(article)
    assert info.value.kind is StoreErrorKind.INIT_FAILURE

    conn = sqlite3.connect(path)
    try:
        assert conn.execute("PRAGMA user_version").fetchone()[0] == 0
    finally:
        conn.close()


def test_unversioned_matching_table_is_adopted(tmp_path, article):
    path = str(tmp_path / "bookmarks.db")
    conn = sqlite3.connect(path)
    conn.execute(bookmarks_module.CREATE_TABLE_SQL)
    conn.execute(
        "INSERT INTO bookmarks (url, title) VALUES (?, ?)", ("https://news.test/old", "Old")
    )
    conn.commit()
    conn.close()

    store = BookmarkStore(path)
    try:
        store.add(article)
        assert [a.url for a in store.list()] == ["https://news.test/old", article.url]
    finally:
        store.close()
