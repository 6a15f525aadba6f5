#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from .bookmarks import BookmarkStore
from .config import (
    CATEGORIES,
    CONFIG_PATH,
    DEFAULT_CATEGORY,
    load_config,
    read_config_file,
    save_config,
    setup_logging,
)
from .datamodels import Article, Error, FeedState, Loaded
from .errors import StoreError
from .sources.manager import get_source
from .state import FeedStateMachine

logger = logging.getLogger("news")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="news-reader", description="News reader client")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="Path to an alternative config file")
    sub = parser.add_subparsers(dest="command", required=True)

    headlines = sub.add_parser("headlines", help="Show top headlines")
    headlines.add_argument("--category", choices=CATEGORIES, default=DEFAULT_CATEGORY)
    headlines.add_argument("--save", type=int, metavar="N", help="Toggle bookmark on article N")

    search = sub.add_parser("search", help="Search all articles")
    search.add_argument("query")
    search.add_argument("--save", type=int, metavar="N", help="Toggle bookmark on article N")

    bookmarks = sub.add_parser("bookmarks", help="Manage bookmarks")
    bookmarks.add_argument("action", nargs="?", choices=("list", "remove", "check"), default="list")
    bookmarks.add_argument("url", nargs="?")

    settings = sub.add_parser("config", help="Show or update settings")
    settings.add_argument("--api-key", help="Store the NewsAPI key")
    settings.add_argument("--country", help="Country code for top headlines")
    return parser


def format_article(index: int, article: Article, bookmarked: bool) -> str:
    marker = "*" if bookmarked else " "
    date = article.published_date or "----------"
    return f"{index:>3}. [{marker}] {date}  {article.source}  {article.title}\n       {article.url}"


def print_articles(articles: Sequence[Article], store: BookmarkStore) -> None:
    if not articles:
        print("No news available")
        return
    for i, article in enumerate(articles, start=1):
        print(format_article(i, article, store.is_bookmarked(article.url)))


def _show_feed(state: FeedState, store: BookmarkStore, save: Optional[int]) -> int:
    if isinstance(state, Error):
        print(state.message, file=sys.stderr)
        return 1
    articles = state.articles if isinstance(state, Loaded) else ()
    if save is not None:
        if not 1 <= save <= len(articles):
            print(f"No article {save} in this feed.", file=sys.stderr)
            return 1
        article = articles[save - 1]
        saved = store.toggle(article)
        print(f"{'Bookmarked' if saved else 'Removed bookmark'}: {article.title}")
    print_articles(articles, store)
    return 0


def _bookmarks(args: argparse.Namespace, store: BookmarkStore) -> int:
    if args.action == "list":
        items = store.list()
        if not items:
            print("No bookmarks")
        for i, article in enumerate(items, start=1):
            print(format_article(i, article, True))
        return 0
    if not args.url:
        print(f"bookmarks {args.action} needs a URL", file=sys.stderr)
        return 2
    if args.action == "remove":
        store.remove(args.url)
        print(f"Removed bookmark: {args.url}")
        return 0
    print("bookmarked" if store.is_bookmarked(args.url) else "not bookmarked")
    return 0


def _settings(args: argparse.Namespace, path: str) -> int:
    if args.api_key is None and args.country is None:
        newsapi = load_config(path)["sources"].get("newsapi", {})
        key = newsapi.get("api_key") or ""
        print(f"config:   {path}")
        print(f"api_key:  {'*' * 4 + key[-4:] if key else '(not set)'}")
        print(f"country:  {newsapi.get('country', '')}")
        return 0

    # Edit the file's own contents so defaults and NEWS_API_KEY are not persisted.
    raw = read_config_file(path)
    if not isinstance(raw.get("sources"), dict):
        raw["sources"] = {}
    newsapi = raw["sources"].get("newsapi")
    if not isinstance(newsapi, dict):
        newsapi = raw["sources"]["newsapi"] = {}
    if args.api_key is not None:
        newsapi["api_key"] = args.api_key.strip()
    if args.country is not None:
        newsapi["country"] = args.country.strip().lower()
    if not save_config(raw, path):
        print(f"Could not write {path}", file=sys.stderr)
        return 1
    print(f"Saved {path}")
    return 0


# --- Entrypoint ---
def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    debug_path = setup_logging(args.debug)
    if debug_path:
        print(f"Debug logging enabled: {debug_path}", file=sys.stderr)

    config_path = args.config or CONFIG_PATH
    if args.command == "config":
        return _settings(args, config_path)

    config = load_config(config_path)
    try:
        source = get_source(config)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    store = BookmarkStore(config["bookmarks_db"])
    machine = FeedStateMachine(source)
    try:
        if args.command == "headlines":
            return _show_feed(machine.request_headlines(args.category), store, args.save)
        if args.command == "search":
            return _show_feed(machine.request_search(args.query), store, args.save)
        return _bookmarks(args, store)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    except StoreError as e:
        logger.error("Bookmark store failed: %s", e)
        print(f"Bookmark store error: {e}", file=sys.stderr)
        return 1
    finally:
        machine.shutdown()
        source.close()
        store.close()


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
