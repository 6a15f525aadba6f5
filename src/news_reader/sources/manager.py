from __future__ import annotations

from typing import Any, Dict, Type

from .base import FeedSource
from .newsapi import NewsAPISource

AVAILABLE_SOURCES: Dict[str, Type[FeedSource]] = {
    "newsapi": NewsAPISource,
}


def get_source(config: Dict[str, Any]) -> FeedSource:
    """Build the feed source named by ``config["source"]``."""
    source_name = config.get("source", "newsapi")
    source_class = AVAILABLE_SOURCES.get(source_name) if isinstance(source_name, str) else None
    if not source_class:
        raise ValueError(f"Unknown source: {source_name}")
    sources = config.get("sources")
    source_config = sources.get(source_name, {}) if isinstance(sources, dict) else {}
    if not isinstance(source_config, dict):
        raise ValueError(f"Config for source {source_name} is not an object")
    return source_class(source_config)
