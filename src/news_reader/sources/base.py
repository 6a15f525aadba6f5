from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..datamodels import Article


class FeedSource(ABC):
    """Abstract base class for a remote article feed.

    Implementations raise :class:`~news_reader.errors.FetchError` for every
    failed request.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    @abstractmethod
    def fetch_headlines(self, category: Optional[str] = None) -> List[Article]:
        """Return the top headlines, optionally restricted to a category."""
        pass

    @abstractmethod
    def search(self, query: str) -> List[Article]:
        """Return the articles matching a free-text query."""
        pass

    def close(self) -> None:
        """Release any resources held by the source."""
