from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import FetchErrorKind


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


# --- Data models ---
@dataclass(frozen=True)
class Article:
    title: str = ""
    description: str = ""
    url: str = ""
    image_url: str = ""
    published_at: str = ""
    source: str = ""

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> "Article":
        """Build an article from one element of an upstream ``articles`` array.

        Missing or null fields become empty strings; a ``source`` that is not
        an object yields an empty source name.
        """
        source = item.get("source")
        source_name = source.get("name") if isinstance(source, Mapping) else None
        return cls(
            title=_text(item.get("title")),
            description=_text(item.get("description")),
            url=_text(item.get("url")),
            image_url=_text(item.get("urlToImage")),
            published_at=_text(item.get("publishedAt")),
            source=_text(source_name),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Article":
        return cls(**{name: _text(row[name]) for name in ARTICLE_FIELDS})

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @property
    def published_date(self) -> str:
        """The ``YYYY-MM-DD`` part of ``published_at``."""
        return self.published_at[:10]


ARTICLE_FIELDS = ("url", "title", "description", "image_url", "published_at", "source")


# --- Feed states ---
@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Loaded:
    articles: Tuple[Article, ...] = ()


@dataclass(frozen=True)
class Error:
    message: str
    kind: Optional[FetchErrorKind] = field(default=None, compare=False)


FeedState = Union[Idle, Loading, Loaded, Error]
