from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import (
    BASE_URL,
    CONNECT_TIMEOUT,
    DEFAULT_COUNTRY,
    READ_TIMEOUT,
    REQUEST_HEADERS,
    RETRY_ATTEMPTS,
    RETRY_BACKOFF,
    RETRY_STATUSES,
)
from ..datamodels import Article
from ..errors import FetchError, FetchErrorKind
from .base import FeedSource

logger = logging.getLogger("news")


class NewsAPISource(FeedSource):
    """Client for the NewsAPI ``top-headlines`` and ``everything`` resources."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = self.config.get("api_key", "")
        self.base_url = self.config.get("base_url", BASE_URL).rstrip("/")
        self.country = self.config.get("country", DEFAULT_COUNTRY)
        self.timeout = (
            float(self.config.get("connect_timeout", CONNECT_TIMEOUT)),
            float(self.config.get("read_timeout", READ_TIMEOUT)),
        )
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        s = requests.Session()
        s.headers.update(REQUEST_HEADERS)
        # Only retry on upstream statuses; timeouts must surface as timeouts.
        # Retry-After is ignored since the timeouts do not bound its sleep.
        retries = Retry(
            total=RETRY_ATTEMPTS,
            connect=0,
            read=False,
            status=RETRY_ATTEMPTS,
            backoff_factor=RETRY_BACKOFF,
            status_forcelist=RETRY_STATUSES,
            raise_on_status=False,
            respect_retry_after_header=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    def fetch_headlines(self, category: Optional[str] = None) -> List[Article]:
        params = {"country": self.country}
        if category:
            params["category"] = category
        return self._get_articles("top-headlines", params)

    def search(self, query: str) -> List[Article]:
        if not query or not query.strip():
            raise ValueError("search query must not be empty")
        return self._get_articles("everything", {"q": query.strip()})

    def close(self) -> None:
        self.session.close()

    def _get_articles(self, resource: str, params: Dict[str, str]) -> List[Article]:
        url = f"{self.base_url}/{resource}"
        logger.debug("Fetching %s with %s", url, params)
        try:
            resp = self.session.get(
                url, params={**params, "apiKey": self.api_key}, timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.warning("Request to %s timed out: %s", url, e)
            raise FetchError(FetchErrorKind.TIMEOUT, f"request to {resource} timed out") from e
        except urllib3.exceptions.TimeoutError as e:
            logger.warning("Request to %s timed out: %s", url, e)
            raise FetchError(FetchErrorKind.TIMEOUT, f"request to {resource} timed out") from e
        except (requests.RequestException, urllib3.exceptions.HTTPError) as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise FetchError(FetchErrorKind.NETWORK, f"request to {resource} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            detail = _error_message(resp) or resp.reason or "unexpected status"
            logger.warning("Upstream %s returned %s: %s", url, resp.status_code, detail)
            raise FetchError(FetchErrorKind.UPSTREAM, detail, status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning("Response from %s is not JSON: %s", url, e)
            raise FetchError(FetchErrorKind.DECODE, "response body is not JSON") from e

        if not isinstance(data, dict):
            raise FetchError(FetchErrorKind.DECODE, "response body is not an object")
        if data.get("status") == "error":
            raise FetchError(FetchErrorKind.DECODE, data.get("message") or "upstream reported an error")
        items = data.get("articles")
        if not isinstance(items, list):
            raise FetchError(FetchErrorKind.DECODE, "response has no articles array")

        articles = _unique_ordered_articles(_parse_items(items))
        logger.debug("Fetched %d articles from %s", len(articles), url)
        return articles


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("message") or "")
    return ""


def _parse_items(items: Iterable[Any]) -> Iterable[Article]:
    for item in items:
        if not isinstance(item, Mapping):
            logger.debug("Skipping non-object article entry: %r", item)
            continue
        article = Article.from_api(item)
        if not article.url:
            logger.debug("Skipping article without url: %r", article.title)
            continue
        yield article


def _unique_ordered_articles(items: Iterable[Article]) -> List[Article]:
    seen = set()
    out: List[Article] = []
    for a in items:
        if a.url not in seen:
            seen.add(a.url)
            out.append(a)
    return out
