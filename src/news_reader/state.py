from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Deque, List, Optional

from .datamodels import Article, Error, FeedState, Idle, Loaded, Loading
from .errors import FetchError
from .sources.base import FeedSource

logger = logging.getLogger("news")

HEADLINES_ERROR = "Failed to fetch news"
SEARCH_ERROR = "Failed to search news"

Listener = Callable[[FeedState], None]


class FeedStateMachine:
    """Holds the single current feed state and sequences feed requests.

    Every request gets an id from a monotonically increasing counter. Only the
    completion of the most recently issued request is applied, so a slow,
    superseded request can never overwrite a newer result. In-flight calls are
    not cancelled; their results are dropped.
    """

    def __init__(self, source: FeedSource, executor: Optional[ThreadPoolExecutor] = None):
        self.source = source
        self._state: FeedState = Idle()
        self._lock = threading.Lock()
        self._pending: Deque[FeedState] = deque()
        self._notifying = False
        self._ids = itertools.count(1)
        self._latest_id = 0
        self._listeners: List[Listener] = []
        self._executor = executor
        self._owns_executor = executor is None

    @property
    def state(self) -> FeedState:
        with self._lock:
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every state the machine applies.

        States arrive in the order they were applied, possibly on another
        request's thread. Listeners may issue and wait on new requests.
        Returns a function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def request_headlines(self, category: Optional[str] = None) -> FeedState:
        return self._run(lambda: self.source.fetch_headlines(category), HEADLINES_ERROR)

    def request_search(self, query: str) -> FeedState:
        return self._run(lambda: self.source.search(query), SEARCH_ERROR)

    def submit_headlines(self, category: Optional[str] = None) -> "Future[FeedState]":
        return self._get_executor().submit(self.request_headlines, category)

    def submit_search(self, query: str) -> "Future[FeedState]":
        return self._get_executor().submit(self.request_search, query)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(thread_name_prefix="feed")
            return self._executor

    def _run(self, call: Callable[[], List[Article]], error_message: str) -> FeedState:
        with self._lock:
            request_id = next(self._ids)
            self._latest_id = request_id
        self._apply(request_id, Loading())

        try:
            articles = call()
        except FetchError as e:
            logger.error("Feed request %d failed: %s", request_id, e)
            self._apply(request_id, Error(error_message, kind=e.kind))
        except Exception:
            logger.exception("Feed request %d raised unexpectedly", request_id)
            self._apply(request_id, Error(error_message))
            raise
        else:
            self._apply(request_id, Loaded(tuple(articles)))
        return self.state

    def _apply(self, request_id: int, state: FeedState) -> bool:
        with self._lock:
            if request_id != self._latest_id:
                logger.debug(
                    "Discarding %s from stale request %d (latest is %d)",
                    type(state).__name__,
                    request_id,
                    self._latest_id,
                )
                return False
            self._state = state
            self._pending.append(state)
            if self._notifying:
                return True
            self._notifying = True
        self._notify()
        return True

    def _notify(self) -> None:
        # One thread at a time delivers queued states in order; listeners run
        # without any machine lock held.
        while True:
            with self._lock:
                if not self._pending:
                    self._notifying = False
                    return
                state = self._pending.popleft()
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(state)
                except Exception as e:
                    logger.error("Feed state listener %r failed: %s", listener, e)
