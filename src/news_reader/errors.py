from __future__ import annotations

import enum
from typing import Optional


class NewsReaderError(Exception):
    """Base class for errors raised by the news reader core."""


class FetchErrorKind(enum.Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    UPSTREAM = "upstream"
    DECODE = "decode"


class FetchError(NewsReaderError):
    """A feed request failed. ``status`` is set for upstream errors."""

    def __init__(self, kind: FetchErrorKind, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} ({self.status}): {self.message}"
        return f"{self.kind.value}: {self.message}"


class StoreErrorKind(enum.Enum):
    INIT_FAILURE = "init_failure"
    IO_FAILURE = "io_failure"


class StoreError(NewsReaderError):
    """The bookmark database could not be opened, read or written."""

    def __init__(self, kind: StoreErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"
