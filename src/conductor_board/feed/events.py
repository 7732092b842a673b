# src/conductor_board/feed/events.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

# Close code used when a connection drops without a close frame.
ABNORMAL_CLOSURE = 1006


class FeedEventKind(StrEnum):
    OPENED = "opened"
    MESSAGE = "message"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(slots=True, frozen=True)
class FeedEvent:
    """One thing that happened on a feed connection."""

    kind: FeedEventKind
    data: str | bytes | None = None
    code: int | None = None
    reason: str = ""

    @classmethod
    def opened(cls) -> FeedEvent:
        return cls(FeedEventKind.OPENED)

    @classmethod
    def message(cls, data: str | bytes) -> FeedEvent:
        return cls(FeedEventKind.MESSAGE, data=data)

    @classmethod
    def error(cls, reason: str = "") -> FeedEvent:
        return cls(FeedEventKind.ERROR, reason=reason)

    @classmethod
    def closed(cls, code: int | None = ABNORMAL_CLOSURE, reason: str = "") -> FeedEvent:
        return cls(FeedEventKind.CLOSED, code=code, reason=reason)
