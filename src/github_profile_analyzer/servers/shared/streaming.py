import asyncio
import json
from collections.abc import AsyncGenerator
from logging import Logger
from typing import Any, Literal, Self

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

EventName = Literal["status", "github_data", "complete", "error"]

TERMINAL_EVENTS: frozenset[str] = frozenset({"complete", "error"})

STREAMING_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

STREAMING_MEDIA_TYPE = "text/event-stream"


def format_event(name: str, data: Any) -> str:  # pyright: ignore[reportAny]
    return f"event: {name}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


class StreamEvent(BaseModel):
    """A named event in an analysis run. The status code only applies to buffered responses."""

    name: EventName
    data: dict[str, Any]
    status_code: int = Field(default=200, exclude=True)

    @property
    def is_terminal(self) -> bool:
        return self.name in TERMINAL_EVENTS

    @classmethod
    def status(cls, step: Literal["github", "ai"], message: str) -> Self:
        return cls(name="status", data={"step": step, "message": message})

    @classmethod
    def github_data(cls, data: dict[str, Any]) -> Self:
        return cls(name="github_data", data=data)

    @classmethod
    def complete(cls, data: dict[str, Any]) -> Self:
        return cls(name="complete", data=data)

    @classmethod
    def error(cls, data: dict[str, Any], status_code: int) -> Self:
        return cls(name="error", data=data, status_code=status_code)

    def encode(self) -> str:
        return format_event(name=self.name, data=self.data)


class EventChannel:
    """An ordered push channel of encoded events from a producer to one consumer.

    At most one terminal event is delivered. Once the channel is closed, because the run finished or the
    consumer went away, further sends are dropped."""

    closed: bool

    def __init__(self, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.closed = False
        self._terminal_sent = False
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()

    def send(self, event: StreamEvent) -> bool:
        """Queue an event for the consumer, returning whether it was accepted."""

        if self.closed or self._terminal_sent:
            self.logger.debug(f"Dropping {event.name} event sent to a closed channel")
            return False

        self._terminal_sent = event.is_terminal
        self._queue.put_nowait(event.encode())

        return True

    def close(self) -> None:
        if self.closed:
            return

        self.closed = True
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncGenerator[str, None]:
        while (frame := await self._queue.get()) is not None:
            yield frame
