"""Ordered, append-only event channel between an agent and the HTTP stream.

One producer writes; one consumer iterates. Every event is also kept in
`events` so the agents can persist what the user saw. The channel is closed
exactly once and a write after close is a programming error.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, List, Optional

from survey_agent.schemas.events import StreamEvent

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    pass


class ProgressChannel:
    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._open_text: List[str] = []
        self.events: List[StreamEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_text_ids(self) -> List[str]:
        """Text blocks started and not yet ended, oldest first."""
        return list(self._open_text)

    def write(self, event: StreamEvent) -> None:
        if self._closed:
            raise ChannelClosedError(f"write after close: {event.type}")
        self._queue.put_nowait(event)
        self.events.append(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    # text channel

    def text_start(self, id: str) -> None:
        self.write(StreamEvent(type="text-start", id=id))
        self._open_text.append(id)

    def text_delta(self, id: str, delta: str) -> None:
        if delta:
            self.write(StreamEvent(type="text-delta", id=id, delta=delta))

    def text_end(self, id: str) -> None:
        self.write(StreamEvent(type="text-end", id=id))
        if id in self._open_text:
            self._open_text.remove(id)

    # document channel

    def data(self, type: str, data: Any = None) -> None:
        self.write(StreamEvent(type=f"data-{type}", data=data))

    def text_for(self, id: Optional[str] = None) -> str:
        return "".join(e.delta or "" for e in self.events if e.type == "text-delta" and (id is None or e.id == id))


def encode_sse(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


SSE_DONE = "data: [DONE]\n\n"


async def pipe_text_stream(chunks: AsyncIterator[str], channel: ProgressChannel, id: str) -> bool:
    """Forward streamed text to the channel as it arrives. Returns True if anything was written."""
    wrote = False
    async for delta in chunks:
        if not delta:
            continue
        channel.text_delta(id, delta)
        wrote = True
    return wrote
