"""Scripted stand-in for services.llm_client.LanguageModel."""

import asyncio
from typing import Any, Dict, List, Optional

from survey_agent.core.errors import StructuredOutputError


class FakeLanguageModel:
    """Replays scripted answers in call order.

    completions: return values (or exceptions) for complete_text, one per call.
    streams:     chunk lists (or exceptions) for stream_text, one per call. A chunk
                 that is an exception is raised mid-stream.
    objects:     generate_object answers keyed by the schema name.
    delay:       seconds to sleep at the start of every call.
    """

    def __init__(
        self,
        completions: Optional[List[Any]] = None,
        streams: Optional[List[Any]] = None,
        objects: Optional[Dict[str, Any]] = None,
        delay: float = 0.0,
    ):
        self.completions = list(completions or [])
        self.streams = list(streams or [])
        self.objects = dict(objects or {})
        self.delay = delay
        self.calls: List[tuple] = []
        self.temperatures: List[float] = []

    async def _pause(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def complete_text(self, messages, temperature: float = 0.2) -> str:
        self.calls.append(("complete_text", messages))
        await self._pause()
        item = self.completions.pop(0) if self.completions else ""
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream_text(self, messages, temperature: float = 0.2):
        self.calls.append(("stream_text", messages))
        self.temperatures.append(temperature)
        await self._pause()
        item = self.streams.pop(0) if self.streams else []
        if isinstance(item, BaseException):
            raise item
        for chunk in item:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    async def generate_object(self, messages, schema, *, name: str, temperature: float = 0.2):
        self.calls.append(("generate_object", name))
        await self._pause()
        item = self.objects.get(name)
        if item is None:
            raise StructuredOutputError(f"{name}: nothing scripted")
        if isinstance(item, BaseException):
            raise item
        return item

    def called(self, method: str) -> int:
        return sum(1 for c in self.calls if c[0] == method)
