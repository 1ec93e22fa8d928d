from __future__ import annotations

from typing import AsyncIterator, Dict, List, Optional, Type, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from survey_agent.core.config import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL
from survey_agent.core.errors import StructuredOutputError

T = TypeVar("T", bound=BaseModel)

Messages = List[Dict[str, str]]

_client: AsyncOpenAI | None = None


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if not OPENAI_API_KEY:
            raise RuntimeError("Missing OPENAI_API_KEY in .env")
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL or None)
    return _client


def get_model() -> str:
    if not OPENAI_MODEL:
        raise RuntimeError("OPENAI_MODEL is not set")
    return OPENAI_MODEL


class LanguageModel:
    """The two invocation modes the agents rely on: streamed free-form text and
    schema-constrained objects. Plain completion is used by the classifier."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self._client = client
        self._model = model

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_client()
        return self._client

    @property
    def model(self) -> str:
        return self._model or get_model()

    async def complete_text(self, messages: Messages, temperature: float = 0.2) -> str:
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        return resp.choices[0].message.content or ""

    async def stream_text(self, messages: Messages, temperature: float = 0.2) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    async def generate_object(
        self,
        messages: Messages,
        schema: Type[T],
        *,
        name: str,
        temperature: float = 0.2,
    ) -> T:
        response_format = {
            "type": "json_schema",
            "json_schema": {
                "name": name,
                "schema": schema.model_json_schema(),
                "strict": False,
            },
        }
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            response_format=response_format,
        )

        content = resp.choices[0].message.content or ""
        try:
            return schema.model_validate_json(content)
        except ValidationError as e:
            raise StructuredOutputError(f"{name}: reply does not match schema ({type(e).__name__})") from e
