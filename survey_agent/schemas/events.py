from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class StreamEvent(BaseModel):
    type: str
    id: Optional[str] = None
    delta: Optional[str] = None
    data: Any = None

    def to_wire(self) -> dict:
        payload: dict = {"type": self.type}
        if self.id is not None:
            payload["id"] = self.id
        if self.delta is not None:
            payload["delta"] = self.delta
        if self.type.startswith("data-"):
            # data-clear / data-finish carry an explicit null
            payload["data"] = self.data
        return payload


class DocxPayload(BaseModel):
    content: str   # base64
    filename: str
