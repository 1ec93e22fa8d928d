from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]
Route = Literal["chat", "document"]


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = "attachment"
    media_type: Optional[str] = None
    url: Optional[str] = None          # data URL with base64 payload
    content: Optional[str] = None      # text already extracted upstream


class ConversationTurn(BaseModel):
    """One message in canonical form.

    `text` is what the participant visibly wrote; `content` additionally carries
    inlined attachment text and is what the model sees.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    text: str = ""
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    hidden_texts: List[str] = Field(default_factory=list)

    @property
    def has_attachments(self) -> bool:
        return len(self.attachments) > 0


class ClassifierResult(BaseModel):
    type: Route
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    source: Literal["model", "heuristic"] = "model"


class IntentDecision(BaseModel):
    route: Route
    reason: str


@dataclass
class AgentContext:
    turns: List[ConversationTurn]
    instruction: str
    llm: Any
    document_content: Optional[str] = None
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    request_id: str = ""
    attachments_context: str = ""

    @property
    def model_messages(self) -> List[Dict[str, str]]:
        return [{"role": t.role, "content": t.content} for t in self.turns]

    @property
    def has_existing_document(self) -> bool:
        return bool(self.document_content and self.document_content.strip())

    def last_user_turn(self) -> Optional[ConversationTurn]:
        for turn in reversed(self.turns):
            if turn.role == "user":
                return turn
        return None

    def previous_assistant_turn(self) -> Optional[ConversationTurn]:
        """Most recent assistant turn before the last user turn."""
        seen_user = False
        for turn in reversed(self.turns):
            if turn.role == "user" and not seen_user:
                seen_user = True
                continue
            if seen_user and turn.role == "assistant":
                return turn
        return None


class ChatRequest(BaseModel):
    """Inbound body of /v1/chat. Message shapes are left loose on purpose and
    normalized by services.turns."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    messages: List[Any] = Field(default_factory=list)
    files: List[Dict[str, Any]] = Field(default_factory=list)
    text: Optional[str] = None
    message: Optional[Any] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    selected_prompt_id: Optional[str] = Field(default=None, alias="selectedPromptId")
    document_content: Optional[str] = Field(default=None, alias="documentContent")
    new_system_prompt: Optional[str] = Field(default=None, alias="newSystemPrompt")


class DocxDownloadRequest(BaseModel):
    content: Optional[str] = None
    filename: Optional[str] = None
