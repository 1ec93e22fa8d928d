from __future__ import annotations

import uuid
from typing import Optional

from survey_agent.core.config import CHAT_TEMPERATURE, document_locale
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import AgentContext
from survey_agent.services.conversation_store import persist_exchange
from survey_agent.services.instructions import build_system_prompt
from survey_agent.services.progress import ProgressChannel, pipe_text_stream
from survey_agent.services.protocol_labels import labels_for

logger = get_logger(__name__)


class ChatAgent:
    """Dialogue route: one streamed assistant reply, no document events."""

    def __init__(self, locale: Optional[str] = None):
        self.locale = locale or document_locale()

    async def run(self, context: AgentContext, channel: ProgressChannel) -> str:
        request_id = context.request_id or "-"
        reply_id = f"msg-{uuid.uuid4()}"

        system = build_system_prompt(context.instruction, context.attachments_context, context.document_content)
        messages = [{"role": "system", "content": system}] + [
            m for m in context.model_messages if m["role"] != "system"
        ]

        channel.text_start(reply_id)
        try:
            await pipe_text_stream(
                context.llm.stream_text(messages, temperature=CHAT_TEMPERATURE), channel, reply_id
            )
        except Exception as e:
            logger.error(f"[{request_id}] chat_failed error={type(e).__name__}: {e}")
            channel.text_delta(reply_id, labels_for(self.locale)["chat_failed"])
        channel.text_end(reply_id)

        reply = channel.text_for(reply_id)
        logger.info(f"[{request_id}] chat_done chars={len(reply)}")
        persist_exchange(context, reply)
        return reply
