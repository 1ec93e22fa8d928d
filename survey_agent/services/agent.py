from __future__ import annotations

import asyncio
import uuid
from typing import Optional

from survey_agent.core.config import ATTACHMENT_CONTEXT_CHARS, PIPELINE_TIMEOUT_SECONDS, document_locale
from survey_agent.core.errors import ProtocolGenerationError, RenderingError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import AgentContext, ChatRequest
from survey_agent.services.chat_agent import ChatAgent
from survey_agent.services.document_agent import DocumentAgent
from survey_agent.services.instructions import resolve_instruction
from survey_agent.services.llm_client import LanguageModel
from survey_agent.services.orchestrator import route_turn
from survey_agent.services.progress import ProgressChannel
from survey_agent.services.protocol_labels import labels_for
from survey_agent.services.turns import build_attachments_context, normalize_messages

logger = get_logger(__name__)


def build_context(req: ChatRequest, llm=None, request_id: str = "-") -> AgentContext:
    turns = normalize_messages(req.messages, req.files, req.text)
    return AgentContext(
        turns=turns,
        instruction=resolve_instruction(req.user_id, req.selected_prompt_id),
        llm=llm or LanguageModel(),
        document_content=req.document_content,
        user_id=req.user_id,
        conversation_id=req.conversation_id,
        request_id=request_id,
        attachments_context=build_attachments_context(turns, ATTACHMENT_CONTEXT_CHARS),
    )


def _write_notice(channel: ProgressChannel, prefix: str, text: str) -> None:
    """Close whatever text block was in flight, then write one short notice block."""
    if channel.closed:
        return
    for open_id in channel.open_text_ids:
        channel.text_end(open_id)
    notice_id = f"{prefix}-{uuid.uuid4()}"
    channel.text_start(notice_id)
    channel.text_delta(notice_id, text)
    channel.text_end(notice_id)


async def run_turn(context: AgentContext, channel: ProgressChannel, timeout: Optional[float] = None) -> Optional[str]:
    """
    Route one turn and run the chosen agent under the overall time budget.
    Returns the assistant text (chat) or the protocol markdown (document);
    None when the run failed or timed out. The channel is always closed.
    """
    request_id = context.request_id or "-"
    budget = PIPELINE_TIMEOUT_SECONDS if timeout is None else timeout
    lb = labels_for(document_locale())
    try:
        async with asyncio.timeout(budget):
            decision = await route_turn(context)
            agent = DocumentAgent() if decision.route == "document" else ChatAgent()
            return await agent.run(context, channel)
    except TimeoutError:
        logger.error(f"[{request_id}] turn_timeout budget={budget}s")
        _write_notice(channel, "timeout", lb["timeout"])
        return None
    except (ProtocolGenerationError, RenderingError) as e:
        # the user already saw the failure notice on the channel
        logger.error(f"[{request_id}] turn_failed error={type(e).__name__}: {e}")
        return None
    except Exception as e:
        logger.exception(f"[{request_id}] turn_crashed error={type(e).__name__}: {e}")
        _write_notice(channel, "error", lb["turn_failed"])
        return None
    finally:
        channel.close()


def start_turn(context: AgentContext, channel: ProgressChannel) -> asyncio.Task:
    """Run the turn as a producer task feeding the channel."""
    return asyncio.create_task(run_turn(context, channel), name=f"turn-{context.request_id}")
