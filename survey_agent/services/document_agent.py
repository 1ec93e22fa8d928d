from __future__ import annotations

import base64
import uuid
from typing import Optional

from survey_agent.core.config import document_locale
from survey_agent.core.errors import BinaryRenderError, ProtocolGenerationError, RenderingError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import AgentContext
from survey_agent.schemas.events import DocxPayload
from survey_agent.schemas.protocol import ProtocolDocument, RenderedArtifact
from survey_agent.services.conversation_store import persist_exchange
from survey_agent.services.progress import ProgressChannel
from survey_agent.services.protocol_docx import build_protocol_docx, docx_filename
from survey_agent.services.protocol_generator import generate_protocol
from survey_agent.services.protocol_labels import labels_for
from survey_agent.services.protocol_markdown import markdown_chunks, protocol_title, protocol_to_markdown
from survey_agent.services.transcript_analyzer import analyze_transcript, build_transcript

logger = get_logger(__name__)


def render_protocol(protocol: ProtocolDocument, locale: str = "ru", request_id: str = "-") -> RenderedArtifact:
    """Markdown is mandatory; the .docx is dropped (binary_bytes=None) if python-docx fails."""
    try:
        markdown = protocol_to_markdown(protocol, locale)
    except Exception as e:
        raise RenderingError(f"markdown rendering failed: {type(e).__name__}: {e}") from e

    binary: Optional[bytes]
    try:
        binary = build_protocol_docx(protocol, locale)
    except BinaryRenderError as e:
        logger.warning(f"[{request_id}] docx_failed error={e}")
        binary = None

    return RenderedArtifact(markdown_text=markdown, binary_bytes=binary, filename=docx_filename(protocol, locale))


class DocumentAgent:
    """Runs the survey-protocol pipeline for one request.

    S0 open the progress block, S1 analyze the transcript, S2 generate the
    protocol, S3 render, S4 emit the document events and persist.
    """

    def __init__(self, locale: Optional[str] = None):
        self.locale = locale or document_locale()

    async def run(self, context: AgentContext, channel: ProgressChannel) -> str:
        request_id = context.request_id or "-"
        lb = labels_for(self.locale)

        # S0
        progress_id = f"protocol-{uuid.uuid4()}"
        channel.text_start(progress_id)
        logger.info(f"[{request_id}] document_run_start progress_id={progress_id} turns={len(context.turns)}")

        transcript = build_transcript(context.turns)
        last_user = context.last_user_turn()

        try:
            # S1
            analysis = await analyze_transcript(
                context.llm, transcript, channel, progress_id, self.locale, request_id
            )
            # S2
            protocol = await generate_protocol(
                context.llm,
                transcript,
                channel,
                progress_id,
                analysis=analysis,
                existing_document=context.document_content,
                user_request=last_user.text if last_user else None,
                locale=self.locale,
                request_id=request_id,
            )
            # S3
            artifact = render_protocol(protocol, self.locale, request_id)
        except (ProtocolGenerationError, RenderingError) as e:
            logger.error(f"[{request_id}] document_run_failed error={e}")
            channel.text_delta(progress_id, lb["protocol_failed"])
            channel.text_end(progress_id)
            channel.close()
            raise

        # S4
        channel.data("clear")
        channel.data("title", protocol_title(protocol, self.locale))
        for chunk in markdown_chunks(artifact.markdown_text):
            channel.data("documentDelta", chunk)
        channel.data("finish")
        channel.text_delta(progress_id, lb["protocol_ready"])

        if artifact.binary_bytes:
            payload = DocxPayload(
                content=base64.b64encode(artifact.binary_bytes).decode("ascii"),
                filename=artifact.filename,
            )
            channel.data("docx", payload.model_dump())
            channel.text_delta(progress_id, lb["docx_ready"])
        else:
            channel.text_delta(progress_id, lb["docx_failed"])

        channel.text_end(progress_id)
        logger.info(
            f"[{request_id}] document_run_done chars={len(artifact.markdown_text)} "
            f"docx={'yes' if artifact.binary_bytes else 'no'}"
        )

        persist_exchange(context, channel.text_for(progress_id), artifact.markdown_text)
        return artifact.markdown_text
