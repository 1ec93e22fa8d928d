from __future__ import annotations

import asyncio
from typing import Optional

from survey_agent.core.config import ANALYSIS_TEMPERATURE, PROTOCOL_TEMPERATURE
from survey_agent.core.errors import ProtocolGenerationError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.protocol import ProtocolDocument, TranscriptAnalysis
from survey_agent.services.progress import ProgressChannel, pipe_text_stream
from survey_agent.services.protocol_labels import labels_for

logger = get_logger(__name__)


RATIONALE_PROMPT_TMPL = """Give a short rationale for the structure of a survey protocol built from this transcript.

FORMAT:
Rationale:
- <1-2 facts from the transcript that shape the structure>
- <what goes into questions, decisions and open questions>
- <which sections will read "{placeholder}", if any>

RULES:
- Do not add new facts.
- No code blocks.
- At most 4 bullets.
- Write in {language}.

MEETING TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"
"""

PROTOCOL_PROMPT_TMPL = """You are a specialist who writes survey protocols.

YOUR TASK:
Build a survey protocol from the transcript of a meeting with the customer.

STRICT REQUIREMENTS:
1. The protocol MUST contain ALL 10 sections.
2. Do NOT improvise. Use ONLY facts from the transcript.
3. If information is missing, write exactly "{placeholder}" instead of guessing or leaving the field out.
4. Dates use the DD.MM.YYYY format.
5. List every participant with full name and position.
6. Fill tables completely.
7. Write all text values in {language}.

PROTOCOL STRUCTURE:
1. Protocol number and meeting date
2. Agenda (topic and items)
3. Participants (customer side and executor side)
4. Terms and definitions
5. Abbreviations
6. Meeting content (topics discussed)
7. Questions and answers
8. Decisions with responsible parties
9. Open questions
10. Approval (signatures)
{analysis_block}{existing_block}
MEETING TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"
{request_block}
Return the structured survey protocol.
"""


def _analysis_block(analysis: Optional[TranscriptAnalysis]) -> str:
    if analysis is None:
        return ""
    return (
        "\nANALYSIS RESULTS:\n"
        f"- Contradictions: {'; '.join(analysis.contradictions) or 'none found'}\n"
        f"- Ambiguities: {'; '.join(analysis.ambiguities) or 'none found'}\n"
        f"- Missing information: {'; '.join(analysis.missing_critical_info) or 'none'}\n"
    )


def _existing_block(existing_document: Optional[str]) -> str:
    if not existing_document or not existing_document.strip():
        return ""
    return (
        "\nCURRENT VERSION OF THE PROTOCOL (revise it; keep everything the user did not ask to change):\n"
        f'"""\n{existing_document.strip()}\n"""\n'
    )


def _request_block(user_request: Optional[str]) -> str:
    if not user_request or not user_request.strip():
        return ""
    return f"\nLATEST USER REQUEST:\n{user_request.strip()}\n"


def build_protocol_prompt(
    transcript: str,
    analysis: Optional[TranscriptAnalysis] = None,
    existing_document: Optional[str] = None,
    user_request: Optional[str] = None,
    locale: str = "ru",
) -> str:
    lb = labels_for(locale)
    return PROTOCOL_PROMPT_TMPL.format(
        placeholder=lb["placeholder"],
        language=lb["reply_language"],
        analysis_block=_analysis_block(analysis),
        existing_block=_existing_block(existing_document),
        transcript=transcript,
        request_block=_request_block(user_request),
    )


async def _structured_protocol(llm, prompt: str) -> ProtocolDocument:
    try:
        return await llm.generate_object(
            [{"role": "user", "content": prompt}],
            ProtocolDocument,
            name="survey_protocol",
            temperature=PROTOCOL_TEMPERATURE,
        )
    except Exception as e:
        raise ProtocolGenerationError(f"protocol generation failed: {type(e).__name__}: {e}") from e


async def generate_protocol(
    llm,
    transcript: str,
    channel: ProgressChannel,
    progress_id: str,
    analysis: Optional[TranscriptAnalysis] = None,
    existing_document: Optional[str] = None,
    user_request: Optional[str] = None,
    locale: str = "ru",
    request_id: str = "-",
) -> ProtocolDocument:
    """
    Stage 2. The rationale streams while the structured protocol is generated
    as a separate task. The rationale is best-effort; a failed structured
    call raises ProtocolGenerationError and ends the run.
    """
    lb = labels_for(locale)
    channel.text_delta(progress_id, lb["step_protocol"])

    prompt = build_protocol_prompt(transcript, analysis, existing_document, user_request, locale)
    structured = asyncio.create_task(_structured_protocol(llm, prompt))

    try:
        rationale = RATIONALE_PROMPT_TMPL.format(
            placeholder=lb["placeholder"], language=lb["reply_language"], transcript=transcript
        )
        before = len(channel.events)
        try:
            await pipe_text_stream(
                llm.stream_text([{"role": "user", "content": rationale}], temperature=ANALYSIS_TEMPERATURE),
                channel,
                progress_id,
            )
        except Exception as e:
            logger.warning(f"[{request_id}] rationale_stream_failed error={type(e).__name__}: {e}")
        if len(channel.events) > before:
            channel.text_delta(progress_id, "\n")

        protocol = await structured
    finally:
        if not structured.done():
            structured.cancel()

    logger.info(
        f"[{request_id}] protocol_generated number={protocol.protocol_number!r} "
        f"decisions={len(protocol.decisions)} open_questions={len(protocol.open_questions)}"
    )
    return protocol
