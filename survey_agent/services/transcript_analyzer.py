from __future__ import annotations

import asyncio
from typing import List, Optional

from survey_agent.core.config import ANALYSIS_TEMPERATURE
from survey_agent.core.errors import AnalysisInvocationError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import ConversationTurn
from survey_agent.schemas.protocol import TranscriptAnalysis
from survey_agent.services.progress import ProgressChannel, pipe_text_stream
from survey_agent.services.protocol_labels import labels_for

logger = get_logger(__name__)


NARRATIVE_PROMPT_TMPL = """Write a short but concrete analysis of the meeting transcript below.

OUTPUT FORMAT (strict):
⚠️ Contradictions found: <items separated by •>

🤔 Ambiguities found: <items separated by •>

❗ Missing critical information: <items separated by •>

✅ Analysis complete. Confidence: high|medium|low

RULES:
- Do not add other sections.
- Do not use code blocks.
- If a list is empty, write "none" after the colon.
- Write in {language}.

MEETING TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"
"""

STRUCTURED_PROMPT_TMPL = """You are an analyst reviewing the transcript of a meeting with a customer.

YOUR TASK:
1. Find CONTRADICTIONS: mutually exclusive statements or inconsistencies.
2. Find AMBIGUITIES: vague wording, missing details, incomplete answers.
3. List CRITICAL information that a survey protocol needs but the transcript lacks.

Write the list items in {language}.

MEETING TRANSCRIPT:
\"\"\"
{transcript}
\"\"\"

Return the structured analysis.
"""


def build_transcript(turns: List[ConversationTurn]) -> str:
    """Whole conversation as `role: content` lines, empty turns dropped."""
    lines = []
    for t in turns:
        text = (t.content or "").strip()
        if text:
            lines.append(f"{t.role}: {text}")
    return "\n".join(lines)


def format_analysis(analysis: TranscriptAnalysis, locale: str = "ru") -> str:
    lb = labels_for(locale)
    parts: List[str] = []

    for flag, items, header in (
        (analysis.has_contradictions, analysis.contradictions, lb["contradictions"]),
        (analysis.has_ambiguities, analysis.ambiguities, lb["ambiguities"]),
        (bool(analysis.missing_critical_info), analysis.missing_critical_info, lb["missing"]),
    ):
        if flag and items:
            parts.append(header)
            parts.extend(f"  • {item}\n" for item in items)
            parts.append("\n")

    confidence = lb[f"confidence_{analysis.confidence}"]
    parts.append(lb["analysis_done"].format(confidence=confidence))
    return "".join(parts)


async def _structured_analysis(llm, transcript: str, language: str) -> TranscriptAnalysis:
    messages = [{"role": "user", "content": STRUCTURED_PROMPT_TMPL.format(language=language, transcript=transcript)}]
    try:
        return await llm.generate_object(
            messages, TranscriptAnalysis, name="transcript_analysis", temperature=ANALYSIS_TEMPERATURE
        )
    except Exception as e:
        raise AnalysisInvocationError(f"transcript analysis failed: {type(e).__name__}: {e}") from e


async def analyze_transcript(
    llm,
    transcript: str,
    channel: ProgressChannel,
    progress_id: str,
    locale: str = "ru",
    request_id: str = "-",
) -> Optional[TranscriptAnalysis]:
    """
    Stage 1. The structured call runs as its own task while the narrative
    streams into the channel. Exactly one rendering of the analysis reaches
    the user: the streamed narrative, or the formatted structured result,
    or the skipped notice when both calls failed.
    """
    lb = labels_for(locale)
    language = lb["reply_language"]
    channel.text_delta(progress_id, lb["step_analysis"])

    structured = asyncio.create_task(_structured_analysis(llm, transcript, language))

    try:
        narrative = [{"role": "user", "content": NARRATIVE_PROMPT_TMPL.format(language=language, transcript=transcript)}]
        before = len(channel.events)
        try:
            await pipe_text_stream(
                llm.stream_text(narrative, temperature=ANALYSIS_TEMPERATURE), channel, progress_id
            )
        except Exception as e:
            logger.warning(f"[{request_id}] analysis_stream_failed error={type(e).__name__}: {e}")
        # a narrative cut off mid-stream still counts as the rendering
        streamed = len(channel.events) > before
        if streamed:
            channel.text_delta(progress_id, "\n")

        analysis: Optional[TranscriptAnalysis] = None
        try:
            analysis = await structured
        except AnalysisInvocationError as e:
            logger.warning(f"[{request_id}] analysis_degraded error={e}")

        if analysis is not None:
            logger.info(
                f"[{request_id}] analysis confidence={analysis.confidence} "
                f"contradictions={len(analysis.contradictions)} ambiguities={len(analysis.ambiguities)} "
                f"missing={len(analysis.missing_critical_info)} streamed={streamed}"
            )
            if not streamed:
                channel.text_delta(progress_id, format_analysis(analysis, locale))
        elif not streamed:
            channel.text_delta(progress_id, lb["analysis_skipped"])

        return analysis
    finally:
        if not structured.done():
            structured.cancel()
