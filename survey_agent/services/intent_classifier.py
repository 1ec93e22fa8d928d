from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from survey_agent.core.config import (
    CLASSIFIER_MIN_CONFIDENCE,
    CLASSIFIER_TEMPERATURE,
    CLASSIFIER_WINDOW,
    low_confidence_policy,
)
from survey_agent.core.errors import ClassifierInvocationError, ClassifierParseError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import AgentContext, ClassifierResult
from survey_agent.services.intent_heuristics import has_generation_signal
from survey_agent.services.turns import strip_attachment_noise

logger = get_logger(__name__)

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_TURN_PREVIEW_CHARS = 200
_MIN_JSON_CHARS = 5

PROMPT_TMPL = """You classify user intent in an assistant that interviews a customer and then
produces a survey protocol (meeting minutes) document.

Reply with valid JSON ONLY: no Markdown, no code fences, no commentary.
Format: {{"type": "chat|document", "confidence": 0.0-1.0, "reasoning": "..."}}

YOUR TASK: decide whether the user wants the finished document NOW, or is still
in the information-gathering dialogue.

ASSISTANT INSTRUCTIONS (how the assistant works):
{instruction}

DIALOGUE HISTORY (most recent messages):
{history}

LAST USER MESSAGE:
"{last_user}"

Choose "document" when:
- the user explicitly asks to show, output or create the final document
- the user gives the command to produce the protocol
- the user asks to change or edit an existing document
- the user confirms readiness after the assistant offered to generate the document
- the user says the information is complete and the document can be produced

Choose "chat" when:
- the user answers the assistant's questions or adds information
- the user asks clarifying questions
- the user uploads files
- details are still being discussed
- the user gives intermediate confirmations while information is still being collected ("ok", "got it", "yes")

IMPORTANT:
- Judge the whole dialogue, not only the last message.
- If the assistant just offered to produce the document and the user agreed, that is "document".
- If information is still being collected, that is "chat", even for short confirmations.

If unsure, still return JSON, for example:
{{"type": "chat", "confidence": 0, "reasoning": "uncertain"}}
"""


def _history_lines(context: AgentContext) -> str:
    window = context.turns[-CLASSIFIER_WINDOW:]
    lines = []
    for i, turn in enumerate(window, start=1):
        content = turn.content
        preview = content[:_TURN_PREVIEW_CHARS] + ("..." if len(content) > _TURN_PREVIEW_CHARS else "")
        lines.append(f"[{i}] {turn.role}: {preview}")
    return "\n\n".join(lines)


def build_classifier_messages(context: AgentContext, last_user_text: str) -> List[Dict[str, str]]:
    prompt = PROMPT_TMPL.format(
        instruction=context.instruction or "",
        history=_history_lines(context),
        last_user=last_user_text,
    )
    return [{"role": "user", "content": prompt}]


def heuristic_fallback(last_user_text: str, reasoning: str) -> ClassifierResult:
    route = "document" if has_generation_signal(last_user_text) else "chat"
    return ClassifierResult(type=route, confidence=0.0, reasoning=reasoning, source="heuristic")


def _clean_output(raw: str) -> str:
    cleaned = _THINK_BLOCK.sub("", raw)
    cleaned = _FENCE.sub("", cleaned)
    return cleaned.strip()


def _confidence(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ClassifierParseError("confidence is not a number")
    try:
        c = float(value)
    except (TypeError, ValueError) as e:
        raise ClassifierParseError("confidence is not a number") from e
    if not 0.0 <= c <= 1.0:  # also rejects NaN
        raise ClassifierParseError(f"confidence out of range: {value!r}")
    return c


def _decode(raw: str) -> Dict[str, Any]:
    """Lenient JSON extraction. Raises ClassifierParseError when nothing usable is found."""
    cleaned = _clean_output(raw)
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first == -1 or last == -1 or last < first:
        raise ClassifierParseError("no JSON object in classifier output")

    sliced = cleaned[first:last + 1]
    if len(sliced) < _MIN_JSON_CHARS:
        raise ClassifierParseError("classifier JSON too short")

    try:
        data = json.loads(sliced)
    except json.JSONDecodeError as e:
        raise ClassifierParseError(f"invalid classifier JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ClassifierParseError("classifier JSON is not an object")
    return data


def parse_classifier_output(raw: str, last_user_text: str, request_id: str = "-") -> ClassifierResult:
    """Turn raw model text into a ClassifierResult. Never raises."""
    raw = str(raw or "").strip()
    if not raw:
        logger.warning(f"[{request_id}] classifier_empty_output fallback=heuristic")
        return heuristic_fallback(last_user_text, "empty classifier output")

    try:
        data = _decode(raw)
        confidence = _confidence(data.get("confidence"))
    except ClassifierParseError as e:
        logger.warning(f"[{request_id}] classifier_parse_error error={e} fallback=heuristic")
        return heuristic_fallback(last_user_text, str(e))

    route = data.get("type")
    if route not in ("chat", "document"):
        route = "chat"
    reasoning = str(data.get("reasoning") or "")

    if confidence < CLASSIFIER_MIN_CONFIDENCE:
        logger.warning(f"[{request_id}] classifier_low_confidence type={route} confidence={confidence}")
        if low_confidence_policy() == "heuristics" and has_generation_signal(last_user_text):
            logger.warning(f"[{request_id}] classifier_low_confidence_override type=document")
            route = "document"

    return ClassifierResult(type=route, confidence=confidence, reasoning=reasoning, source="model")


async def _invoke(context: AgentContext, last_user_text: str) -> str:
    try:
        return await context.llm.complete_text(
            build_classifier_messages(context, last_user_text),
            temperature=CLASSIFIER_TEMPERATURE,
        )
    except Exception as e:
        raise ClassifierInvocationError(f"{type(e).__name__}: {e}") from e


async def classify_intent(context: AgentContext) -> ClassifierResult:
    request_id = context.request_id or "-"
    last_user = context.last_user_turn()
    last_user_text = strip_attachment_noise(last_user.text if last_user else "")

    try:
        raw = await _invoke(context, last_user_text)
    except ClassifierInvocationError as e:
        logger.error(f"[{request_id}] classifier_invocation_error error={e}")
        return heuristic_fallback(last_user_text, "classifier invocation failed")

    logger.info(f"[{request_id}] classifier_raw chars={len(raw or '')} preview={str(raw or '')[:200]!r}")
    result = parse_classifier_output(raw, last_user_text, request_id)
    logger.info(
        f"[{request_id}] classifier_result type={result.type} confidence={result.confidence} source={result.source}"
    )
    return result
