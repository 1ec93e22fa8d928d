from __future__ import annotations

from typing import Optional

from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import AgentContext, ClassifierResult, IntentDecision
from survey_agent.services.intent_classifier import classify_intent
from survey_agent.services.intent_heuristics import IntentSignals, detect_signals

logger = get_logger(__name__)


def decide_from_signals(
    signals: IntentSignals,
    classifier_result: Optional[ClassifierResult],
    has_existing_document: bool = False,
) -> IntentDecision:
    """
    First match wins:
    1. upload-only -> chat
    2. read/summarize an attachment -> chat
    3. edit or confirm-an-edit -> document (even with no document yet)
    4. explicit generation command -> document
    5. classifier answer
    6. chat
    """
    if signals.upload_only:
        return IntentDecision(route="chat", reason="Upload-only: do not generate the document on file upload.")

    if signals.read_request and not signals.edit_request and not signals.generation_request:
        return IntentDecision(route="chat", reason="Heuristic: user asks to read/summarize an attachment.")

    if signals.edit_request:
        if has_existing_document:
            reason = "Heuristic: existing document + edit/confirm request."
        else:
            reason = "Heuristic: edit/confirm request (document intent without existing content)."
        return IntentDecision(route="document", reason=reason)

    if signals.generation_request:
        return IntentDecision(route="document", reason="Heuristic: explicit request to generate the document.")

    if classifier_result is not None:
        if classifier_result.type == "document":
            return IntentDecision(route="document", reason=f"Classifier selected document ({classifier_result.source}).")
        return IntentDecision(route="chat", reason=f"Classifier selected chat ({classifier_result.source}).")

    return IntentDecision(route="chat", reason="Default: no decisive signal.")


def decide_next_action(context: AgentContext, classifier_result: Optional[ClassifierResult]) -> IntentDecision:
    return decide_from_signals(detect_signals(context), classifier_result, context.has_existing_document)


async def route_turn(context: AgentContext) -> IntentDecision:
    """Heuristics first; the classifier is consulted only when no rule is decisive."""
    request_id = context.request_id or "-"
    signals = detect_signals(context)

    classifier_result = None
    if not signals.decisive:
        classifier_result = await classify_intent(context)

    decision = decide_from_signals(signals, classifier_result, context.has_existing_document)
    logger.info(
        f"[{request_id}] intent_decision route={decision.route} reason={decision.reason!r} "
        f"upload_only={signals.upload_only} read={signals.read_request} "
        f"edit={signals.edit_request} generation={signals.generation_request} "
        f"classifier={'skipped' if classifier_result is None else classifier_result.type}"
    )
    return decision
