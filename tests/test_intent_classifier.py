"""Tests for classifier output parsing and invocation."""

import pytest

from survey_agent.services.intent_classifier import (
    build_classifier_messages,
    classify_intent,
    parse_classifier_output,
)
from tests.fakes.contexts import make_context
from tests.fakes.fake_llm import FakeLanguageModel


class TestParse:
    def test_object_embedded_in_prose(self):
        result = parse_classifier_output('Sure! {"type":"document","confidence":0.9} thanks', "ну что там")
        assert result.type == "document"
        assert result.confidence == 0.9
        assert result.source == "model"

    def test_think_block_and_fences_are_removed(self):
        raw = '<think>{"type":"chat"}</think>\n```json\n{"type": "document", "confidence": 0.8, "reasoning": "asked"}\n```'
        result = parse_classifier_output(raw, "")
        assert result.type == "document"
        assert result.reasoning == "asked"

    def test_empty_output_falls_back_to_heuristic(self):
        result = parse_classifier_output("   ", "сформируй протокол")
        assert result.source == "heuristic"
        assert result.type == "document"
        assert result.confidence == 0.0

    def test_non_json_falls_back_to_chat(self):
        result = parse_classifier_output("I think the user wants to chat", "расскажу про склад")
        assert result.source == "heuristic"
        assert result.type == "chat"

    def test_too_short_object(self):
        result = parse_classifier_output("{}", "")
        assert result.source == "heuristic"

    @pytest.mark.parametrize("confidence", ["1.5", "-0.1", '"high"', "true"])
    def test_unusable_confidence_falls_back(self, confidence):
        raw = '{"type": "document", "confidence": %s}' % confidence
        result = parse_classifier_output(raw, "")
        assert result.source == "heuristic"
        assert result.type == "chat"

    def test_unknown_type_becomes_chat(self):
        result = parse_classifier_output('{"type": "summary", "confidence": 0.95}', "")
        assert result.type == "chat"
        assert result.source == "model"

    def test_missing_confidence_is_zero(self):
        result = parse_classifier_output('{"type": "chat", "reasoning": "x"}', "")
        assert result.confidence == 0.0

    def test_low_confidence_yields_to_generation_command(self):
        result = parse_classifier_output('{"type": "chat", "confidence": 0.3}', "Сформируй протокол обследования")
        assert result.type == "document"
        assert result.confidence == 0.3

    def test_low_confidence_kept_under_classifier_policy(self, monkeypatch):
        monkeypatch.setenv("LOW_CONFIDENCE_POLICY", "classifier")
        result = parse_classifier_output('{"type": "chat", "confidence": 0.3}', "Сформируй протокол обследования")
        assert result.type == "chat"


def test_prompt_includes_window_and_instruction():
    ctx = make_context([{"role": "user", "content": f"сообщение {i}"} for i in range(20)])
    messages = build_classifier_messages(ctx, "сообщение 19")
    prompt = messages[0]["content"]
    assert "Collect facts for a survey protocol." in prompt
    assert "сообщение 7" not in prompt
    assert "сообщение 8" in prompt
    assert "[1] user: сообщение 8" in prompt
    assert '"сообщение 19"' in prompt


@pytest.mark.asyncio
async def test_classify_intent_uses_model_answer():
    llm = FakeLanguageModel(completions=['{"type": "document", "confidence": 0.85, "reasoning": "ready"}'])
    ctx = make_context([{"role": "user", "content": "думаю, всё обсудили"}], llm=llm)

    result = await classify_intent(ctx)

    assert result.type == "document"
    assert result.source == "model"
    assert llm.called("complete_text") == 1


@pytest.mark.asyncio
async def test_classify_intent_invocation_failure_falls_back():
    llm = FakeLanguageModel(completions=[RuntimeError("upstream 502")])
    ctx = make_context([{"role": "user", "content": "подготовь итоговый документ"}], llm=llm)

    result = await classify_intent(ctx)

    assert result.source == "heuristic"
    assert result.type == "document"
    assert result.reasoning == "classifier invocation failed"
