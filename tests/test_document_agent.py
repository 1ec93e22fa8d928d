"""Tests for the survey protocol pipeline."""

import base64
from unittest.mock import patch

import pytest

from survey_agent.core.errors import BinaryRenderError, ProtocolGenerationError, StructuredOutputError
from survey_agent.services import conversation_store as store
from survey_agent.services.document_agent import DocumentAgent
from survey_agent.services.progress import ProgressChannel
from survey_agent.services.protocol_labels import labels_for
from survey_agent.services.transcript_analyzer import build_transcript, format_analysis
from tests.fakes.contexts import make_context
from tests.fakes.fake_llm import FakeLanguageModel
from tests.fakes.protocols import sample_analysis, sample_protocol

LB = labels_for("ru")

TRANSCRIPT = [
    {"role": "assistant", "content": "Кто участвует во встрече?"},
    {"role": "user", "content": "Иванов со стороны Ромашки, Петров от нас."},
    {"role": "user", "content": "Сформируй протокол обследования"},
]


def _types(channel):
    return [e.type for e in channel.events]


@pytest.mark.asyncio
async def test_full_run_emits_analysis_then_document_then_docx():
    llm = FakeLanguageModel(
        streams=[["⚠️ Противоречия: нет\n", "✅ Анализ завершен"], ["Обоснование:\n- два участника"]],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": sample_protocol()},
    )
    ctx = make_context(TRANSCRIPT, llm=llm)
    channel = ProgressChannel()

    markdown = await DocumentAgent(locale="ru").run(ctx, channel)

    types = _types(channel)
    assert types[0] == "text-start"
    assert types[-1] == "text-end"
    doc_events = [t for t in types if t.startswith("data-")]
    assert doc_events[0] == "data-clear"
    assert doc_events[1] == "data-title"
    assert set(doc_events[2:-2]) == {"data-documentDelta"}
    assert doc_events[-2:] == ["data-finish", "data-docx"]

    progress = channel.text_for(channel.events[0].id)
    assert progress.startswith(LB["step_analysis"])
    assert progress.index(LB["step_analysis"]) < progress.index("Анализ завершен") < progress.index(LB["step_protocol"])
    # streamed narrative means the structured analysis is not rendered again
    assert LB["contradictions"] not in progress
    assert LB["protocol_ready"] in progress and LB["docx_ready"] in progress

    body = "".join(e.data for e in channel.events if e.type == "data-documentDelta")
    assert body == markdown
    assert "## 1. Дата встречи: 12.03.2025" in markdown

    title = next(e.data for e in channel.events if e.type == "data-title")
    assert title == "ПРОТОКОЛ ОБСЛЕДОВАНИЯ №7"

    docx = next(e.data for e in channel.events if e.type == "data-docx")
    assert docx["filename"] == "Протокол_обследования_7_12-03-2025.docx"
    assert base64.b64decode(docx["content"])[:2] == b"PK"


@pytest.mark.asyncio
async def test_structured_analysis_is_shown_when_nothing_streamed():
    llm = FakeLanguageModel(
        streams=[RuntimeError("stream refused"), []],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": sample_protocol()},
    )
    channel = ProgressChannel()

    await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm), channel)

    progress = channel.text_for(channel.events[0].id)
    assert format_analysis(sample_analysis(), "ru") in progress
    assert "Число складов: два и три" in progress
    assert LB["analysis_skipped"] not in progress


@pytest.mark.asyncio
async def test_analysis_failure_is_not_fatal():
    llm = FakeLanguageModel(
        streams=[[], []],
        objects={"transcript_analysis": StructuredOutputError("bad json"), "survey_protocol": sample_protocol()},
    )
    channel = ProgressChannel()

    markdown = await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm), channel)

    progress = channel.text_for(channel.events[0].id)
    assert LB["analysis_skipped"] in progress
    assert markdown.startswith("# ПРОТОКОЛ ОБСЛЕДОВАНИЯ")


@pytest.mark.asyncio
async def test_partial_narrative_counts_as_the_analysis():
    llm = FakeLanguageModel(
        streams=[["⚠️ Противоречия:", RuntimeError("connection reset")], []],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": sample_protocol()},
    )
    channel = ProgressChannel()

    await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm), channel)

    progress = channel.text_for(channel.events[0].id)
    assert "⚠️ Противоречия:" in progress
    assert format_analysis(sample_analysis(), "ru") not in progress


@pytest.mark.asyncio
async def test_protocol_failure_is_terminal():
    llm = FakeLanguageModel(
        streams=[["анализ"], ["обоснование"]],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": StructuredOutputError("bad json")},
    )
    channel = ProgressChannel()

    with pytest.raises(ProtocolGenerationError):
        await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm, user_id="u1"), channel)

    assert channel.closed
    assert not any(t.startswith("data-") for t in _types(channel))
    assert channel.events[-1].type == "text-end"
    assert channel.events[-2].delta == LB["protocol_failed"]
    # failed runs are not persisted
    assert store.list_conversations("u1") == []


@pytest.mark.asyncio
async def test_docx_failure_keeps_markdown():
    llm = FakeLanguageModel(
        streams=[["анализ"], []],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": sample_protocol()},
    )
    channel = ProgressChannel()

    with patch(
        "survey_agent.services.document_agent.build_protocol_docx", side_effect=BinaryRenderError("docx save failed")
    ):
        markdown = await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm), channel)

    assert markdown
    assert "data-docx" not in _types(channel)
    assert "data-finish" in _types(channel)
    assert LB["docx_failed"] in channel.text_for(channel.events[0].id)


@pytest.mark.asyncio
async def test_result_is_persisted_with_document():
    llm = FakeLanguageModel(
        streams=[["анализ"], []],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": sample_protocol()},
    )
    channel = ProgressChannel()

    markdown = await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm, user_id="u1"), channel)

    [conv] = store.list_conversations("u1")
    assert conv.document_content == markdown
    assert conv.messages[-1]["role"] == "assistant"
    assert LB["protocol_ready"] in conv.messages[-1]["content"]


@pytest.mark.asyncio
async def test_existing_document_and_request_reach_the_prompt():
    llm = FakeLanguageModel(
        streams=[[], []],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": sample_protocol()},
    )
    ctx = make_context(
        TRANSCRIPT + [{"role": "user", "content": "убери второго участника из раздела 3"}],
        llm=llm,
        document_content="# ПРОТОКОЛ ОБСЛЕДОВАНИЯ №6",
    )

    with patch("survey_agent.services.protocol_generator._structured_protocol") as structured:
        structured.return_value = sample_protocol()
        await DocumentAgent(locale="ru").run(ctx, ProgressChannel())

    prompt = structured.call_args[0][1]
    assert "# ПРОТОКОЛ ОБСЛЕДОВАНИЯ №6" in prompt
    assert "LATEST USER REQUEST:\nубери второго участника из раздела 3" in prompt
    assert "Число складов: два и три" in prompt
    assert '"Информация не предоставлена"' in prompt


def test_transcript_lines_are_role_prefixed():
    ctx = make_context(TRANSCRIPT)
    assert build_transcript(ctx.turns).splitlines() == [
        "assistant: Кто участвует во встрече?",
        "user: Иванов со стороны Ромашки, Петров от нас.",
        "user: Сформируй протокол обследования",
    ]


@pytest.mark.asyncio
async def test_form_feed_in_model_text_keeps_markdown():
    protocol = sample_protocol()
    content = protocol.meeting_content
    topic = content.topics[0].model_copy(update={"title": "Страница\x0cдва"})
    protocol = protocol.model_copy(update={"meeting_content": content.model_copy(update={"topics": [topic]})})
    llm = FakeLanguageModel(
        streams=[["анализ"], []],
        objects={"transcript_analysis": sample_analysis(), "survey_protocol": protocol},
    )
    channel = ProgressChannel()

    markdown = await DocumentAgent(locale="ru").run(make_context(TRANSCRIPT, llm=llm, user_id="u1"), channel)

    assert "Страница\x0cдва" in markdown
    types = _types(channel)
    assert "data-finish" in types
    assert "data-docx" not in types
    assert types[-1] == "text-end"
    assert LB["docx_failed"] in channel.text_for(channel.events[0].id)
    [conv] = store.list_conversations("u1")
    assert conv.document_content == markdown
