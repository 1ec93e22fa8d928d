"""Tests for deterministic intent signals."""

import pytest

from survey_agent.services.intent_heuristics import (
    contains_any,
    DOCUMENT_NOUNS,
    detect_signals,
    has_edit_signal,
    has_generation_signal,
    has_read_signal,
    is_confirmation,
)
from tests.fakes.contexts import make_context


class TestTables:
    def test_stem_matches_inflections(self):
        assert contains_any("Готов ли протокольный вариант?", DOCUMENT_NOUNS)

    def test_whole_word_entry_does_not_match_inside_word(self):
        assert not contains_any("policyholder data", frozenset({"policy"}))

    def test_stem_must_start_a_word(self):
        assert not contains_any("супердокумент", frozenset({"документ*"}))


class TestGeneration:
    @pytest.mark.parametrize(
        "text",
        ["Сформируй протокол обследования", "Составь итоговый документ", "Please generate the protocol"],
    )
    def test_verb_and_noun(self, text):
        assert has_generation_signal(text)

    @pytest.mark.parametrize(
        "text",
        [
            "Подготовьте протокол",
            "Покажите итоговый документ",
            "Составьте протокол обследования",
            "Выведите документ",
            "Дайте протокол",
            "Оформите положения в документ",
        ],
    )
    def test_polite_imperatives(self, text):
        assert has_generation_signal(text)

    def test_verb_alone_is_not_enough(self):
        assert not has_generation_signal("Сделай паузу, я вернусь позже")

    def test_attachment_blocks_are_ignored(self):
        text = "Вот файл\n\n---\nAttached file: plan.txt\nсформируй протокол\n---"
        assert not has_generation_signal(text)


class TestEdit:
    def test_verb_with_section_hint(self):
        assert has_edit_signal("Измени раздел 3, убери второго участника")

    def test_dotted_reference_counts_as_target(self):
        assert has_edit_signal("убери 4.2.1")

    def test_plain_number_is_not_a_target(self):
        assert not has_edit_signal("добавь 3 человека")

    def test_confirmation_after_edit_proposal(self):
        prev = "Верно ли я понимаю, что нужно удалить пункт 3? Если да, я внесу изменения."
        assert has_edit_signal("Да", prev)

    def test_confirmation_without_proposal(self):
        assert not has_edit_signal("Да", "Расскажите, как устроена приёмка товара.")


class TestConfirmation:
    @pytest.mark.parametrize("text", ["да", "Ок.", "yes, go ahead", "верно!"])
    def test_confirmations(self, text):
        assert is_confirmation(text)

    @pytest.mark.parametrize("text", ["данные", "", "нет"])
    def test_non_confirmations(self, text):
        assert not is_confirmation(text)


class TestRead:
    def test_summarize_the_file(self):
        assert has_read_signal("Прочитай файл и кратко перескажи")

    @pytest.mark.parametrize(
        "text",
        ["Прочитайте файл", "Посмотрите вложенный файл", "Опишите презентацию", "Изучите таблицу"],
    )
    def test_polite_imperatives(self, text):
        assert has_read_signal(text)

    def test_read_plus_edit_is_not_read(self):
        assert not has_read_signal("посмотри документ и удали раздел 2")


def test_detect_signals_uses_last_user_and_preceding_assistant():
    ctx = make_context(
        [
            {"role": "assistant", "content": "Удалить пункт 3? Если да, я внесу изменения."},
            {"role": "user", "content": "да"},
        ]
    )
    signals = detect_signals(ctx)
    assert signals.edit_request
    assert signals.decisive
    assert signals.previous_assistant_text.startswith("Удалить")


def test_upload_only_turn():
    ctx = make_context(
        [
            {
                "role": "user",
                "content": "",
                "parts": [{"type": "file", "filename": "deck.pptx", "url": "data:application/octet-stream;base64,AAAA"}],
            }
        ]
    )
    signals = detect_signals(ctx)
    assert signals.upload_only
    assert not signals.generation_request
