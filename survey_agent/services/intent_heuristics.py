"""Deterministic intent signals over the last user utterance.

Token tables hold Russian and English surface forms. An entry ending in `*`
matches any word starting with it, other entries match a whole word or phrase.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import FrozenSet, Optional

from survey_agent.schemas.conversation import AgentContext, ConversationTurn
from survey_agent.services.turns import strip_attachment_noise

GENERATION_VERBS: FrozenSet[str] = frozenset({
    "сформир*", "состав*", "сгенерир*", "подготов*", "оформ*", "сделай", "сделать", "сделаем",
    "сделайте", "вывед*", "покаж*", "дай", "дайте",
    "generate", "produce", "compose", "draft", "prepare", "create", "make", "show", "give", "output",
})

DOCUMENT_NOUNS: FrozenSet[str] = frozenset({
    "регламент*", "документ*", "протокол*", "обследован*", "инструкц*", "положени*", "политик*",
    "итогов*", "финальн*",
    "regulation*", "document*", "protocol*", "survey*", "instruction*", "policy", "policies",
    "minutes", "final",
})

EDIT_VERBS: FrozenSet[str] = frozenset({
    "измени*", "передел*", "отредакт*", "поправ*", "замени*", "добав*", "убер*", "удали*",
    "исключ*", "верни*", "восстанов*", "внеси*", "занеси*", "дополни*", "оставь*",
    "change*", "redo", "edit*", "correct*", "fix", "replace*", "add", "adds", "adding", "remove*",
    "delete*", "exclude*", "insert*", "append*", "restore*", "update*",
})

TARGET_HINTS: FrozenSet[str] = frozenset({
    "пункт*", "подпункт*", "раздел*", "в документ", "в регламент", "в протокол",
    "section*", "clause*", "item", "paragraph*", "into the document", "in the document",
    "to the document",
})

READ_VERBS: FrozenSet[str] = frozenset({
    "прочит*", "прочесть", "посмотр*", "ознаком*", "изуч*", "проанализ*", "что в*", "о чем",
    "о чём", "опиш*", "перескаж*", "кратко", "суммари*",
    "read", "review", "analyze", "analyse", "summarize", "summarise", "summary", "what is in",
    "what's in", "describe", "look at",
})

FILE_NOUNS: FrozenSet[str] = frozenset({
    "файл*", "вложен*", "документ*", "таблиц*", "презентац*",
    "file*", "attachment*", "document*", "table*", "spreadsheet*", "presentation*", "slides",
})

CONFIRMATION_WORDS: FrozenSet[str] = frozenset({
    "верно", "да", "ок", "окей", "согласен", "согласна", "подтверждаю", "вноси", "внеси", "делай",
    "выполняй", "применяй",
    "yes", "ok", "okay", "confirmed", "confirm", "apply", "proceed", "go ahead", "sure", "correct",
})

EDIT_PROPOSAL_PHRASES: FrozenSet[str] = frozenset({
    "верно ли", "если да", "я внесу", "внесу эти изменения", "убрать", "удалить", "добавить",
    "изменить", "пункт*",
    "shall i apply", "should i apply", "shall i make", "should i make", "is that correct",
    "if yes", "i will make these changes", "i'll make these changes", "i will apply",
    "i'll apply", "remove", "add", "change", "clause*", "section*",
})

_DOTTED_NUMBER = re.compile(r"\b\d+(?:\.\d+)+\b")


@lru_cache(maxsize=None)
def _table_pattern(table: FrozenSet[str]) -> re.Pattern:
    alternatives = []
    for entry in sorted(table):
        if entry.endswith("*"):
            alternatives.append(re.escape(entry[:-1]))
        else:
            alternatives.append(re.escape(entry) + r"(?!\w)")
    return re.compile(r"(?<!\w)(?:" + "|".join(alternatives) + ")", re.IGNORECASE)


def contains_any(text: str, table: FrozenSet[str]) -> bool:
    if not text:
        return False
    return _table_pattern(table).search(text.lower()) is not None


def _confirmation_pattern() -> re.Pattern:
    words = "|".join(re.escape(w) for w in sorted(CONFIRMATION_WORDS, key=len, reverse=True))
    return re.compile(r"^(?:" + words + r")(?:[.!?\s,].*)?$", re.IGNORECASE | re.DOTALL)


_CONFIRMATION = _confirmation_pattern()


def is_confirmation(text: str) -> bool:
    t = (text or "").strip().lower()
    return bool(t) and _CONFIRMATION.match(t) is not None


def has_generation_signal(text: str) -> bool:
    t = strip_attachment_noise(text)
    return contains_any(t, GENERATION_VERBS) and contains_any(t, DOCUMENT_NOUNS)


def has_edit_signal(text: str, previous_assistant_text: str = "") -> bool:
    t = strip_attachment_noise(text)
    if contains_any(t, EDIT_VERBS):
        if contains_any(t, TARGET_HINTS) or _DOTTED_NUMBER.search(t):
            return True

    # A bare "yes" only counts when the assistant just proposed a concrete edit.
    if is_confirmation(t):
        prev = strip_attachment_noise(previous_assistant_text)
        return contains_any(prev, EDIT_PROPOSAL_PHRASES)
    return False


def has_read_signal(text: str, previous_assistant_text: str = "") -> bool:
    t = strip_attachment_noise(text)
    if not (contains_any(t, READ_VERBS) and contains_any(t, FILE_NOUNS)):
        return False
    return not has_edit_signal(t, previous_assistant_text) and not has_generation_signal(t)


def is_upload_only(turn: Optional[ConversationTurn]) -> bool:
    if turn is None:
        return False
    return turn.has_attachments and not strip_attachment_noise(turn.text)


@dataclass(frozen=True)
class IntentSignals:
    last_user_text: str
    previous_assistant_text: str
    upload_only: bool
    read_request: bool
    edit_request: bool
    generation_request: bool

    @property
    def decisive(self) -> bool:
        """True when a deterministic rule settles the route without the classifier."""
        return self.upload_only or self.read_request or self.edit_request or self.generation_request


def detect_signals(context: AgentContext) -> IntentSignals:
    last_user = context.last_user_turn()
    prev_assistant = context.previous_assistant_turn()

    text = strip_attachment_noise(last_user.text if last_user else "")
    prev = strip_attachment_noise(prev_assistant.text if prev_assistant else "")

    return IntentSignals(
        last_user_text=text,
        previous_assistant_text=prev,
        upload_only=is_upload_only(last_user),
        read_request=has_read_signal(text, prev),
        edit_request=has_edit_signal(text, prev),
        generation_request=has_generation_signal(text),
    )
