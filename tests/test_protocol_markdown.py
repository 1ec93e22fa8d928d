"""Tests for the Markdown protocol renderer."""

import re

from survey_agent.services.protocol_labels import labels_for
from survey_agent.services.protocol_markdown import markdown_chunks, protocol_title, protocol_to_markdown
from tests.fakes.protocols import empty_protocol, sample_protocol

SECTION_HEADING = re.compile(r"^## (\d+)\. ", re.MULTILINE)


def test_title_and_ten_sections_in_order():
    md = protocol_to_markdown(sample_protocol())

    assert md.startswith("# ПРОТОКОЛ ОБСЛЕДОВАНИЯ №7\n")
    assert [int(n) for n in SECTION_HEADING.findall(md)] == list(range(1, 11))
    assert "## 1. Дата встречи: 12.03.2025" in md


def test_rendering_is_deterministic():
    protocol = sample_protocol()
    assert protocol_to_markdown(protocol) == protocol_to_markdown(protocol)


def test_sections_content():
    md = protocol_to_markdown(sample_protocol())

    assert "## 2. Повестка: Обследование складского учёта" in md
    assert "- Приёмка товара" in md
    assert "| Петров Пётр Петрович | Аналитик |" in md
    assert "- WMS – Система управления складом" in md
    assert "**Приёмка**" in md
    assert "*Сканирование*" in md
    assert "1. Сколько складов?" in md
    assert "**Ответы:**" in md
    assert "1. Закупить сканеры\n   Ответственный: Заказчик" in md
    assert "| Сидорова А.С. /______________ | Иванов И.И. /______________ |" in md


def test_table_cells_escape_pipes():
    md = protocol_to_markdown(sample_protocol())
    assert "| Остатки | Перенос \\| по складам |" in md


def test_empty_protocol_keeps_every_section():
    md = protocol_to_markdown(empty_protocol())
    placeholder = labels_for("ru")["placeholder"]

    assert [int(n) for n in SECTION_HEADING.findall(md)] == list(range(1, 11))
    assert f"## 1. Дата встречи: {placeholder}" in md
    # every section body holds at least the placeholder
    bodies = SECTION_HEADING.split(md)[2::2]
    assert len(bodies) == 10
    assert all(placeholder in body for body in bodies)


def test_english_labels():
    md = protocol_to_markdown(sample_protocol(), locale="en")
    assert md.startswith("# SURVEY PROTOCOL №7")
    assert "## 10. Approved" in md
    assert protocol_title(sample_protocol(), "en") == "SURVEY PROTOCOL №7"


def test_chunks_rebuild_the_document():
    md = protocol_to_markdown(sample_protocol())
    chunks = markdown_chunks(md)
    assert len(chunks) > 10
    assert "".join(chunks) == md
