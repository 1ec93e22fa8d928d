from __future__ import annotations

import io
import re
from typing import List, Sequence, Tuple

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from survey_agent.core.errors import BinaryRenderError
from survey_agent.schemas.protocol import ProtocolDocument
from survey_agent.services.protocol_labels import labels_for
from survey_agent.services.protocol_markdown import protocol_title

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_DATE_SEPARATORS = re.compile(r"[./\\\s]+")


def docx_filename(protocol: ProtocolDocument, locale: str = "ru") -> str:
    prefix = labels_for(locale)["filename_prefix"]
    digits = re.sub(r"[^0-9]", "", protocol.protocol_number or "")
    date = _DATE_SEPARATORS.sub("-", (protocol.meeting_date or "").strip())
    return f"{prefix}_{digits}_{date}.docx"


def _text(value, placeholder: str) -> str:
    value = (value or "").strip()
    return value or placeholder


def _section(doc, number: int, label: str, value: str = "") -> None:
    heading = f"{number}. {label}: {value}" if value else f"{number}. {label}"
    doc.add_heading(heading, level=2)


def _labeled(doc, label: str, value: str) -> None:
    p = doc.add_paragraph()
    p.add_run(f"{label}: ").bold = True
    p.add_run(value)


def _table(doc, header: Sequence[str], rows: List[Tuple[str, ...]]) -> None:
    table = doc.add_table(rows=1, cols=len(header))
    table.style = "Table Grid"
    for cell, text in zip(table.rows[0].cells, header):
        cell.text = ""
        cell.paragraphs[0].add_run(text).bold = True
    for row in rows:
        cells = table.add_row().cells
        for cell, text in zip(cells, row):
            cell.text = text


def _bullets(doc, items: List[str], placeholder: str) -> None:
    if not items:
        doc.add_paragraph(placeholder)
        return
    for item in items:
        doc.add_paragraph(item, style="List Bullet")


def _numbered(doc, items: List[str], placeholder: str) -> None:
    if not items:
        doc.add_paragraph(placeholder)
        return
    for i, item in enumerate(items, start=1):
        doc.add_paragraph(f"{i}. {item}")


def _compose(protocol: ProtocolDocument, locale: str):
    lb = labels_for(locale)
    ph = lb["placeholder"]
    doc = Document()
    doc.styles["Normal"].font.size = Pt(11)
    doc.core_properties.title = protocol_title(protocol, locale)

    title = doc.add_heading(protocol_title(protocol, locale), level=1)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    _section(doc, 1, lb["s1"], _text(protocol.meeting_date, ph))

    _section(doc, 2, lb["s2"], _text(protocol.agenda.title, ph))
    _bullets(doc, [_text(i, ph) for i in protocol.agenda.items], ph)

    _section(doc, 3, lb["s3"])
    for side, group, role in (
        (lb["customer_side"], protocol.participants.customer, lb["position"]),
        (lb["executor_side"], protocol.participants.executor, lb["role"]),
    ):
        doc.add_paragraph(f"{side} {_text(group.organization_name, ph)}:")
        rows = [(_text(p.full_name, ph), _text(p.position, ph)) for p in group.people] or [(ph, ph)]
        _table(doc, (lb["full_name"], role), rows)

    _section(doc, 4, lb["s4"])
    if protocol.terms_and_definitions:
        for t in protocol.terms_and_definitions:
            p = doc.add_paragraph(style="List Bullet")
            p.add_run(_text(t.term, ph)).bold = True
            p.add_run(f" – {_text(t.definition, ph)}")
    else:
        doc.add_paragraph(ph)

    _section(doc, 5, lb["s5"])
    if protocol.abbreviations:
        for a in protocol.abbreviations:
            p = doc.add_paragraph(style="List Bullet")
            p.add_run(_text(a.abbreviation, ph)).bold = True
            p.add_run(f" – {_text(a.full_form, ph)}")
    else:
        doc.add_paragraph(ph)

    content = protocol.meeting_content
    _section(doc, 6, lb["s6"])
    doc.add_paragraph(lb["content_intro"])
    if content.introduction and content.introduction.strip():
        doc.add_paragraph(content.introduction.strip())
    if not content.topics and not content.migration_features:
        doc.add_paragraph(ph)
    for topic in content.topics:
        doc.add_paragraph().add_run(_text(topic.title, ph)).bold = True
        doc.add_paragraph(_text(topic.content, ph))
        for sub in topic.subtopics:
            if sub.title and sub.title.strip():
                doc.add_paragraph().add_run(sub.title.strip()).italic = True
            doc.add_paragraph(_text(sub.content, ph))
    if content.migration_features:
        _table(
            doc,
            (lb["tab"], lb["features"]),
            [(_text(f.tab, ph), _text(f.features, ph)) for f in content.migration_features],
        )

    qa = protocol.questions_and_answers
    _section(doc, 7, lb["s7"])
    _numbered(doc, [_text(x.question, ph) for x in qa], ph)
    doc.add_paragraph().add_run(f"{lb['answers']}:").bold = True
    _numbered(doc, [_text(x.answer, ph) for x in qa], ph)

    _section(doc, 8, lb["s8"])
    if protocol.decisions:
        for i, d in enumerate(protocol.decisions, start=1):
            p = doc.add_paragraph()
            p.add_run(f"{i}. ").bold = True
            p.add_run(_text(d.decision, ph))
            _labeled(doc, lb["responsible"], _text(d.responsible, ph))
    else:
        doc.add_paragraph(ph)

    _section(doc, 9, lb["s9"])
    _numbered(doc, [_text(q, ph) for q in protocol.open_questions], ph)

    executor = protocol.approval.executor_signature
    customer = protocol.approval.customer_signature
    _section(doc, 10, lb["s10"])
    _table(
        doc,
        (f"{lb['executor_side']}:", f"{lb['customer_side']}:"),
        [
            (_text(executor.organization, ph), _text(customer.organization, ph)),
            (
                f"{_text(executor.representative, ph)} /______________",
                f"{_text(customer.representative, ph)} /______________",
            ),
        ],
    )

    return doc


def build_protocol_docx(protocol: ProtocolDocument, locale: str = "ru") -> bytes:
    """Any python-docx or lxml failure, including control characters in model text, becomes BinaryRenderError."""
    buf = io.BytesIO()
    try:
        _compose(protocol, locale).save(buf)
    except Exception as e:
        raise BinaryRenderError(f"docx build failed: {type(e).__name__}: {e}") from e
    return buf.getvalue()
