from __future__ import annotations

from typing import Iterable, List, Optional

from survey_agent.schemas.protocol import ParticipantGroup, ProtocolDocument
from survey_agent.services.protocol_labels import labels_for


def _v(value: Optional[str], placeholder: str) -> str:
    text = (value or "").strip()
    return text if text else placeholder


def _cell(value: Optional[str], placeholder: str) -> str:
    return _v(value, placeholder).replace("\n", " ").replace("|", "\\|")


def _bullets(items: Iterable[str], placeholder: str) -> List[str]:
    lines = [f"- {item}" for item in items]
    return lines or [placeholder]


def _numbered(items: Iterable[str], placeholder: str) -> List[str]:
    lines = [f"{i}. {item}" for i, item in enumerate(items, start=1)]
    return lines or [placeholder]


def protocol_title(protocol: ProtocolDocument, locale: str = "ru") -> str:
    lb = labels_for(locale)
    return f"{lb['title']} {_v(protocol.protocol_number, lb['placeholder'])}"


def _participants_table(group: ParticipantGroup, side_label: str, role_label: str, lb: dict) -> List[str]:
    ph = lb["placeholder"]
    lines = [
        f"**{side_label} {_v(group.organization_name, ph)}:**",
        "",
        f"| {lb['full_name']} | {role_label} |",
        "|---|---|",
    ]
    if group.people:
        for p in group.people:
            lines.append(f"| {_cell(p.full_name, ph)} | {_cell(p.position, ph)} |")
    else:
        lines.append(f"| {ph} | {ph} |")
    return lines


def protocol_to_markdown(protocol: ProtocolDocument, locale: str = "ru") -> str:
    """Render all ten sections in fixed order; empty sections get the placeholder line."""
    lb = labels_for(locale)
    ph = lb["placeholder"]
    out: List[str] = [f"# {protocol_title(protocol, locale)}", ""]

    # 1
    out += [f"## 1. {lb['s1']}: {_v(protocol.meeting_date, ph)}", ""]

    # 2
    agenda = protocol.agenda
    out += [f"## 2. {lb['s2']}: {_v(agenda.title, ph)}", ""]
    out += _bullets((_v(i, ph) for i in agenda.items), ph)
    out.append("")

    # 3
    out += [f"## 3. {lb['s3']}", ""]
    out += _participants_table(protocol.participants.customer, lb["customer_side"], lb["position"], lb)
    out.append("")
    out += _participants_table(protocol.participants.executor, lb["executor_side"], lb["role"], lb)
    out.append("")

    # 4
    out += [f"## 4. {lb['s4']}", ""]
    out += _bullets((f"{_v(t.term, ph)} – {_v(t.definition, ph)}" for t in protocol.terms_and_definitions), ph)
    out.append("")

    # 5
    out += [f"## 5. {lb['s5']}", ""]
    out += _bullets((f"{_v(a.abbreviation, ph)} – {_v(a.full_form, ph)}" for a in protocol.abbreviations), ph)
    out.append("")

    # 6
    content = protocol.meeting_content
    out += [f"## 6. {lb['s6']}", "", lb["content_intro"], ""]
    if content.introduction and content.introduction.strip():
        out += [content.introduction.strip(), ""]
    if not content.topics and not content.migration_features:
        out += [ph, ""]
    for topic in content.topics:
        out += [f"**{_v(topic.title, ph)}**", "", _v(topic.content, ph), ""]
        for sub in topic.subtopics:
            if sub.title and sub.title.strip():
                out += [f"*{sub.title.strip()}*", ""]
            out += [_v(sub.content, ph), ""]
    if content.migration_features:
        out += [f"| {lb['tab']} | {lb['features']} |", "|---|---|"]
        for feat in content.migration_features:
            out.append(f"| {_cell(feat.tab, ph)} | {_cell(feat.features, ph)} |")
        out.append("")

    # 7
    qa = protocol.questions_and_answers
    out += [f"## 7. {lb['s7']}", ""]
    out += _numbered((_v(x.question, ph) for x in qa), ph)
    out += ["", f"**{lb['answers']}:**", ""]
    out += _numbered((_v(x.answer, ph) for x in qa), ph)
    out.append("")

    # 8
    out += [f"## 8. {lb['s8']}", ""]
    if protocol.decisions:
        for i, d in enumerate(protocol.decisions, start=1):
            out.append(f"{i}. {_v(d.decision, ph)}")
            out.append(f"   {lb['responsible']}: {_v(d.responsible, ph)}")
    else:
        out.append(ph)
    out.append("")

    # 9
    out += [f"## 9. {lb['s9']}", ""]
    out += _numbered((_v(q, ph) for q in protocol.open_questions), ph)
    out.append("")

    # 10
    executor = protocol.approval.executor_signature
    customer = protocol.approval.customer_signature
    out += [
        f"## 10. {lb['s10']}",
        "",
        f"| {lb['executor_side']}: | {lb['customer_side']}: |",
        "|---|---|",
        f"| {_cell(executor.organization, ph)} | {_cell(customer.organization, ph)} |",
        f"| {_cell(executor.representative, ph)} /______________ | "
        f"{_cell(customer.representative, ph)} /______________ |",
    ]

    return "\n".join(out) + "\n"


def markdown_chunks(markdown: str) -> List[str]:
    """One delta per line, newline kept, so joining the chunks gives the markdown back."""
    return markdown.splitlines(keepends=True)
