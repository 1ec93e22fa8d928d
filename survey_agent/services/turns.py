"""Inbound message normalization.

Clients send turns as plain strings, `{role, content}` dicts, UI messages with a
`parts` array, or with attachments tucked into `metadata`. Everything below the
API layer works with ConversationTurn only.
"""

from __future__ import annotations

import json
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import Attachment, ConversationTurn
from survey_agent.services.ingest import attachment_placeholder, extract_attachment_text

logger = get_logger(__name__)

ATTACHMENT_MARKER = "Attached file:"

HIDDEN_RE = re.compile(r"<AI-HIDDEN>[\s\S]*?</AI-HIDDEN>", re.IGNORECASE)
# Injection blocks written by inline_attachment_block(); the Russian marker is
# kept for histories stored before the marker was switched.
ATTACHMENT_BLOCK_RE = re.compile(r"\n---\n(?:Attached file|Вложенный файл):[\s\S]*?\n---")

_ROLES = ("user", "assistant", "system")
_SNIPPET_CHARS = 1200


def strip_attachment_noise(text: Optional[str]) -> str:
    if not text:
        return ""
    text = ATTACHMENT_BLOCK_RE.sub("", str(text))
    text = HIDDEN_RE.sub("", text)
    return text.strip()


def _hidden_segments(text: str) -> List[str]:
    out = []
    for segment in HIDDEN_RE.findall(text or ""):
        inner = re.sub(r"</?AI-HIDDEN>", "", segment, flags=re.IGNORECASE).strip()
        if inner:
            out.append(inner)
    return out


def content_to_text(content: Any) -> str:
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for p in content:
            if isinstance(p, str):
                pieces.append(p)
            elif isinstance(p, dict):
                if isinstance(p.get("text"), str):
                    pieces.append(p["text"])
                elif isinstance(p.get("content"), str):
                    pieces.append(p["content"])
        return " ".join(x for x in pieces if x)
    if isinstance(content, dict):
        if isinstance(content.get("text"), str):
            return content["text"]
        if isinstance(content.get("content"), str):
            return content["content"]
        return json.dumps(content, ensure_ascii=False)
    return str(content)


def message_text(msg: Any) -> str:
    if msg is None:
        return ""
    if isinstance(msg, str):
        return msg
    if not isinstance(msg, dict):
        return str(msg)

    parts = msg.get("parts")
    if isinstance(parts, list):
        for p in parts:
            if isinstance(p, dict) and p.get("type") == "text" and isinstance(p.get("text"), str):
                return p["text"]
    if "content" in msg:
        return content_to_text(msg.get("content"))
    if isinstance(msg.get("text"), str):
        return msg["text"]
    return ""


def _file_part_to_attachment(part: Dict[str, Any]) -> Optional[Attachment]:
    url = part.get("url") or part.get("data") or ""
    if not url and not part.get("content"):
        return None
    return Attachment(
        id=str(part.get("id") or uuid.uuid4()),
        name=str(part.get("filename") or part.get("name") or "attachment"),
        media_type=part.get("mediaType") or part.get("mimeType") or part.get("type"),
        url=url or None,
        content=part.get("content") if isinstance(part.get("content"), str) else None,
    )


def _message_attachments(msg: Dict[str, Any]) -> List[Attachment]:
    out: List[Attachment] = []

    metadata = msg.get("metadata") if isinstance(msg.get("metadata"), dict) else {}
    for raw in metadata.get("attachments") or []:
        if isinstance(raw, dict):
            att = _file_part_to_attachment(raw)
            if att:
                out.append(att)

    parts = msg.get("parts")
    if isinstance(parts, list):
        for p in parts:
            if isinstance(p, dict) and p.get("type") == "file":
                att = _file_part_to_attachment({**p, "type": p.get("mediaType")})
                if att:
                    out.append(att)
    return out


def inline_attachment_block(name: str, text: str) -> str:
    return f"\n\n---\n{ATTACHMENT_MARKER} {name}\n{text}\n---"


def _to_dict(msg: Any) -> Dict[str, Any]:
    if isinstance(msg, dict):
        return msg
    if isinstance(msg, str):
        return {"role": "user", "content": msg}
    if hasattr(msg, "model_dump"):
        return msg.model_dump()
    return {"role": "user", "content": str(msg)}


def _merge_inbound_files(messages: List[Dict[str, Any]], files: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    file_parts = []
    for f in files or []:
        if not isinstance(f, dict):
            continue
        url = f.get("url") or f.get("data") or ""
        if not url:
            continue
        file_parts.append(
            {
                "type": "file",
                "id": f.get("id") or str(uuid.uuid4()),
                "filename": f.get("filename") or f.get("name") or "attachment",
                "url": url,
                "mediaType": f.get("mediaType") or f.get("mimeType") or f.get("type"),
            }
        )
    if not file_parts:
        return messages

    if not messages:
        return [{"id": str(uuid.uuid4()), "role": "user", "parts": file_parts, "content": ""}]

    for idx in range(len(messages) - 1, -1, -1):
        if messages[idx].get("role") != "user":
            continue
        last = dict(messages[idx])
        parts = list(last.get("parts") or [])
        if not any(isinstance(p, dict) and p.get("type") == "file" for p in parts):
            if not parts and last.get("content"):
                parts.append({"type": "text", "text": content_to_text(last.get("content"))})
            last["parts"] = parts + file_parts
            messages = messages[:idx] + [last] + messages[idx + 1:]
        break
    return messages


def normalize_turn(msg: Any) -> ConversationTurn:
    d = _to_dict(msg)
    raw_text = message_text(d)
    visible = HIDDEN_RE.sub("", raw_text).strip()
    hidden = _hidden_segments(raw_text)
    attachments = _message_attachments(d)

    blocks = []
    for att in attachments:
        extracted = extract_attachment_text(att)
        body = extracted if extracted else attachment_placeholder(att)
        hidden.append(body)
        blocks.append(inline_attachment_block(att.name, body))

    role = d.get("role") if d.get("role") in _ROLES else "user"
    return ConversationTurn(
        id=str(d.get("id") or uuid.uuid4()),
        role=role,
        text=visible,
        content=visible + "".join(blocks),
        attachments=attachments,
        hidden_texts=hidden,
    )


def normalize_messages(
    messages: Optional[List[Any]],
    files: Optional[List[Dict[str, Any]]] = None,
    text: Optional[str] = None,
) -> List[ConversationTurn]:
    """Canonical turns for one request. Empty turns (no text, no files) are dropped."""
    base = [_to_dict(m) for m in (messages or [])]
    if not base and text:
        base = [{"id": str(uuid.uuid4()), "role": "user", "content": str(text)}]
    base = _merge_inbound_files(base, files or [])

    turns = [normalize_turn(m) for m in base]
    kept = [t for t in turns if t.content.strip() or t.has_attachments]
    if len(kept) != len(turns):
        logger.warning(f"filtered_empty_messages count={len(turns) - len(kept)}")
    return kept


def build_attachments_context(turns: List[ConversationTurn], limit: int) -> str:
    entries = []
    for turn in turns:
        # attachment texts are appended after inline <AI-HIDDEN> segments
        offset = len(turn.hidden_texts) - len(turn.attachments)
        for idx, hidden in enumerate(turn.hidden_texts):
            cleaned = (hidden or "").strip()
            if not cleaned:
                continue
            att_idx = idx - offset
            name = turn.attachments[att_idx].name if att_idx >= 0 else None
            label = f'Document "{name}"' if name else f"Document {len(entries) + 1}"
            snippet = cleaned if len(cleaned) <= _SNIPPET_CHARS else cleaned[:_SNIPPET_CHARS] + " …"
            entries.append(f"{label}:\n{snippet}")
    return "\n\n".join(entries)[:limit]
