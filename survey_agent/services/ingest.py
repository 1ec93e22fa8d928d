from __future__ import annotations

import base64
import binascii
import io
import re
import zipfile
from typing import List, Optional

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from survey_agent.core.config import max_upload_bytes
from survey_agent.core.errors import AttachmentError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import Attachment

logger = get_logger(__name__)

_DATA_URL = re.compile(r"^data:[^;,]*(?:;[^;,]*)*;base64,(.+)$", re.IGNORECASE | re.DOTALL)

PDF_TYPES = ("application/pdf",)
DOCX_TYPES = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)
TEXT_EXTENSIONS = (".txt", ".md", ".csv", ".json")


def data_url_to_bytes(data_url: Optional[str]) -> Optional[bytes]:
    if not data_url:
        return None
    m = _DATA_URL.match(data_url.strip())
    if not m:
        return None
    try:
        return base64.b64decode(m.group(1), validate=False)
    except (binascii.Error, ValueError):
        return None


def _extract_pdf_text(pdf_bytes: bytes) -> str:
    reader = PdfReader(io.BytesIO(pdf_bytes))
    pages: List[str] = []
    for page in reader.pages:
        t = page.extract_text() or ""
        if t.strip():
            pages.append(t.strip())
    return "\n\n".join(pages).strip()


def _extract_docx_text(docx_bytes: bytes) -> str:
    doc = Document(io.BytesIO(docx_bytes))
    lines = [p.text for p in doc.paragraphs if p.text and p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells]
            if any(cells):
                lines.append("\t".join(cells))
    return "\n".join(lines).strip()


def _extract_plain_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").strip()


def _extract(raw: bytes, name: str, ctype: str) -> Optional[str]:
    if len(raw) > max_upload_bytes():
        raise AttachmentError(f"attachment too large ({len(raw)} bytes)")
    try:
        if ctype in PDF_TYPES or name.endswith(".pdf"):
            return _extract_pdf_text(raw) or None
        if ctype in DOCX_TYPES or name.endswith(".docx"):
            return _extract_docx_text(raw) or None
        if ctype.startswith("text/") or name.endswith(TEXT_EXTENSIONS):
            return _extract_plain_text(raw) or None
    except (PdfReadError, PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError, OSError) as e:
        raise AttachmentError(f"{type(e).__name__}") from e
    return None


def extract_attachment_text(att: Attachment) -> Optional[str]:
    """
    Best-effort text for one attachment.
    - Pre-extracted `content` wins.
    - PDF -> PyPDF2, DOCX -> python-docx, text files -> utf-8.
    Returns None when nothing readable could be produced.
    """
    if att.content and att.content.strip():
        return att.content.strip()

    raw = data_url_to_bytes(att.url)
    if not raw:
        return None

    ctype = (att.media_type or "").lower()
    try:
        return _extract(raw, (att.name or "").lower(), ctype)
    except AttachmentError as e:
        logger.warning(f"attachment_extract_failed name={att.name!r} type={ctype!r} error={e}")
        return None


def attachment_placeholder(att: Attachment) -> str:
    return f'File "{att.name}": text not extracted (type {att.media_type or "unknown"}).'
