from __future__ import annotations

import json
import os
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from survey_agent.core.config import db_path
from survey_agent.core.errors import PersistenceError
from survey_agent.core.logging import get_logger
from survey_agent.schemas.conversation import AgentContext

logger = get_logger(__name__)

DEFAULT_PROMPT_TITLE = "Default Assistant"
DEFAULT_PROMPT = (
    "You are an analyst who interviews a customer about a business process and records a survey "
    "protocol of the meeting. Ask one focused question at a time, collect participants, agenda, "
    "terms, decisions and open questions, and offer to produce the protocol once the picture is complete. "
    "Never invent facts that the customer did not state."
)


@dataclass
class Conversation:
    id: str
    user_id: Optional[str]
    title: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    document_content: Optional[str] = None
    created_at_utc: str = ""
    updated_at_utc: str = ""


@dataclass
class Prompt:
    id: str
    user_id: Optional[str]
    title: str
    content: str
    is_default: bool
    created_at_utc: str


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _connect() -> sqlite3.Connection:
    return sqlite3.connect(db_path())


def init_db() -> None:
    folder = os.path.dirname(db_path())
    if folder:
        os.makedirs(folder, exist_ok=True)

    with _connect() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                title TEXT NOT NULL,
                messages_json TEXT NOT NULL,
                document_content TEXT,
                created_at_utc TEXT NOT NULL,
                updated_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_conversations_user_time ON conversations(user_id, updated_at_utc);"
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS prompts (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                is_default INTEGER NOT NULL DEFAULT 0,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS user_settings (
                user_id TEXT PRIMARY KEY,
                selected_prompt_id TEXT
            );
            """
        )
        conn.commit()


def _title_from_messages(messages: List[Dict[str, Any]]) -> str:
    for m in messages:
        if m.get("role") == "user" and (m.get("content") or "").strip():
            return m["content"].strip().splitlines()[0][:60]
    return "New conversation"


def _row_to_conversation(r) -> Conversation:
    return Conversation(
        id=r[0],
        user_id=r[1],
        title=r[2],
        messages=json.loads(r[3] or "[]"),
        document_content=r[4],
        created_at_utc=r[5],
        updated_at_utc=r[6],
    )


def save_conversation(
    user_id: Optional[str],
    messages: List[Dict[str, Any]],
    document_content: Optional[str] = None,
) -> Conversation:
    now = now_utc_iso()
    conv = Conversation(
        id=str(uuid.uuid4()),
        user_id=user_id,
        title=_title_from_messages(messages),
        messages=messages,
        document_content=document_content,
        created_at_utc=now,
        updated_at_utc=now,
    )
    try:
        with _connect() as conn:
            conn.execute(
                """
                INSERT INTO conversations
                (id, user_id, title, messages_json, document_content, created_at_utc, updated_at_utc)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    conv.id,
                    conv.user_id,
                    conv.title,
                    json.dumps(messages, ensure_ascii=False),
                    conv.document_content,
                    conv.created_at_utc,
                    conv.updated_at_utc,
                ),
            )
            conn.commit()
    except sqlite3.Error as e:
        raise PersistenceError(f"save_conversation failed: {type(e).__name__}") from e
    return conv


def update_conversation(
    conversation_id: str,
    messages: List[Dict[str, Any]],
    document_content: Optional[str] = None,
) -> Conversation:
    """Replace the stored history. A single UPDATE statement, so the last writer wins."""
    now = now_utc_iso()
    try:
        with _connect() as conn:
            cur = conn.execute(
                """
                UPDATE conversations
                SET messages_json = ?,
                    document_content = COALESCE(?, document_content),
                    updated_at_utc = ?
                WHERE id = ?;
                """,
                (json.dumps(messages, ensure_ascii=False), document_content, now, conversation_id),
            )
            conn.commit()
            if cur.rowcount == 0:
                raise PersistenceError(f"conversation {conversation_id} not found")
        conv = get_conversation(conversation_id)
    except sqlite3.Error as e:
        raise PersistenceError(f"update_conversation failed: {type(e).__name__}") from e

    if conv is None:
        raise PersistenceError(f"conversation {conversation_id} not found")
    return conv


def get_conversation(conversation_id: str) -> Optional[Conversation]:
    with _connect() as conn:
        row = conn.execute(
            """
            SELECT id, user_id, title, messages_json, document_content, created_at_utc, updated_at_utc
            FROM conversations WHERE id = ?;
            """,
            (conversation_id,),
        ).fetchone()
    return _row_to_conversation(row) if row else None


def list_conversations(user_id: str, limit: int = 50) -> List[Conversation]:
    if limit < 1:
        limit = 1
    if limit > 200:
        limit = 200

    with _connect() as conn:
        rows = conn.execute(
            """
            SELECT id, user_id, title, messages_json, document_content, created_at_utc, updated_at_utc
            FROM conversations
            WHERE user_id = ?
            ORDER BY updated_at_utc DESC
            LIMIT ?;
            """,
            (user_id, limit),
        ).fetchall()
    return [_row_to_conversation(r) for r in rows]


# -------------------------
# Prompts (behavioral instructions)
# -------------------------
def _row_to_prompt(r) -> Prompt:
    return Prompt(id=r[0], user_id=r[1], title=r[2], content=r[3], is_default=bool(r[4]), created_at_utc=r[5])


def get_default_prompt() -> str:
    """Default instruction text; seeds the table on first use."""
    with _connect() as conn:
        row = conn.execute("SELECT content FROM prompts WHERE is_default = 1 LIMIT 1;").fetchone()
        if row:
            return row[0] or DEFAULT_PROMPT
        conn.execute(
            "INSERT INTO prompts (id, user_id, title, content, is_default, created_at_utc) VALUES (?, NULL, ?, ?, 1, ?);",
            (str(uuid.uuid4()), DEFAULT_PROMPT_TITLE, DEFAULT_PROMPT, now_utc_iso()),
        )
        conn.commit()
    return DEFAULT_PROMPT


def update_default_prompt(content: str) -> None:
    with _connect() as conn:
        cur = conn.execute("UPDATE prompts SET content = ? WHERE is_default = 1;", (content,))
        if cur.rowcount == 0:
            conn.execute(
                "INSERT INTO prompts (id, user_id, title, content, is_default, created_at_utc) VALUES (?, NULL, ?, ?, 1, ?);",
                (str(uuid.uuid4()), DEFAULT_PROMPT_TITLE, content, now_utc_iso()),
            )
        conn.commit()


def create_prompt(title: str, content: str, user_id: Optional[str] = None) -> Prompt:
    prompt = Prompt(
        id=str(uuid.uuid4()),
        user_id=user_id,
        title=title,
        content=content,
        is_default=False,
        created_at_utc=now_utc_iso(),
    )
    with _connect() as conn:
        conn.execute(
            "INSERT INTO prompts (id, user_id, title, content, is_default, created_at_utc) VALUES (?, ?, ?, ?, 0, ?);",
            (prompt.id, prompt.user_id, prompt.title, prompt.content, prompt.created_at_utc),
        )
        conn.commit()
    return prompt


def get_prompt_by_id(prompt_id: str) -> Optional[Prompt]:
    with _connect() as conn:
        row = conn.execute(
            "SELECT id, user_id, title, content, is_default, created_at_utc FROM prompts WHERE id = ?;",
            (prompt_id,),
        ).fetchone()
    return _row_to_prompt(row) if row else None


def get_user_selected_prompt(user_id: str) -> Optional[str]:
    with _connect() as conn:
        row = conn.execute(
            "SELECT selected_prompt_id FROM user_settings WHERE user_id = ?;", (user_id,)
        ).fetchone()
    return row[0] if row else None


def set_user_selected_prompt(user_id: str, prompt_id: str) -> None:
    with _connect() as conn:
        conn.execute(
            """
            INSERT INTO user_settings (user_id, selected_prompt_id) VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET selected_prompt_id = excluded.selected_prompt_id;
            """,
            (user_id, prompt_id),
        )
        conn.commit()


# -------------------------
# Agent-facing adapter
# -------------------------
def persist_exchange(
    context: AgentContext,
    assistant_text: str,
    document_content: Optional[str] = None,
) -> Optional[str]:
    """
    Store the turns of this request plus the assistant reply.
    Anonymous requests (no user, no conversation) are not stored.
    Failures are logged and swallowed: the response has already been sent.
    """
    request_id = context.request_id or "-"
    if not context.user_id and not context.conversation_id:
        return None

    messages = [{"id": t.id, "role": t.role, "content": t.content} for t in context.turns]
    if assistant_text:
        messages.append({"id": str(uuid.uuid4()), "role": "assistant", "content": assistant_text})

    try:
        if context.conversation_id:
            conv = update_conversation(context.conversation_id, messages, document_content)
        else:
            conv = save_conversation(context.user_id, messages, document_content)
    except PersistenceError as e:
        logger.error(f"[{request_id}] persistence_failed error={e}")
        return None

    logger.info(f"[{request_id}] persisted conversation_id={conv.id} messages={len(messages)}")
    return conv.id
