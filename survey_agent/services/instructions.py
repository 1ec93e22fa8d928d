from __future__ import annotations

from typing import Optional

from survey_agent.core.logging import get_logger
from survey_agent.services import conversation_store as store

logger = get_logger(__name__)

ATTACHMENTS_GUIDE = """===== USER ATTACHMENTS (CONTEXT) =====
{attachments}

HOW TO USE THE ATTACHMENTS:
1. These are reference materials. Do NOT summarize them unless the user explicitly asks.
2. Use them only to answer concrete questions or to carry out the user's tasks.
3. If the user asked nothing, confirm the files were received and that you are ready to work with them.
===== END OF ATTACHMENTS ====="""


class InstructionCache:
    """Process-wide copy of the default instruction. Loaded on first use,
    replaced on explicit update, never refreshed behind the caller's back."""

    def __init__(self) -> None:
        self._value: Optional[str] = None

    def get(self) -> str:
        if self._value is None:
            self._value = store.get_default_prompt()
        return self._value

    def set(self, value: str) -> None:
        self._value = value

    def invalidate(self) -> None:
        self._value = None


default_instruction = InstructionCache()


def resolve_instruction(user_id: Optional[str] = None, selected_prompt_id: Optional[str] = None) -> str:
    """Explicitly selected prompt, then the user's saved selection, then the default."""
    if selected_prompt_id:
        prompt = store.get_prompt_by_id(selected_prompt_id)
        if prompt and prompt.content:
            return prompt.content
        logger.warning(f"selected_prompt_missing prompt_id={selected_prompt_id}")

    if user_id:
        selected_id = store.get_user_selected_prompt(user_id)
        if selected_id:
            prompt = store.get_prompt_by_id(selected_id)
            if prompt and prompt.content:
                return prompt.content

    return default_instruction.get()


def update_default_instruction(content: str, user_id: Optional[str] = None) -> None:
    """
    With a user: store a new personal prompt and select it for that user.
    Without one: overwrite the shared default.
    """
    if user_id:
        title = content[:60] or "User Prompt"
        prompt = store.create_prompt(title, content, user_id=user_id)
        store.set_user_selected_prompt(user_id, prompt.id)
        logger.info(f"user_prompt_created user_id={user_id} prompt_id={prompt.id}")
    else:
        store.update_default_prompt(content)
        default_instruction.set(content)
        logger.info("default_prompt_updated")


def build_system_prompt(instruction: str, attachments_context: str = "", document_content: Optional[str] = None) -> str:
    parts = [instruction.strip()]
    if attachments_context:
        parts.append(ATTACHMENTS_GUIDE.format(attachments=attachments_context))
    if document_content and document_content.strip():
        parts.append(f"===== CURRENT DOCUMENT =====\n{document_content.strip()}\n===== END OF DOCUMENT =====")
    return "\n\n".join(parts)
