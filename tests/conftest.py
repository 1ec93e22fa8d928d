"""Pytest configuration and fixtures."""

import os

import pytest

# config reads these at import time
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("DOCUMENT_LOCALE", "ru")
os.environ.setdefault("LOW_CONFIDENCE_POLICY", "heuristics")

from survey_agent.services.conversation_store import init_db  # noqa: E402
from survey_agent.services.instructions import default_instruction  # noqa: E402
from tests.fakes.fake_llm import FakeLanguageModel  # noqa: E402


@pytest.fixture(autouse=True)
def tmp_db(tmp_path, monkeypatch):
    """Every test gets its own SQLite file and a cold instruction cache."""
    path = tmp_path / "conversations.db"
    monkeypatch.setenv("CONVERSATIONS_DB_PATH", str(path))
    init_db()
    default_instruction.invalidate()
    yield path
    default_instruction.invalidate()


@pytest.fixture
def fake_llm():
    return FakeLanguageModel()
