import os
from dotenv import load_dotenv

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")

# Intent classification
CLASSIFIER_WINDOW = int(os.getenv("CLASSIFIER_WINDOW", "12"))
CLASSIFIER_TEMPERATURE = float(os.getenv("CLASSIFIER_TEMPERATURE", "0.1"))
CLASSIFIER_MIN_CONFIDENCE = float(os.getenv("CLASSIFIER_MIN_CONFIDENCE", "0.6"))

# Chat
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.3"))

# Document synthesis
ANALYSIS_TEMPERATURE = float(os.getenv("ANALYSIS_TEMPERATURE", "0.2"))
PROTOCOL_TEMPERATURE = float(os.getenv("PROTOCOL_TEMPERATURE", "0.1"))
PIPELINE_TIMEOUT_SECONDS = float(os.getenv("PIPELINE_TIMEOUT_SECONDS", "300"))

ATTACHMENT_CONTEXT_CHARS = int(os.getenv("ATTACHMENT_CONTEXT_CHARS", "4000"))


def low_confidence_policy() -> str:
    # "heuristics": a low-confidence answer yields to an explicit generation command
    # "classifier": the parsed answer is used as-is
    policy = os.getenv("LOW_CONFIDENCE_POLICY", "heuristics").strip().lower()
    return policy if policy in ("heuristics", "classifier") else "heuristics"


def document_locale() -> str:
    locale = os.getenv("DOCUMENT_LOCALE", "ru").strip().lower()
    return locale if locale in ("ru", "en") else "ru"


def db_path() -> str:
    return os.getenv("CONVERSATIONS_DB_PATH", "data/conversations.db")


def max_upload_bytes() -> int:
    mb = int(os.getenv("MAX_UPLOAD_MB", "50"))
    return mb * 1024 * 1024
