import os

from dotenv import load_dotenv

load_dotenv()

# Model configuration
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "60"))

# Saved session location (one file, one snapshot)
SESSION_STORE_PATH = os.path.expanduser(os.getenv(
    "SESSION_STORE_PATH",
    os.path.join("~", ".study_companion", "saved_session.json"),
))

# Chat context sent with every turn
CHAT_HISTORY_WINDOW = int(os.getenv("CHAT_HISTORY_WINDOW", "6"))
CHAT_CONTENT_PREVIEW_CHARS = int(os.getenv("CHAT_CONTENT_PREVIEW_CHARS", "1500"))

QUIZ_QUESTION_COUNT = int(os.getenv("QUIZ_QUESTION_COUNT", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
