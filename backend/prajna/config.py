"""
Runtime configuration for the Prajna exam backend.

Every tunable is read once from the environment with a literal default.
Values are plain module-level constants so they can be imported directly
and monkeypatched in tests.
"""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ──────────────────────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────────────────────
SERVICE_NAME = "prajna-exam-backend"
SERVICE_VERSION = "1.0.0"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./prajna.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ──────────────────────────────────────────────────────────────
# Gemini short-answer evaluator
# ──────────────────────────────────────────────────────────────
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.2"))

# ──────────────────────────────────────────────────────────────
# Scoring policy
# ──────────────────────────────────────────────────────────────
SHORT_ANSWER_MAX_SCORE = 5
SHORT_ANSWER_FALLBACK_SCORE = int(os.getenv("SHORT_ANSWER_FALLBACK_SCORE", "1"))

EVALUATOR_TIMEOUT_SECONDS = float(os.getenv("EVALUATOR_TIMEOUT_SECONDS", "30"))
EVALUATOR_MAX_RETRIES = int(os.getenv("EVALUATOR_MAX_RETRIES", "3"))
EVALUATOR_BACKOFF_BASE = float(os.getenv("EVALUATOR_BACKOFF_BASE", "1.0"))
EVALUATOR_CONCURRENCY = int(os.getenv("EVALUATOR_CONCURRENCY", "5"))

# When false, an exam that is already SCORED cannot be scored again (409)
ALLOW_RESCORING = _env_bool("ALLOW_RESCORING", "false")

# The UI always asks for 15 questions; the server only checks it when enabled
ENFORCE_QUESTION_TOTAL = _env_bool("ENFORCE_QUESTION_TOTAL", "false")
REQUIRED_QUESTION_TOTAL = int(os.getenv("REQUIRED_QUESTION_TOTAL", "15"))

# ──────────────────────────────────────────────────────────────
# Credits
# ──────────────────────────────────────────────────────────────
EXAM_CREDIT_COST = int(os.getenv("EXAM_CREDIT_COST", "15"))
DEFAULT_CREDIT_GRANT = int(os.getenv("DEFAULT_CREDIT_GRANT", "50"))
