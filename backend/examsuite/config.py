"""
Configuration - env vars, constants, scorer credentials.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
import google.generativeai as genai

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("examsuite")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Invalid value for {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


# ============ EXTERNAL SCORER ============
SCORER_API_URL = os.environ.get("SCORER_API_URL")
SCORER_API_KEY = os.environ.get("SCORER_API_KEY")
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
SCORER_MODEL = os.environ.get("SCORER_MODEL", "gemini-2.5-flash")

SCORER_TIMEOUT_SECONDS = _env_float("SCORER_TIMEOUT_SECONDS", 15.0)
SCORER_MAX_RETRIES = _env_int("SCORER_MAX_RETRIES", 2)
SCORER_RETRY_DELAY_SECONDS = _env_float("SCORER_RETRY_DELAY_SECONDS", 1.5)
ANSWER_CHAR_CAP = _env_int("ANSWER_CHAR_CAP", 3000)
SCORING_CONCURRENCY = _env_int("SCORING_CONCURRENCY", 4)

# ============ SUBMISSION LIFECYCLE ============
VIOLATION_THRESHOLD = _env_int("VIOLATION_THRESHOLD", 5)

# ============ EXAM STATUS SCHEDULER ============
EXAM_STATUS_SYNC_SECONDS = _env_float("EXAM_STATUS_SYNC_SECONDS", 60.0)
ORPHAN_CLEANUP_SECONDS = _env_float("ORPHAN_CLEANUP_SECONDS", 60.0 * 60)
ORPHAN_DRAFT_MAX_AGE_HOURS = _env_float("ORPHAN_DRAFT_MAX_AGE_HOURS", 24.0)

if SCORER_API_URL and SCORER_API_KEY:
    logger.info(f"✅ External scorer configured at: {SCORER_API_URL}")
elif GEMINI_API_KEY:
    genai.configure(api_key=GEMINI_API_KEY)
    logger.info(f"✅ Gemini scorer configured (model: {SCORER_MODEL})")
else:
    logger.warning("⚠️ No scorer credentials found - subjective answers will use heuristic scoring")


@dataclass(frozen=True)
class ScorerSettings:
    """Everything the Scoring Client needs, resolved once from the environment."""
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    timeout_seconds: float = 15.0
    max_retries: int = 2
    retry_delay_seconds: float = 1.5
    answer_char_cap: int = 3000

    @property
    def provider(self) -> Optional[str]:
        if self.api_url and self.api_key:
            return "http"
        if self.gemini_api_key:
            return "gemini"
        return None

    @property
    def worst_case_seconds(self) -> float:
        """Upper bound on one open-response evaluation before fallback kicks in."""
        return (self.timeout_seconds * (self.max_retries + 1)
                + self.retry_delay_seconds * self.max_retries)


def get_scorer_settings() -> ScorerSettings:
    return ScorerSettings(
        api_url=SCORER_API_URL,
        api_key=SCORER_API_KEY,
        gemini_api_key=GEMINI_API_KEY,
        model=SCORER_MODEL,
        timeout_seconds=SCORER_TIMEOUT_SECONDS,
        max_retries=SCORER_MAX_RETRIES,
        retry_delay_seconds=SCORER_RETRY_DELAY_SECONDS,
        answer_char_cap=ANSWER_CHAR_CAP,
    )


def get_version_info():
    """Get deployment version information."""
    git_commit = os.environ.get("GIT_COMMIT_SHA")
    if not git_commit:
        try:
            if os.path.exists(".git_commit"):
                with open(".git_commit", "r") as f:
                    git_commit = f.read().strip()
        except OSError as e:
            logger.warning(f"Could not read .git_commit: {e}")

    if not git_commit:
        git_commit = "unknown"

    return {
        "git_commit": git_commit,
        "build_time": os.environ.get("BUILD_TIME", "unknown"),
        "environment": os.environ.get("ENV", os.environ.get("ENVIRONMENT", "development")),
    }
