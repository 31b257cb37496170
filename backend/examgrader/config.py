"""
Configuration - env vars, constants, logging setup.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# Logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("examgrader")

# Database
MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "examgrader")

# Analyzer (Gemini vision model)
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
ANALYZER_TIMEOUT_SECONDS = float(os.environ.get("ANALYZER_TIMEOUT_SECONDS", "240"))
ANALYZER_MAX_RETRIES = int(os.environ.get("ANALYZER_MAX_RETRIES", "3"))

if not GEMINI_API_KEY:
    logger.warning("⚠️ No GEMINI_API_KEY found - AI grading and extraction will fail")

# Uploads
UPLOAD_DIR = Path(os.environ.get("UPLOAD_DIR", "uploads"))
MAX_UPLOAD_PAGES = int(os.environ.get("MAX_UPLOAD_PAGES", "10"))

# Audio cache (narration files for study content)
AUDIO_CACHE_DIR = Path(os.environ.get("AUDIO_CACHE_PATH", "audio-cache"))
AUDIO_PRICE_PER_1000_CHARS = float(os.environ.get("AUDIO_PRICE_PER_1000_CHARS", "0.015"))  # USD
AUDIO_WORDS_PER_MINUTE = 150

# Fallback when neither the analyzer nor Pillow can tell the image size
DEFAULT_IMAGE_DIMENSIONS = {"width": 1200, "height": 1600}

# Admin allow-list (emails), on top of the upstream "admin" role
ADMIN_EMAILS = [
    email.strip().lower()
    for email in os.environ.get("ADMIN_EMAILS", "").split(",")
    if email.strip()
]


def get_llm_api_key():
    """Get the LLM API key from environment variables."""
    return GEMINI_API_KEY


def get_version_info():
    """Get deployment version information."""
    git_commit = os.environ.get("GIT_COMMIT_SHA")
    if not git_commit:
        commit_file = ROOT_DIR / ".git_commit"
        if commit_file.exists():
            git_commit = commit_file.read_text().strip()

    if not git_commit:
        logger.warning("GIT_COMMIT_SHA not set and .git_commit not found. Build pipeline issue?")
        git_commit = "unknown"

    build_time = os.environ.get("BUILD_TIME", "unknown")
    env = os.environ.get("ENV", os.environ.get("ENVIRONMENT", "development"))

    return {
        "git_commit": git_commit,
        "build_time": build_time,
        "environment": env
    }
