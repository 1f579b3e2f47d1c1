"""Project-wide configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

from helmet_check.models import ProjectSettings

PROJECT_ROOT = Path(os.environ.get("HELMET_CHECK_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DB_PATH = PROJECT_ROOT / "helmet_check.duckdb"
IMAGES_DIR = Path(os.environ.get("HELMET_CHECK_IMAGES_DIR", PROJECT_ROOT / "public" / "images"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Gemini API
GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL_NAME = os.environ.get("GEMINI_MODEL_NAME", "gemini-2.5-flash-lite")

# Detection fan-out
DETECTION_TIMEOUT = float(os.environ.get("DETECTION_TIMEOUT", "60"))
DETECTION_CONCURRENCY = int(os.environ.get("DETECTION_CONCURRENCY", "4"))

# HTTP server
SERVER_HOST = os.environ.get("HELMET_CHECK_HOST", "127.0.0.1")
SERVER_PORT = int(os.environ.get("HELMET_CHECK_PORT", "8000"))

# Settings applied when a request omits or garbles a field
DEFAULT_API_SETTINGS = ProjectSettings(
    project_tag="API",
    confidence=0.8,
    gemini_weight=1.0,
    gemini_prompt="default",
    grok_weight=0.0,  # grok is not wired up yet
    grok_prompt="default",
    max_file_size=5000,  # KB
    max_width=1920,
    max_height=1080,
    output_format="pdf",
)

THUMBNAIL_SIZE = (300, 300)
