"""Application configuration."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from backend root (before any os.getenv calls)
load_dotenv(BASE_DIR / ".env")


def _get_bool(env_var: str, default: bool) -> bool:
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_list(env_var: str, default: list[str]) -> list[str]:
    value = os.getenv(env_var)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

# AI provider: "gemini" (cloud) or "ollama" (local)
AI_PROVIDER = os.getenv("AI_PROVIDER", "gemini").strip().lower()
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-3-pro-preview")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen3:32b")

# LLM call behaviour
LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT", "300"))          # 5 min per call, long policy wordings
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
LLM_TEMPERATURE = 0.0                                       # Extraction must be repeatable
LLM_TOP_P = 0.95

# Uploads
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "10"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024
ALLOWED_MIME_TYPES = _get_list("ALLOWED_MIME_TYPES", [
    "application/pdf",
    "image/png",
    "image/jpeg",
    "text/plain",
])

CORS_ORIGINS = _get_list("CORS_ORIGINS", ["http://localhost:5173", "http://127.0.0.1:5173"])

# Debug trace mode: set COVERWISE_TRACE=1 to get detailed canonicalization/verdict logs
TRACE_ENABLED = _get_bool("COVERWISE_TRACE", False)

# ── Canonicalization constants ──
DAYS_PER_MONTH = 30.44              # Waiting periods: days = round(months × 30.44)
DEFAULT_GENERAL_WAITING_MONTHS = 1  # Used when the general waiting period is unreadable
DEFAULT_PED_WAITING_MONTHS = 36     # Used when the pre-existing disease waiting period is unreadable
DOMICILIARY_STANDARD_PERCENT = 10   # % of SI when domiciliary care is covered without an amount
DOMICILIARY_MIN_HOSPITALIZATION_DAYS = 3
PAYLOAD_PREVIEW_CHARS = 500         # Chars of a malformed LLM payload kept for diagnostics
EXTRACTED_BY = os.getenv("EXTRACTED_BY", f"{AI_PROVIDER}-evidence-based")

# Extraction confidence below this needs a human to re-check the record
MANUAL_REVIEW_THRESHOLD = float(os.getenv("MANUAL_REVIEW_THRESHOLD", "0.7"))

# ── Verdict engine: city tiers and sum-insured thresholds (INR) ──
METRO_CITIES = _get_list("METRO_CITIES", [
    "Mumbai", "Delhi", "Bangalore", "Hyderabad", "Chennai", "Kolkata", "Pune",
])
TIER2_CITIES = _get_list("TIER2_CITIES", [
    "Ahmedabad", "Jaipur", "Chandigarh", "Lucknow", "Kochi",
])

VERDICT_THRESHOLDS = {
    "METRO":  {"insufficient_below": 300_000, "sufficient_from": 1_000_000},
    "TIER_2": {"insufficient_below": 200_000, "sufficient_from": 700_000},
    "TIER_3": {"insufficient_below": 200_000, "sufficient_from": 700_000},
}


def get_city_tier_table():
    """Build the immutable city-tier lookup used by the verdict engine.

    Imported lazily so config stays free of pipeline imports.
    """
    from coverwise.pipeline.verdict import CityTierTable
    return CityTierTable.from_config(METRO_CITIES, TIER2_CITIES, VERDICT_THRESHOLDS)
