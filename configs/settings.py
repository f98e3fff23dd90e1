"""
Configuration management for the SandboxSQL service.

This module handles all configuration loading and validation.
Values come from the environment (optionally a .env file) and are exposed
as module-level constants. `validate_configuration()` fails fast with a
clear message when something required is missing.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# interpolate=False keeps `$` characters in API keys intact
load_dotenv(interpolate=False)


# =============================================================================
# CONFIGURATION VALIDATION
# =============================================================================

class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).strip().lower() == "true"


# =============================================================================
# BASE PATHS
# =============================================================================

BASE_DIR = Path(__file__).parent.parent

# Uploaded CSVs and the SQLite stores built from them live here
UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads"))

# Where sandbox working copies are created. Empty = next to the source file.
SANDBOX_DIR = os.getenv("SANDBOX_DIR", "").strip()


# =============================================================================
# LLM CONFIGURATION
# =============================================================================

# Any litellm model string, e.g. "gemini/gemini-2.5-flash" or "groq/llama-3.1-8b-instant"
LLM_MODEL = os.getenv("LLM_MODEL", "gemini/gemini-2.5-flash")

# Tried once when the primary model call fails. Empty disables fallback.
LLM_FALLBACK_MODEL = os.getenv("LLM_FALLBACK_MODEL", "").strip()

LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.0"))
MAX_LLM_TOKENS = int(os.getenv("MAX_LLM_TOKENS", "1024"))


# =============================================================================
# AGENT BEHAVIOUR
# =============================================================================

# Queries run against a disposable copy, so mutating SQL is allowed by default.
# Set to false to reject FORBIDDEN_KEYWORDS during validation.
ALLOW_MUTATING_QUERIES = _env_bool("ALLOW_MUTATING_QUERIES", "true")

# End the run as soon as the generator reports missing columns
STOP_ON_MISSING_COLUMNS = _env_bool("STOP_ON_MISSING_COLUMNS", "false")


# =============================================================================
# INGESTION
# =============================================================================

MAX_UPLOAD_FILES = int(os.getenv("MAX_UPLOAD_FILES", "10"))
CLEANING_SAMPLE_ROWS = int(os.getenv("CLEANING_SAMPLE_ROWS", "5"))


# =============================================================================
# SYSTEM SETTINGS
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE = _env_bool("VERBOSE", "false")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")


# =============================================================================
# HARDCODED CONSTANTS (DO NOT MAKE CONFIGURABLE)
# =============================================================================

# Generation attempts per question
MAX_ITERATIONS = 3

# Rejected during validation only when ALLOW_MUTATING_QUERIES is false
FORBIDDEN_KEYWORDS = ["DROP", "DELETE", "INSERT", "UPDATE", "ALTER", "CREATE", "TRUNCATE"]

SUPPORTED_DELIMITED_EXTENSIONS = (".csv",)
SQLITE_EXTENSIONS = (".sqlite", ".sqlite3", ".db")

MIN_TABLE_NAME_LENGTH = 2
MAX_TABLE_NAME_LENGTH = 50

# Placeholder rendered into the generation prompt when no columns are pinned
ALL_COLUMNS_ALLOWED = "ALL COLUMNS ALLOWED"


def validate_configuration(skip_api_check: bool = False) -> dict:
    """
    Validate configuration and return the resolved values.

    Args:
        skip_api_check: If True, do not require a provider API key

    Returns:
        Dictionary with validated configuration values

    Raises:
        ConfigurationError: If any required configuration is missing
    """
    errors = []
    config = {
        "llm_model": LLM_MODEL,
        "llm_fallback_model": LLM_FALLBACK_MODEL or None,
        "upload_dir": UPLOAD_DIR,
        "sandbox_dir": SANDBOX_DIR or None,
    }

    if not LLM_MODEL:
        errors.append("LLM_MODEL is empty")

    if not skip_api_check:
        provider = LLM_MODEL.split("/", 1)[0].lower()
        key_names = {
            "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
            "groq": ("GROQ_API_KEY",),
            "openai": ("OPENAI_API_KEY",),
            "anthropic": ("ANTHROPIC_API_KEY",),
        }.get(provider, ())
        if key_names and not any(os.getenv(k) for k in key_names):
            errors.append(f"No API key for provider '{provider}'. Set one of: {', '.join(key_names)}")

    if SANDBOX_DIR and not Path(SANDBOX_DIR).is_dir():
        errors.append(f"SANDBOX_DIR does not exist: {SANDBOX_DIR}")

    if MAX_UPLOAD_FILES < 1:
        errors.append("MAX_UPLOAD_FILES must be at least 1")

    if errors:
        error_msg = "\n\nConfiguration Errors:\n" + "\n".join(f"  • {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return config
