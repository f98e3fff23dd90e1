"""Config module initialization."""
from .settings import (
    # Paths
    BASE_DIR,
    UPLOAD_DIR,
    SANDBOX_DIR,
    # LLM configuration
    LLM_MODEL,
    LLM_FALLBACK_MODEL,
    LLM_TEMPERATURE,
    MAX_LLM_TOKENS,
    # Agent behaviour
    ALLOW_MUTATING_QUERIES,
    STOP_ON_MISSING_COLUMNS,
    MAX_ITERATIONS,
    FORBIDDEN_KEYWORDS,
    ALL_COLUMNS_ALLOWED,
    # Ingestion
    MAX_UPLOAD_FILES,
    CLEANING_SAMPLE_ROWS,
    SUPPORTED_DELIMITED_EXTENSIONS,
    SQLITE_EXTENSIONS,
    MIN_TABLE_NAME_LENGTH,
    MAX_TABLE_NAME_LENGTH,
    # System
    LOG_LEVEL,
    VERBOSE,
    ALLOWED_ORIGINS,
    # Validation
    ConfigurationError,
    validate_configuration,
)

__all__ = [
    "BASE_DIR",
    "UPLOAD_DIR",
    "SANDBOX_DIR",
    "LLM_MODEL",
    "LLM_FALLBACK_MODEL",
    "LLM_TEMPERATURE",
    "MAX_LLM_TOKENS",
    "ALLOW_MUTATING_QUERIES",
    "STOP_ON_MISSING_COLUMNS",
    "MAX_ITERATIONS",
    "FORBIDDEN_KEYWORDS",
    "ALL_COLUMNS_ALLOWED",
    "MAX_UPLOAD_FILES",
    "CLEANING_SAMPLE_ROWS",
    "SUPPORTED_DELIMITED_EXTENSIONS",
    "SQLITE_EXTENSIONS",
    "MIN_TABLE_NAME_LENGTH",
    "MAX_TABLE_NAME_LENGTH",
    "LOG_LEVEL",
    "VERBOSE",
    "ALLOWED_ORIGINS",
    "ConfigurationError",
    "validate_configuration",
]
