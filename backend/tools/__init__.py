"""
Tools module.

Contains the per-step SQL tools and the schema introspector.
"""

from .schema_introspector import (
    build_schema_text,
    collect_database_state,
    introspect,
)
from .sql_tools import (
    generate_candidate,
    validate_candidate,
    execute_candidate,
    check_relevance,
    find_forbidden_keyword,
    missing_projection_columns,
)

__all__ = [
    # Schema tools
    "build_schema_text",
    "collect_database_state",
    "introspect",
    # Step tools
    "generate_candidate",
    "validate_candidate",
    "execute_candidate",
    "check_relevance",
    # Deterministic checks
    "find_forbidden_keyword",
    "missing_projection_columns",
]
