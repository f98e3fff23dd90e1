"""
Agents module.

Everything that talks to a language model lives here:
- llm_client: litellm-backed clients with an optional fallback model
- json_utils: JSON extraction from model output
- prompts: one template per role
- agent_model: the AgentModel interface and its LLM implementation
"""

from .llm_client import (
    LLMClient,
    LLMResponse,
    LLMError,
    RateLimitError,
    LiteLLMClient,
    FallbackLLM,
    build_llm_client,
    JSON_RESPONSE_FORMAT,
)
from .json_utils import (
    JSONExtractionError,
    extract_first_json_block,
    safe_parse_llm_json,
    strip_code_fences,
)
from .agent_model import AgentModel, LLMAgentModel, parse_generation_output

__all__ = [
    # LLM clients
    "LLMClient",
    "LLMResponse",
    "LLMError",
    "RateLimitError",
    "LiteLLMClient",
    "FallbackLLM",
    "build_llm_client",
    "JSON_RESPONSE_FORMAT",
    # JSON parsing
    "JSONExtractionError",
    "extract_first_json_block",
    "safe_parse_llm_json",
    "strip_code_fences",
    # Roles
    "AgentModel",
    "LLMAgentModel",
    "parse_generation_output",
]
