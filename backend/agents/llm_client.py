"""
LLM Client Abstraction with Optional Fallback.

PURPOSE:
========
Provides one interface over any litellm-supported model so the agent
roles (generator, validator, relevance, naming, cleanup, titles) never
call a provider SDK directly.

ARCHITECTURE:
=============
- LLMClient: Abstract base class defining the interface
- LiteLLMClient: litellm `completion` for a single model string
- FallbackLLM: tries a primary client, then a fallback client once

USAGE:
======
    llm = build_llm_client()   # reads LLM_MODEL / LLM_FALLBACK_MODEL
    response = llm.generate(prompt, response_format={"type": "json_object"})
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from litellm import completion

from configs import LLM_FALLBACK_MODEL, LLM_MODEL, LLM_TEMPERATURE, MAX_LLM_TOKENS

logger = logging.getLogger("sandboxsql.llm")

JSON_RESPONSE_FORMAT = {"type": "json_object"}


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    model: str
    tokens_used: int = 0
    fallback_occurred: bool = False
    fallback_reason: Optional[str] = None


class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class RateLimitError(LLMError):
    """Raised when the provider rejects the call for rate or quota reasons."""
    pass


def _classify_error(model: str, error: Exception) -> LLMError:
    text = str(error).lower()
    if "429" in text or "rate limit" in text or "quota" in text:
        return RateLimitError(f"{model} rate limited: {error}")
    return LLMError(f"{model} error: {error}")


# ============================================================
# ABSTRACT LLM CLIENT
# ============================================================

class LLMClient(ABC):
    """
    Abstract base class for LLM providers.

    All clients must implement this interface so they can be swapped
    or chained by FallbackLLM.
    """

    def __init__(self, model: str):
        self.model = model
        self.call_count = 0

    @abstractmethod
    def generate(self, prompt: str, response_format: Optional[Dict[str, Any]] = None) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: The prompt to send to the LLM
            response_format: Provider response format, e.g. JSON mode

        Returns:
            LLMResponse with content and model info

        Raises:
            RateLimitError: When rate limit or quota is exceeded
            LLMError: For other errors
        """
        pass


# ============================================================
# LITELLM CLIENT
# ============================================================

class LiteLLMClient(LLMClient):
    """Single-model client over litellm."""

    def __init__(
        self,
        model: str = LLM_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = MAX_LLM_TOKENS,
    ):
        super().__init__(model)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(self, prompt: str, response_format: Optional[Dict[str, Any]] = None) -> LLMResponse:
        logger.debug("Calling %s [max_tokens=%d]", self.model, self.max_tokens)
        try:
            response = completion(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format=response_format,
            )
        except Exception as e:
            raise _classify_error(self.model, e) from e

        self.call_count += 1
        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)

        return LLMResponse(
            content=content,
            model=self.model,
            tokens_used=getattr(usage, "total_tokens", 0) if usage else 0,
        )


# ============================================================
# FALLBACK CHAIN
# ============================================================

class FallbackLLM(LLMClient):
    """
    Primary client with a single fallback.

    Any LLMError from the primary triggers exactly one fallback attempt;
    a fallback failure propagates.
    """

    def __init__(self, primary: LLMClient, fallback: LLMClient):
        super().__init__(primary.model)
        self.primary = primary
        self.fallback = fallback
        self.stats = {"primary_calls": 0, "fallback_calls": 0}

    def generate(self, prompt: str, response_format: Optional[Dict[str, Any]] = None) -> LLMResponse:
        try:
            response = self.primary.generate(prompt, response_format)
            self.stats["primary_calls"] += 1
            return response
        except LLMError as e:
            reason = str(e)
            logger.warning("Primary model %s failed, trying %s: %s",
                           self.primary.model, self.fallback.model, reason)

        response = self.fallback.generate(prompt, response_format)
        self.stats["fallback_calls"] += 1
        response.fallback_occurred = True
        response.fallback_reason = f"Primary ({self.primary.model}) failed: {reason}"
        return response


def build_llm_client(model: str = LLM_MODEL, fallback_model: str = LLM_FALLBACK_MODEL) -> LLMClient:
    """Client for the configured model, wrapped in FallbackLLM when a fallback is set."""
    primary = LiteLLMClient(model=model)
    if fallback_model and fallback_model != model:
        return FallbackLLM(primary, LiteLLMClient(model=fallback_model))
    return primary
