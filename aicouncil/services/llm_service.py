"""
LLM Service - OpenAI API wrapper for agent chat completions

Provides:
- Single chat completion (system prompt + history + user prompt)
- Catalog model name -> OpenAI model resolution
- Approximate cost estimation from the aggregate token count
- Typed error mapping (no retries, callers decide how to back off)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from aicouncil.config import settings
from aicouncil.services.errors import (
    LLMAuthenticationError,
    LLMConfigurationError,
    LLMRateLimitError,
    LLMServiceError,
    LLMUnavailableError,
)

logger = logging.getLogger(__name__)

EMPTY_COMPLETION = "No response generated."

AVAILABLE_MODELS = [
    {
        "id": "gpt-4",
        "name": "GPT-4",
        "description": "Most capable model, best for complex tasks",
    },
    {
        "id": "gpt-4-turbo",
        "name": "GPT-4 Turbo",
        "description": "Faster and more cost-effective than GPT-4",
    },
]


@dataclass
class LLMResponse:
    """Response from LLM completion"""
    content: str
    model: str
    tokens_used: int
    estimated_cost: float
    finish_reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "estimatedCost": self.estimated_cost,
            "finishReason": self.finish_reason,
        }


def resolve_model(model: Optional[str]) -> str:
    """Map a catalog model name to the OpenAI model id actually called."""
    if not model:
        return settings.default_model
    return settings.model_map.get(model, settings.default_model)


def calculate_cost(model: str, tokens_used: int) -> float:
    """
    Estimate USD cost for a completion.

    The API only gives us a usable aggregate count here, so the per-token
    price is the average of the input and output prices.
    """
    pricing = settings.pricing_per_1k.get(model) or settings.pricing_per_1k["gpt-4"]
    avg_price_per_token = (pricing["input"] + pricing["output"]) / 2 / 1000
    return tokens_used * avg_price_per_token


def validate_api_key(api_key: Optional[str]) -> str:
    if not api_key:
        raise LLMConfigurationError(
            "OPENAI_API_KEY is not defined in environment variables. Please add it to your .env file."
        )
    if api_key == settings.openai_placeholder_key:
        raise LLMConfigurationError(
            "Please replace the placeholder OPENAI_API_KEY in your .env file with your actual OpenAI API key."
        )
    return api_key


def map_openai_error(error: Exception) -> Exception:
    """Translate an openai SDK exception into the service error family."""
    if isinstance(error, openai.AuthenticationError):
        return LLMAuthenticationError("Invalid OpenAI API key. Please check your OPENAI_API_KEY.")
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimitError("OpenAI rate limit exceeded. Please try again in a moment.")
    if isinstance(error, openai.APIConnectionError):
        return LLMUnavailableError("OpenAI service is temporarily unavailable. Please try again later.")
    if isinstance(error, openai.APIStatusError) and error.status_code in (500, 503):
        return LLMUnavailableError("OpenAI service is temporarily unavailable. Please try again later.")
    return LLMServiceError("Failed to generate AI response. Please try again later.")


class LLMService:
    """
    OpenAI chat completion client used by council chat, agent tests and
    recommendations.

    The underlying AsyncOpenAI client is created on first use, so a missing
    key only fails the calls that need it.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._client = client
        self.default_temperature = settings.temperature
        self.max_tokens = settings.llm_max_tokens

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=validate_api_key(self._api_key))
            logger.info("[LLM] OpenAI client initialized")
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Optional[List[Dict[str, str]]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            system_prompt: Agent's system prompt
            user_prompt: The new user-turn prompt
            history: Prior role-tagged messages, oldest first
            model: Catalog model name (resolved through settings.model_map)
            temperature: Sampling temperature

        Returns:
            LLMResponse with content, resolved model, tokens and estimated cost
        """
        actual_model = resolve_model(model)
        temperature = temperature if temperature is not None else self.default_temperature

        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in (history or []))
        messages.append({"role": "user", "content": user_prompt})

        client = self.client
        try:
            response = await client.chat.completions.create(
                model=actual_model,
                messages=messages,
                temperature=temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            logger.error(f"[LLM] Completion failed (model={actual_model}): {e}")
            raise map_openai_error(e) from e

        choice = response.choices[0]
        tokens_used = response.usage.total_tokens if response.usage else 0

        return LLMResponse(
            content=choice.message.content or EMPTY_COMPLETION,
            model=actual_model,
            tokens_used=tokens_used,
            estimated_cost=calculate_cost(actual_model, tokens_used),
            finish_reason=choice.finish_reason or "unknown",
        )

    async def test_connection(self) -> bool:
        """Cheap round trip used by health checks."""
        try:
            await self.client.chat.completions.create(
                model=settings.default_model,
                messages=[{"role": "user", "content": "Hello"}],
                max_tokens=5,
            )
        except (openai.OpenAIError, LLMConfigurationError) as e:
            logger.warning(f"[LLM] Connection test failed: {e}")
            return False
        return True

    @staticmethod
    def available_models() -> List[Dict[str, str]]:
        return list(AVAILABLE_MODELS)


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get the LLM service singleton."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
