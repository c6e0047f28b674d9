"""
WORDMAP INTELLIGENCE - Structured LLM Interface

Provides a strictly typed, async interface for LLM generation.
Enforces msgspec schema compliance via JSON Mode + Validation.

Design:
- JSON Mode (Prompt) -> Output -> msgspec.decode
- Uses msgspec.json.schema() for ground-truth prompt generation.
- Agnostic to underlying provider (OpenAI, Anthropic, etc.) via LiteLLM.

Architecture:
    WordGenerator
        |
        v
    await StructuredLLM.generate(system, user, schema=T)
        |
        v
    [Inject JSON Schema into System Prompt]
        |
        v
    litellm.acompletion(response_format=json_object)
        |
        v
    [msgspec.json.decode() - Strict Validation]
        |
        v
    Return (T, TokenUsage)  (or retry on ValidationError)
"""
import os
import json
import logging
import msgspec
from typing import Type, TypeVar, Optional, Tuple
import litellm
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from core.schemas import TokenUsage

logger = logging.getLogger(__name__)

# Generic type for return values
T = TypeVar("T", bound=msgspec.Struct)

DEFAULT_MODEL = "openai/gpt-4o-mini"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM failures."""
    pass


class ValidationError(LLMError):
    """Raised when LLM output does not match the required schema."""
    pass


class RateLimitError(LLMError):
    """Raised when rate limited by the provider."""
    pass


# =============================================================================
# STRUCTURED LLM
# =============================================================================

class StructuredLLM:
    """
    A wrapper around LiteLLM that enforces structured outputs.

    1. Inject msgspec-generated JSON Schema into system prompt
    2. Use response_format=json_object where supported
    3. Validate response with msgspec.json.decode()
    4. Retry on validation failures (up to max_attempts)

    Usage:
        llm = StructuredLLM(model="openai/gpt-4o-mini")

        class MyOutput(msgspec.Struct):
            name: str
            value: int

        result, usage = await llm.generate(
            system_prompt="You are a data extractor.",
            user_prompt="Extract the name and value from: 'Widget costs 42'",
            schema=MyOutput
        )
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        max_tokens: int = 500,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
    ):
        """
        Initialize the structured LLM.

        Args:
            model: LiteLLM model identifier (e.g., "openai/gpt-4o-mini")
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response
            max_attempts: Attempts per call when the output fails validation
            retry_wait: Exponential backoff multiplier in seconds (0 disables waiting)
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait

        # Disable LiteLLM's verbose logging
        litellm.set_verbose = False

    def _get_schema_prompt(self, schema: Type[msgspec.Struct]) -> str:
        """Generate a JSON Schema (Draft 2020-12) from the msgspec Struct."""
        return json.dumps(msgspec.json.schema(schema), indent=2)

    def _build_system_prompt(self, base_prompt: str, schema: Type[msgspec.Struct]) -> str:
        """Build the full system prompt with schema injection."""
        schema_json = self._get_schema_prompt(schema)

        return f"""{base_prompt}

# OUTPUT CONTRACT
You ONLY output JSON.

Your output must strictly adhere to this JSON Schema:
```json
{schema_json}
```

RULES:
1. Output ONLY valid JSON - no markdown, no explanation, no preamble.
2. All required fields must be present.
3. Types must match exactly (strings are strings, numbers are numbers).
"""

    def _clean_response(self, content: Optional[str]) -> str:
        """Clean LLM response of common formatting issues."""
        content = (content or "").strip()

        # Remove markdown code blocks
        if content.startswith("```json"):
            content = content[7:]
        elif content.startswith("```"):
            content = content[3:]

        if content.endswith("```"):
            content = content[:-3]

        return content.strip()

    def _extract_usage(self, response) -> TokenUsage:
        usage = getattr(response, "usage", None)
        if not usage:
            return TokenUsage(model=self.model)
        return TokenUsage(
            input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            model=self.model,
        )

    async def _generate_once(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[T],
    ) -> Tuple[T, TokenUsage]:
        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                # Ignore unsupported params for provider flexibility
                drop_params=True,
            )
        except litellm.RateLimitError as e:
            raise RateLimitError(f"Rate limited: {e}") from e
        except Exception as e:
            # API outage, network error, etc.
            raise LLMError(f"LLM generation failed: {e}") from e

        content = self._clean_response(response.choices[0].message.content)
        usage = self._extract_usage(response)

        try:
            result = msgspec.json.decode(content.encode("utf-8"), type=schema)
        except msgspec.ValidationError as e:
            raise ValidationError(f"Schema validation failed: {e}") from e
        except msgspec.DecodeError as e:
            raise ValidationError(f"JSON decode failed: {e}") from e

        return result, usage

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[T],
    ) -> Tuple[T, TokenUsage]:
        """
        Generate a structured response matching the provided schema.

        Args:
            system_prompt: The base system prompt (role, context, instructions)
            user_prompt: The specific user request
            schema: A msgspec.Struct subclass defining the expected output

        Returns:
            (instance of the schema type, token usage of the successful call)

        Raises:
            ValidationError: If schema validation fails on every attempt
            RateLimitError: If rate limited by provider
            LLMError: If the LLM API call fails
        """
        full_system_prompt = self._build_system_prompt(system_prompt, schema)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait, max=10),
            retry=retry_if_exception_type(ValidationError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        f"Retrying {schema.__name__} generation "
                        f"(attempt {attempt.retry_state.attempt_number}/{self.max_attempts})"
                    )
                return await self._generate_once(full_system_prompt, user_prompt, schema)


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_llm_instance: Optional[StructuredLLM] = None


def get_llm() -> StructuredLLM:
    """
    Get the global LLM instance.

    Configurable via environment variables:
    - WORDMAP_LLM_MODEL: Model identifier (default: openai/gpt-4o-mini)
    - WORDMAP_LLM_TEMPERATURE: Temperature (default: 0.0)

    Note: LiteLLM requires provider prefix (anthropic/, openai/, gemini/, etc.)
    """
    global _llm_instance
    if _llm_instance is None:
        model = os.getenv("WORDMAP_LLM_MODEL", DEFAULT_MODEL)
        temperature = float(os.getenv("WORDMAP_LLM_TEMPERATURE", "0.0"))
        _llm_instance = StructuredLLM(model=model, temperature=temperature)
    return _llm_instance


def set_llm(llm: Optional[StructuredLLM]) -> None:
    """
    Set the global LLM instance.

    Useful for testing with mock LLMs or different configurations.
    """
    global _llm_instance
    _llm_instance = llm


def reset_llm() -> None:
    """Reset the global LLM instance (forces re-initialization on next get_llm())."""
    global _llm_instance
    _llm_instance = None
