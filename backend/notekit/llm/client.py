"""Text generation client with OpenAI-compatible integration.

Security: Reads API key from settings/environment only, never hardcoded.
No retries happen here; retrying is the caller's decision.
"""

import asyncio
import logging
import time
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from backend.notekit.config import Settings, get_settings
from backend.notekit.errors import GenerationFailedError
from backend.notekit.utils.logging import StructuredGenerationLogger

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Protocol for text generation backends."""

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        operation: str = "generate",
    ) -> str:
        """Generate text for a prompt.

        Args:
            prompt: User prompt
            system: Optional system prompt
            temperature: Sampling temperature
            max_tokens: Output token budget
            operation: Label used for logging and metrics

        Returns:
            Raw generated text (may be malformed; callers parse defensively)

        Raises:
            GenerationFailedError: If the call errors or times out
        """
        ...


class UnconfiguredTextGenerator:
    """Generator used when no API key is configured; every call fails."""

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        operation: str = "generate",
    ) -> str:
        """Raise GenerationFailedError."""
        raise GenerationFailedError(
            f"No text generation backend configured (operation={operation})"
        )


class OpenAITextGenerator:
    """OpenAI-backed text generator with a bounded timeout."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        *,
        base_url: str | None = None,
        timeout_seconds: float = 30.0,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenAI text generator.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            base_url: Optional base URL for OpenAI-compatible providers
            timeout_seconds: Hard timeout per call
            client: Preconfigured client (tests)
        """
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._log = StructuredGenerationLogger()

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        operation: str = "generate",
    ) -> str:
        """Generate text using the chat completions API."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as e:
            self._log.log_call(
                operation=operation,
                model=self.model,
                outcome="timeout",
                latency_ms=(time.perf_counter() - start) * 1000,
            )
            raise GenerationFailedError(
                f"Text generation timed out after {self.timeout_seconds}s"
            ) from e
        except OpenAIError as e:
            self._log.log_call(
                operation=operation,
                model=self.model,
                outcome="error",
                latency_ms=(time.perf_counter() - start) * 1000,
                error_reason=type(e).__name__,
            )
            raise GenerationFailedError(f"Text generation failed: {e}") from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        self._log.log_call(
            operation=operation,
            model=self.model,
            outcome="success" if text.strip() else "empty",
            latency_ms=(time.perf_counter() - start) * 1000,
        )
        return text


def build_text_generator(settings: Settings) -> TextGenerator:
    """Build the text generator described by settings.

    Returns:
        OpenAITextGenerator if an API key is configured, UnconfiguredTextGenerator otherwise
    """
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info(f"Using OpenAI-compatible text generator (model={settings.openai_model})")
        return OpenAITextGenerator(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    else:
        logger.warning("No OpenAI API key configured, text generation calls will fail")
        return UnconfiguredTextGenerator()


async def get_text_generator() -> TextGenerator:
    """FastAPI dependency returning the configured text generator."""
    return build_text_generator(get_settings())
