"""LLM provider adapters used by the oracles."""

import logging

import anthropic
from openai import AsyncOpenAI

from ..settings import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_DEFAULT_MODEL,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    OPENROUTER_DEFAULT_MODEL,
)
from .protocols import LLMProvider

logger = logging.getLogger(__name__)

# Oracle calls are bounded by the caller's timeout; the SDK must not retry for long.
ORACLE_MAX_RETRIES = 1
ORACLE_HTTP_TIMEOUT = 30.0


class OpenRouterAdapter(LLMProvider):
    """
    Adapter for the OpenRouter API (OpenAI-compatible).

    Usage:
        async with OpenRouterAdapter() as llm:
            response = await llm.complete("Bewerte die Treffer...", json_mode=True)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ):
        """
        Initialize the OpenRouter adapter.

        Args:
            api_key: Optional API key. If not provided, uses OPENROUTER_API_KEY env var.
            model: Model to use. Defaults to OPENROUTER_DEFAULT_MODEL.
            base_url: API base URL. Defaults to OPENROUTER_BASE_URL.
        """
        self.api_key = api_key or OPENROUTER_API_KEY
        self.model = model or OPENROUTER_DEFAULT_MODEL
        self.base_url = base_url or OPENROUTER_BASE_URL
        self._client: AsyncOpenAI | None = None

        if not self.api_key:
            raise ValueError(
                "OpenRouter API key required. Set OPENROUTER_API_KEY in .env"
            )

        logger.info(f"OpenRouter adapter initialized with model: {self.model}")

    async def __aenter__(self) -> "OpenRouterAdapter":
        self._client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            max_retries=ORACLE_MAX_RETRIES,
            timeout=ORACLE_HTTP_TIMEOUT,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with' context manager."
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """Answer one prompt through the chat completions endpoint."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug(f"Completing prompt with {self.model} (json_mode={json_mode})")
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )

        result = response.choices[0].message.content or ""
        logger.debug(f"Completion received ({len(result)} chars), usage: {response.usage}")
        return result


class AnthropicAdapter(LLMProvider):
    """
    Adapter for the Anthropic API (direct).

    Usage:
        async with AnthropicAdapter() as llm:
            response = await llm.complete("Bewerte die Treffer...")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ):
        """
        Initialize the Anthropic adapter.

        Args:
            api_key: Optional API key. If not provided, uses ANTHROPIC_API_KEY env var.
            model: Model to use. Defaults to ANTHROPIC_DEFAULT_MODEL.
        """
        self.api_key = api_key or ANTHROPIC_API_KEY
        self.model = model or ANTHROPIC_DEFAULT_MODEL
        self._client: anthropic.AsyncAnthropic | None = None

        if not self.api_key:
            raise ValueError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY in .env"
            )

        logger.info(f"Anthropic adapter initialized with model: {self.model}")

    async def __aenter__(self) -> "AnthropicAdapter":
        self._client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            max_retries=ORACLE_MAX_RETRIES,
            timeout=ORACLE_HTTP_TIMEOUT,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with' context manager."
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """Generate a completion for a simple prompt.

        The Messages API has no JSON switch; ``json_mode`` appends an
        instruction to the system prompt instead.
        """
        system = system_prompt or ""
        if json_mode:
            system = f"{system}\n\nAntworte ausschließlich mit einem JSON-Objekt.".strip()
        kwargs = {"system": system} if system else {}

        logger.debug(f"Completing prompt with {self.model} (json_mode={json_mode})")
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or 1024,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            **kwargs,
        )

        result = "".join(block.text for block in message.content if block.type == "text")
        logger.debug(f"Usage: input={message.usage.input_tokens}, output={message.usage.output_tokens}")
        return result
