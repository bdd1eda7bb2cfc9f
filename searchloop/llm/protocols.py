"""Protocol for the LLM providers backing the oracles."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LLMProvider(Protocol):
    """An LLM that turns one prompt into one short, JSON-shaped answer."""

    model: str

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """
        Answer a single prompt.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            temperature: Sampling temperature
            max_tokens: Answer length limit
            json_mode: Ask the backend for a JSON object, where supported

        Returns:
            The answer text
        """
        ...
