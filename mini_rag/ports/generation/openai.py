"""OpenAI chat generation client.

This adapter is optional and requires `openai` package installed.
"""

from __future__ import annotations

import logging
from typing import Any

from ...core.errors import GenerationFailed

logger = logging.getLogger(__name__)


class OpenAIChatGenerator:
    """Sends a rendered prompt as one user message and returns the reply text."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o",
        system_prompt: str | None = None,
        temperature: float | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        try:
            import openai  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "openai is required for OpenAIChatGenerator. "
                "Install with `pip install openai`."
            ) from exc

        self._error_type = openai.OpenAIError
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.system_prompt = system_prompt
        self.temperature = temperature

    def generate(self, prompt: str) -> str:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        options: dict[str, Any] = {"model": self.model, "messages": messages}
        if self.temperature is not None:
            options["temperature"] = self.temperature

        try:
            response = self._client.chat.completions.create(**options)
        except self._error_type as exc:
            logger.debug("chat completion failed", exc_info=True)
            raise GenerationFailed(f"OpenAI chat completion failed: {exc}") from exc

        if not response.choices:
            raise GenerationFailed("OpenAI returned no choices")
        return response.choices[0].message.content or ""
