from __future__ import annotations

import logging
from typing import Protocol

import openai
from openai import AsyncOpenAI

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class TextGenerationError(Exception):
    pass


class TextGenerationBusy(TextGenerationError):
    pass


class TextGenerator(Protocol):
    async def complete(self, prompt: str) -> str: ...


class OpenAITextGenerator:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model
        self._temperature = temperature

    async def complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature,
            )
        except openai.RateLimitError as exc:
            raise TextGenerationBusy(str(exc)) from exc
        except openai.OpenAIError as exc:
            LOGGER.warning("Text generation failed: %s", str(exc)[:300])
            raise TextGenerationError(str(exc)) from exc

        if not response.choices:
            raise TextGenerationError("Text generation returned no choices")
        return response.choices[0].message.content or ""
