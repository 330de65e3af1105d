from __future__ import annotations

from typing import Dict, List, Optional, Protocol, runtime_checkable

import groq
from groq import AsyncGroq
from loguru import logger

from fitgen.config import Settings, get_settings
from fitgen.models.context import CompiledPrompt, GenerationParams


class LLMError(RuntimeError):
    pass


class UnparseableResponseError(LLMError):
    """Raw model output could not be turned into the expected structure."""


@runtime_checkable
class CompletionClient(Protocol):
    """Single-shot, schema-free text generation endpoint."""

    model: str

    async def complete(self, prompt: CompiledPrompt, params: GenerationParams) -> str:
        ...


def params_from_settings(settings: Settings) -> GenerationParams:
    return GenerationParams(
        temperature=settings.GROQ_TEMPERATURE,
        top_p=settings.GROQ_TOP_P,
        max_tokens=settings.GROQ_MAX_TOKENS,
        json_mode=settings.GROQ_JSON_MODE,
    )


class GroqCompletionClient:
    """Strict Groq client: uses exactly the model in GROQ_MODEL, no aliasing, no SDK-level retries.

    Deadlines and retries belong to the caller; cancelling the awaiting task aborts the
    underlying HTTP request.
    """

    def __init__(self, api_key: str, model: str, *, http_timeout: Optional[float] = None) -> None:
        if not api_key:
            raise LLMError("GROQ_API_KEY is not set; cannot perform LLM call.")
        if not model:
            raise LLMError("GROQ_MODEL is not set; cannot perform LLM call.")
        self.model = model.strip()
        self._client = AsyncGroq(api_key=api_key, max_retries=0, timeout=http_timeout)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GroqCompletionClient":
        s = settings or get_settings()
        # the SDK timeout only backstops the per-attempt deadline
        return cls(s.GROQ_API_KEY or "", s.GROQ_MODEL, http_timeout=s.GENERATION_ATTEMPT_TIMEOUT_S * 2)

    async def complete(self, prompt: CompiledPrompt, params: GenerationParams) -> str:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": prompt.user},
        ]
        kwargs = {}
        if params.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=params.temperature,
                top_p=params.top_p,
                max_tokens=params.max_tokens,
                **kwargs,
            )
        except groq.APIError as e:
            raise LLMError(f"LLM call failed (model='{self.model}'): {e}") from e
        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise LLMError("Empty response content from LLM.")
        logger.debug("Groq completion received", model=self.model, chars=len(content))
        return content

    async def aclose(self) -> None:
        await self._client.close()
