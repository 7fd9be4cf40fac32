from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from app.ai.config import AIConfig, load_ai_config, text_generation_enabled
from app.ai.types import ChatMessage, TextGenerationError

logger = logging.getLogger(__name__)


class OpenAIProvider:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 30.0,
        max_retries: int = 2,
    ):
        self._model = model
        key = (api_key or "").strip()
        if not key:
            raise RuntimeError("OPENAI_API_KEY is missing")

        self._client = AsyncOpenAI(
            api_key=key,
            base_url=base_url or None,
            timeout=timeout_s,
            max_retries=max_retries,
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        payload = [{"role": m.role, "content": m.content} for m in messages]

        create_kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": payload,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**create_kwargs)
        except OpenAIError as exc:
            logger.warning("openai_completion_failed model=%s json_mode=%s: %s", self._model, json_mode, exc)
            raise TextGenerationError(str(exc), code="llm_exception") from exc

        content = response.choices[0].message.content if response.choices else ""
        if not content:
            raise TextGenerationError("empty completion", code="empty_response")
        return content


class DisabledTextGenerator:
    """Stands in when no usable API key is configured; never touches the network."""

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        raise TextGenerationError("Text generation is not configured.", code="llm_disabled")


def from_config(cfg: AIConfig | None = None) -> OpenAIProvider | DisabledTextGenerator:
    cfg = cfg or load_ai_config()
    if not text_generation_enabled(cfg):
        return DisabledTextGenerator()
    return OpenAIProvider(
        model=cfg.model,
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        timeout_s=cfg.timeout_s,
        max_retries=cfg.max_retries,
    )
