"""Utilities for interacting with LLM providers."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from fieldrag.core.config import settings

logger = logging.getLogger(__name__)


class LLMClient:
    """Thin wrapper over the OpenAI chat completions API."""

    def __init__(self, *, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self.openai = client or AsyncOpenAI(api_key=api_key or settings.OPENAI_API_KEY, max_retries=0)

    async def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        model = model or settings.SUMMARY_MODEL
        response = await self.openai.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens or settings.SUMMARY_MAX_TOKENS,
            temperature=settings.SUMMARY_TEMPERATURE if temperature is None else temperature,
        )
        content = response.choices[0].message.content
        if not content:
            raise RuntimeError(f"{model} returned an empty completion")
        return content.strip()


__all__ = ["LLMClient"]
