"""Natural-language summaries of ranked search results."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from fieldrag.core.config import Settings, settings as default_settings
from fieldrag.knowledge.retrieval.ranker import RankedResult
from fieldrag.utils.llm import LLMClient

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
SYSTEM_PROMPT = (
    "You summarize field-support search results for engineers on site. "
    "Write a short, practical answer grounded only in the numbered results."
)


class SummaryGenerator(Protocol):
    async def summarize(self, query: str, top_results: Sequence[RankedResult]) -> str:
        ...


def _dedupe(values: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(values))


def template_summary(query: str, results: Sequence[RankedResult]) -> str:
    """Deterministic summary used when no model is configured or it fails."""

    if not results:
        return f"No results found for '{query}'."
    namespaces = _dedupe([item.document.namespace.value for item in results])
    types = _dedupe([item.document.metadata.type.value for item in results])
    return (
        f"{len(results)} results found for '{query}' across namespaces "
        f"{', '.join(namespaces)} (types: {', '.join(types)})"
    )


def build_context(results: Sequence[RankedResult]) -> str:
    blocks = []
    for index, item in enumerate(results, start=1):
        snippet = item.document.content[:SNIPPET_LENGTH]
        if len(item.document.content) > SNIPPET_LENGTH:
            snippet += "..."
        blocks.append(f"[{index}] {item.document.metadata.type.value}: {snippet}")
    return "\n\n".join(blocks)


class LLMSummaryGenerator:
    """Summarize the top results with an OpenAI chat model."""

    def __init__(self, llm: LLMClient, *, config: Optional[Settings] = None) -> None:
        config = config or default_settings
        self.llm = llm
        self.model = config.SUMMARY_MODEL
        self.max_tokens = config.SUMMARY_MAX_TOKENS
        self.temperature = config.SUMMARY_TEMPERATURE

    async def summarize(self, query: str, top_results: Sequence[RankedResult]) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Question: {query}\n\nSearch results:\n{build_context(top_results)}\n\n"
                "Summarize the answer to the question using the results above.",
            },
        ]
        return await self.llm.chat(
            messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


def create_summary_generator(config: Optional[Settings] = None) -> Optional[SummaryGenerator]:
    config = config or default_settings
    if not config.ENABLE_SUMMARY:
        return None
    if not config.OPENAI_API_KEY:
        logger.info("OPENAI_API_KEY not configured; search summaries use the built-in template.")
        return None
    return LLMSummaryGenerator(LLMClient(api_key=config.OPENAI_API_KEY), config=config)


__all__ = [
    "LLMSummaryGenerator",
    "SummaryGenerator",
    "build_context",
    "create_summary_generator",
    "template_summary",
]
