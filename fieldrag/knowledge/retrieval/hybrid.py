from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence

from fieldrag.core.config import Settings, settings as default_settings
from fieldrag.core.exceptions import EmbeddingFailure, QueryEmbeddingFailure, ValidationError
from fieldrag.core.observability import get_tracer
from fieldrag.core.security import RequesterContext
from fieldrag.knowledge.retrieval.ranker import FusionOutcome, FusionRanker, GroupSpec, RankedResult
from fieldrag.knowledge.retrieval.summary import SummaryGenerator, create_summary_generator, template_summary
from fieldrag.knowledge.store.document_store import DocumentStore
from fieldrag.knowledge.vector.embeddings import EmbeddingProvider
from fieldrag.models.document import MediaType, Namespace
from fieldrag.models.search import SearchConfig, SearchMode
from fieldrag.utils.monitoring import observe_search
from fieldrag.utils.validators import require_non_empty

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

COMPANY_NAMESPACES = frozenset({Namespace.KNOWLEDGE, Namespace.PROJECTS, Namespace.SECURITY})


@dataclass
class SearchStats:
    total_results: int
    group_counts: Dict[str, int]
    elapsed_ms: float
    has_results: bool
    failed_groups: List[str] = field(default_factory=list)


@dataclass
class HybridSearchResult:
    query: str
    mode: SearchMode
    groups: Dict[str, List[RankedResult]]
    merged: List[RankedResult]
    stats: SearchStats
    summary: Optional[str] = None


@dataclass(frozen=True)
class ResolvedConfig:
    """Per-call configuration with service defaults filled in."""

    log_weight: float
    knowledge_weight: float
    internal_weight: float
    include_internal: bool
    threshold: float
    limit: int
    media_types: FrozenSet[MediaType]
    timeout_seconds: float
    summarize: bool


class HybridSearchOrchestrator:
    """Public entry point: resolve a mode into groups, fuse, optionally summarize."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        embedding_provider: EmbeddingProvider,
        ranker: Optional[FusionRanker] = None,
        summary_generator: Optional[SummaryGenerator] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.ranker = ranker or FusionRanker()
        self.summary_generator = summary_generator
        self.config = config or default_settings

    def resolve_config(self, search_config: Optional[SearchConfig] = None) -> ResolvedConfig:
        search_config = search_config or SearchConfig()
        defaults = self.config

        def pick(value, fallback):
            return fallback if value is None else value

        return ResolvedConfig(
            log_weight=pick(search_config.log_weight, defaults.DEFAULT_LOG_WEIGHT),
            knowledge_weight=pick(search_config.knowledge_weight, defaults.DEFAULT_KNOWLEDGE_WEIGHT),
            internal_weight=pick(search_config.internal_weight, defaults.DEFAULT_INTERNAL_WEIGHT),
            include_internal=search_config.include_internal,
            threshold=pick(search_config.threshold, defaults.DEFAULT_THRESHOLD),
            limit=pick(search_config.limit, defaults.DEFAULT_LIMIT),
            media_types=frozenset(search_config.media_types or MediaType),
            timeout_seconds=pick(search_config.timeout_seconds, defaults.SEARCH_TIMEOUT_SECONDS),
            summarize=search_config.summarize and defaults.ENABLE_SUMMARY,
        )

    def resolve_groups(self, mode: SearchMode, resolved: ResolvedConfig) -> List[GroupSpec]:
        def group(name: str, namespaces: Sequence[Namespace], weight: float, media_types=None) -> GroupSpec:
            return GroupSpec(
                name=name,
                namespaces=frozenset(namespaces),
                weight=weight,
                threshold=resolved.threshold,
                limit=resolved.limit,
                media_types=media_types,
            )

        if mode is SearchMode.LOGS:
            return [group("logs", [Namespace.LOGS], 1.0)]
        if mode is SearchMode.KNOWLEDGE:
            return [group("knowledge", [Namespace.KNOWLEDGE, Namespace.PROJECTS], 1.0)]
        if mode is SearchMode.INTERNAL:
            return [group("internal", [Namespace.INTERNAL], 1.0, resolved.media_types)]
        if mode is SearchMode.SECURITY:
            return [
                group("security", [Namespace.SECURITY], resolved.knowledge_weight),
                group("logs", [Namespace.LOGS], resolved.log_weight),
            ]

        groups = [
            group("logs", [Namespace.LOGS], resolved.log_weight),
            group(
                "knowledge",
                [Namespace.KNOWLEDGE, Namespace.SECURITY, Namespace.PROJECTS],
                resolved.knowledge_weight,
            ),
        ]
        if resolved.include_internal:
            groups.append(group("internal", [Namespace.INTERNAL], resolved.internal_weight, resolved.media_types))
        return groups

    async def search(
        self,
        query: str,
        *,
        mode: SearchMode = SearchMode.HYBRID,
        requester: Optional[RequesterContext] = None,
        config: Optional[SearchConfig] = None,
    ) -> HybridSearchResult:
        resolved = self.resolve_config(config)
        groups = self.resolve_groups(mode, resolved)
        return await self._execute(query, mode=mode, groups=groups, requester=requester, resolved=resolved)

    async def search_internal_knowledge(
        self,
        query: str,
        *,
        requester: Optional[RequesterContext] = None,
        media_types: Optional[Sequence[MediaType]] = None,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[RankedResult]:
        config = SearchConfig(
            threshold=threshold,
            limit=limit,
            media_types=list(media_types or MediaType),
            summarize=False,
        )
        result = await self.search(query, mode=SearchMode.INTERNAL, requester=requester, config=config)
        return result.merged

    async def search_company_knowledge(
        self,
        query: str,
        *,
        requester: Optional[RequesterContext] = None,
        limit: int = 5,
    ) -> List[RankedResult]:
        """Search curated company knowledge with a stricter relevance cutoff."""

        resolved = self.resolve_config(
            SearchConfig(threshold=self.config.COMPANY_KNOWLEDGE_THRESHOLD, limit=limit, summarize=False)
        )
        groups = [
            GroupSpec(
                name="company",
                namespaces=COMPANY_NAMESPACES,
                weight=1.0,
                threshold=resolved.threshold,
                limit=resolved.limit,
            )
        ]
        result = await self._execute(
            query,
            mode=SearchMode.KNOWLEDGE,
            groups=groups,
            requester=requester,
            resolved=resolved,
        )
        return result.merged

    async def _execute(
        self,
        query: str,
        *,
        mode: SearchMode,
        groups: List[GroupSpec],
        requester: Optional[RequesterContext],
        resolved: ResolvedConfig,
    ) -> HybridSearchResult:
        try:
            query = require_non_empty(query)
        except ValueError as exc:
            raise ValidationError("Search query must not be empty") from exc

        requester = requester or RequesterContext()
        started = time.perf_counter()
        with tracer.start_as_current_span("fieldrag.hybrid_search") as span:
            span.set_attribute("fieldrag.mode", mode.value)
            span.set_attribute("fieldrag.groups", len(groups))
            try:
                query_vector = await self._embed_query(query)
                outcome = await self.ranker.fuse(
                    query_vector,
                    groups,
                    self.store.snapshot(),
                    requester,
                    limit=resolved.limit,
                    timeout_seconds=resolved.timeout_seconds,
                )
            except Exception:
                observe_search(mode.value, time.perf_counter() - started, failed=True)
                raise

            summary = await self._summarize(query, outcome.merged) if resolved.summarize else None
            elapsed = time.perf_counter() - started
            span.set_attribute("fieldrag.results", len(outcome.merged))

        observe_search(mode.value, elapsed)
        stats = self._build_stats(outcome, elapsed)
        logger.info(
            "Search mode=%s returned %s results in %.1fms (failed groups: %s)",
            mode.value,
            stats.total_results,
            stats.elapsed_ms,
            ", ".join(stats.failed_groups) or "none",
        )
        return HybridSearchResult(
            query=query,
            mode=mode,
            groups={group.name: group.results for group in outcome.groups},
            merged=outcome.merged,
            stats=stats,
            summary=summary,
        )

    async def _embed_query(self, query: str) -> List[float]:
        try:
            return await self.embedding_provider.generate(query)
        except EmbeddingFailure as exc:
            raise QueryEmbeddingFailure(
                error_code="query_embedding_failed",
                message="Unable to embed search query",
                details={"reason": exc.message},
            ) from exc

    async def _summarize(self, query: str, merged: List[RankedResult]) -> str:
        if not merged or self.summary_generator is None:
            return template_summary(query, merged)
        top_results = merged[: self.config.SUMMARY_CONTEXT_DOCUMENTS]
        try:
            return await self.summary_generator.summarize(query, top_results)
        except Exception as exc:
            logger.warning("Summary generation failed; using template summary: %s", exc)
            return template_summary(query, merged)

    @staticmethod
    def _build_stats(outcome: FusionOutcome, elapsed_seconds: float) -> SearchStats:
        total = len(outcome.merged)
        return SearchStats(
            total_results=total,
            group_counts=outcome.group_counts(),
            elapsed_ms=round(elapsed_seconds * 1000, 2),
            has_results=total > 0,
            failed_groups=outcome.failed_groups,
        )


def create_hybrid_search_engine(
    *,
    store: DocumentStore,
    embedding_provider: Optional[EmbeddingProvider] = None,
    ranker: Optional[FusionRanker] = None,
    summary_generator: Optional[SummaryGenerator] = None,
    config: Optional[Settings] = None,
) -> HybridSearchOrchestrator:
    config = config or default_settings
    return HybridSearchOrchestrator(
        store=store,
        embedding_provider=embedding_provider or store.embedding_provider,
        ranker=ranker,
        summary_generator=summary_generator if summary_generator is not None else create_summary_generator(config),
        config=config,
    )


__all__ = [
    "HybridSearchOrchestrator",
    "HybridSearchResult",
    "ResolvedConfig",
    "SearchStats",
    "create_hybrid_search_engine",
]
