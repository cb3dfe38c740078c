"""Service facade wiring the store, sinks and hybrid search together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from fieldrag.core.config import Settings, settings as default_settings
from fieldrag.core.security import RequesterContext
from fieldrag.knowledge.retrieval.hybrid import HybridSearchOrchestrator, HybridSearchResult, create_hybrid_search_engine
from fieldrag.knowledge.retrieval.ranker import RankedResult
from fieldrag.knowledge.retrieval.samples import seed_sample_corpus
from fieldrag.knowledge.retrieval.summary import SummaryGenerator
from fieldrag.knowledge.store.document_store import (
    DocumentStore,
    MigrationReport,
    NamespaceStats,
    StoreStats,
    UserStats,
)
from fieldrag.knowledge.store.sinks import DurableSink, FanOutWriter, build_sinks
from fieldrag.knowledge.vector.embeddings import EmbeddingProvider, create_embedding_provider
from fieldrag.models.document import MediaType, Namespace
from fieldrag.models.search import SearchConfig, SearchMode
from fieldrag.utils.audit import AuditLogger, audit_log, audit_logger as default_audit_logger

logger = logging.getLogger(__name__)


@dataclass
class ServiceStats:
    store: StoreStats
    namespaces: Dict[str, NamespaceStats] = field(default_factory=dict)
    embedding_provider: str = ""
    embedding_dimensions: int = 0


class RetrievalService:
    """Public retrieval API consumed by the HTTP adapter and the CLI."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        engine: HybridSearchOrchestrator,
        config: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.config = config or default_settings
        self.audit_logger = audit_logger or default_audit_logger

    async def startup(self) -> None:
        restored = await self.store.load_from_sinks()
        if self.config.SEED_SAMPLE_DATA and self.store.count() == 0:
            await seed_sample_corpus(self.store)
        logger.info("Retrieval service ready with %s documents (%s restored)", self.store.count(), restored)

    async def shutdown(self) -> None:
        await self.store.writer.drain()
        for sink in self.store.writer.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                await close()

    @audit_log
    async def search(
        self,
        query: str,
        *,
        mode: SearchMode = SearchMode.HYBRID,
        requester: Optional[RequesterContext] = None,
        config: Optional[SearchConfig] = None,
    ) -> HybridSearchResult:
        return await self.engine.search(query, mode=mode, requester=requester, config=config)

    @audit_log
    async def search_internal_knowledge(
        self,
        query: str,
        *,
        requester: Optional[RequesterContext] = None,
        media_types: Optional[Sequence[MediaType]] = None,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[RankedResult]:
        return await self.engine.search_internal_knowledge(
            query,
            requester=requester,
            media_types=media_types,
            threshold=threshold,
            limit=limit,
        )

    @audit_log
    async def search_company_knowledge(
        self,
        query: str,
        *,
        requester: Optional[RequesterContext] = None,
        limit: int = 5,
    ) -> List[RankedResult]:
        return await self.engine.search_company_knowledge(query, requester=requester, limit=limit)

    @audit_log
    async def add_document(
        self,
        content: str,
        *,
        metadata: Mapping[str, Any] | Any,
        requester: Optional[RequesterContext] = None,
    ) -> str:
        return await self.store.add(content, metadata)

    @audit_log
    async def add_internal_knowledge(
        self,
        content: str,
        *,
        metadata: Mapping[str, Any] | Any,
        requester: Optional[RequesterContext] = None,
    ) -> str:
        return await self.store.add_internal_knowledge(content, metadata)

    def get_stats(self) -> ServiceStats:
        return ServiceStats(
            store=self.store.stats(),
            namespaces={namespace.value: self.store.namespace_stats(namespace) for namespace in Namespace},
            embedding_provider=getattr(self.engine.embedding_provider, "name", "custom"),
            embedding_dimensions=self.engine.embedding_provider.dimensions,
        )

    def user_stats(self, user_id: str) -> UserStats:
        return self.store.user_stats(user_id)

    @audit_log
    async def cleanup(self, *, days_to_keep: Optional[int] = None) -> int:
        return await self.store.cleanup(days_to_keep if days_to_keep is not None else self.config.RETENTION_DAYS)

    @audit_log
    async def migrate_documents(
        self,
        records: Iterable[Mapping[str, Any]],
        *,
        target_namespace: Namespace,
    ) -> MigrationReport:
        return await self.store.migrate_documents(records, target_namespace)

    async def seed_samples(self, *, user_id: Optional[str] = None) -> int:
        return await seed_sample_corpus(self.store, user_id=user_id)


def build_retrieval_service(
    config: Optional[Settings] = None,
    *,
    embedding_provider: Optional[EmbeddingProvider] = None,
    sinks: Optional[Sequence[DurableSink]] = None,
    summary_generator: Optional[SummaryGenerator] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> RetrievalService:
    """Construct the store once and inject it into every collaborator."""

    config = config or default_settings
    provider = embedding_provider or create_embedding_provider(config)
    writer = FanOutWriter(build_sinks(config) if sinks is None else sinks)
    store = DocumentStore(provider, writer=writer)
    engine = create_hybrid_search_engine(
        store=store,
        embedding_provider=provider,
        summary_generator=summary_generator,
        config=config,
    )
    logger.info(
        "Retrieval service built with %s embeddings and sinks: %s",
        getattr(provider, "name", type(provider).__name__),
        ", ".join(sink.name for sink in writer.sinks) or "none",
    )
    return RetrievalService(store=store, engine=engine, config=config, audit_logger=audit_logger)


__all__ = ["RetrievalService", "ServiceStats", "build_retrieval_service"]
