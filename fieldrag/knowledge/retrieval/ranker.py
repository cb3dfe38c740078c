"""Weighted fusion of per-namespace-group similarity searches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence

from fieldrag.core.exceptions import GroupSearchFailure
from fieldrag.core.observability import get_tracer
from fieldrag.core.security import RequesterContext, filter_documents
from fieldrag.knowledge.vector.search import ScoredDocument, SimilaritySearch
from fieldrag.models.document import Document, MediaType, Namespace
from fieldrag.utils.monitoring import record_group_failure

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True)
class GroupSpec:
    """One namespace group searched independently and scaled by ``weight``."""

    name: str
    namespaces: FrozenSet[Namespace]
    weight: float
    threshold: float
    limit: int
    media_types: Optional[FrozenSet[MediaType]] = None

    def admits(self, document: Document) -> bool:
        if document.namespace not in self.namespaces:
            return False
        if self.media_types is None:
            return True
        return (document.metadata.media_type or MediaType.TEXT) in self.media_types


@dataclass(frozen=True)
class RankedResult:
    document: Document
    similarity: float
    relevance_score: float
    group: str


@dataclass
class GroupResult:
    name: str
    weight: float
    results: List[RankedResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class FusionOutcome:
    groups: List[GroupResult]
    merged: List[RankedResult]

    @property
    def failed_groups(self) -> List[str]:
        return [group.name for group in self.groups if group.failed]

    def group_counts(self) -> Dict[str, int]:
        return {group.name: len(group.results) for group in self.groups}


def validate_groups(groups: Sequence[GroupSpec]) -> None:
    """Reject duplicate group names and overlapping namespace sets."""

    seen_names: set[str] = set()
    claimed: Dict[Namespace, str] = {}
    for group in groups:
        if group.name in seen_names:
            raise ValueError(f"Duplicate group name: {group.name}")
        seen_names.add(group.name)
        if group.weight < 0:
            raise ValueError(f"Group {group.name} has a negative weight")
        for namespace in group.namespaces:
            owner = claimed.get(namespace)
            if owner is not None:
                raise ValueError(
                    f"Namespace {namespace.value} appears in both {owner} and {group.name}; group namespaces must be disjoint"
                )
            claimed[namespace] = group.name


class FusionRanker:
    """Search each group concurrently, scale by weight, merge into one list."""

    def __init__(self, similarity_search: Optional[SimilaritySearch] = None) -> None:
        self.similarity_search = similarity_search or SimilaritySearch()

    async def fuse(
        self,
        query_vector: Sequence[float],
        groups: Sequence[GroupSpec],
        snapshot: Sequence[Document],
        requester: RequesterContext,
        *,
        limit: int,
        timeout_seconds: Optional[float] = None,
    ) -> FusionOutcome:
        validate_groups(groups)
        if not groups:
            return FusionOutcome(groups=[], merged=[])

        tasks = {
            group.name: asyncio.create_task(self._run_group(group, query_vector, snapshot, requester))
            for group in groups
        }
        done, pending = await asyncio.wait(tasks.values(), timeout=timeout_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        group_results: List[GroupResult] = []
        for group in groups:
            task = tasks[group.name]
            if task in pending:
                failure = GroupSearchFailure(
                    error_code="group_timeout",
                    message=f"Group {group.name} did not finish within {timeout_seconds}s",
                    details={"group": group.name},
                )
                group_results.append(self._failed(group, failure))
                continue
            exc = task.exception()
            if exc is not None:
                failure = GroupSearchFailure(
                    error_code="group_search_failed",
                    message=f"Group {group.name} search failed",
                    details={"group": group.name, "reason": str(exc)},
                )
                group_results.append(self._failed(group, failure))
                continue
            group_results.append(GroupResult(name=group.name, weight=group.weight, results=task.result()))

        return FusionOutcome(groups=group_results, merged=self.merge(group_results, limit=limit))

    async def search_group(
        self,
        group: GroupSpec,
        query_vector: Sequence[float],
        snapshot: Sequence[Document],
        requester: RequesterContext,
    ) -> List[ScoredDocument]:
        """Access-filter the group's candidates, then score them off the event loop."""

        candidates = filter_documents((document for document in snapshot if group.admits(document)), requester)
        if not candidates:
            return []
        return await asyncio.to_thread(
            self.similarity_search.rank,
            query_vector,
            candidates,
            threshold=group.threshold,
            limit=group.limit,
        )

    @staticmethod
    def merge(group_results: Sequence[GroupResult], *, limit: int) -> List[RankedResult]:
        combined = [result for group in group_results for result in group.results]
        combined.sort(
            key=lambda item: (
                -item.relevance_score,
                -item.similarity,
                -item.document.timestamp.timestamp(),
                item.document.id,
            )
        )
        return combined[:limit]

    async def _run_group(
        self,
        group: GroupSpec,
        query_vector: Sequence[float],
        snapshot: Sequence[Document],
        requester: RequesterContext,
    ) -> List[RankedResult]:
        with tracer.start_as_current_span("fieldrag.group_search") as span:
            span.set_attribute("fieldrag.group", group.name)
            scored = await self.search_group(group, query_vector, snapshot, requester)
            span.set_attribute("fieldrag.group.results", len(scored))
        return [
            RankedResult(
                document=item.document,
                similarity=item.similarity,
                relevance_score=item.similarity * group.weight,
                group=group.name,
            )
            for item in scored
        ]

    @staticmethod
    def _failed(group: GroupSpec, failure: GroupSearchFailure) -> GroupResult:
        record_group_failure(group.name)
        logger.warning("%s", failure)
        return GroupResult(name=group.name, weight=group.weight, error=failure.message)


__all__ = [
    "FusionOutcome",
    "FusionRanker",
    "GroupResult",
    "GroupSpec",
    "RankedResult",
    "validate_groups",
]
