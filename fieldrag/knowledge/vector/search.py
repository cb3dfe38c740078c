"""Cosine similarity scoring over in-memory document candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from fieldrag.core.exceptions import DimensionMismatch
from fieldrag.models.document import Document
from fieldrag.utils.validators import require_positive, require_unit_interval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredDocument:
    document: Document
    similarity: float


def cosine_similarity(lhs: Sequence[float], rhs: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 when either has zero magnitude."""

    if len(lhs) != len(rhs):
        raise DimensionMismatch(
            error_code="dimension_mismatch",
            message="Cannot compare vectors of different dimension",
            details={"lhs": len(lhs), "rhs": len(rhs)},
        )
    if not lhs:
        return 0.0
    dot = sum(l * r for l, r in zip(lhs, rhs))
    lhs_norm = sum(l * l for l in lhs) ** 0.5
    rhs_norm = sum(r * r for r in rhs) ** 0.5
    if lhs_norm == 0 or rhs_norm == 0:
        return 0.0
    return dot / (lhs_norm * rhs_norm)


class SimilaritySearch:
    """Score candidates against a query vector, then threshold, order and truncate."""

    def rank(
        self,
        query_vector: Sequence[float],
        candidates: Iterable[Document],
        *,
        threshold: float,
        limit: int,
    ) -> List[ScoredDocument]:
        require_unit_interval(threshold, name="threshold")
        require_positive(limit, name="limit")

        scored: List[ScoredDocument] = []
        skipped = 0
        for document in candidates:
            try:
                similarity = cosine_similarity(query_vector, document.embedding)
            except DimensionMismatch:
                skipped += 1
                continue
            if similarity >= threshold:
                scored.append(ScoredDocument(document=document, similarity=similarity))

        if skipped:
            logger.debug("Skipped %s candidates with mismatched embedding dimension", skipped)

        scored.sort(key=_ordering_key)
        return scored[:limit]


def _ordering_key(item: ScoredDocument):
    return (-item.similarity, -item.document.timestamp.timestamp(), item.document.id)


__all__ = ["ScoredDocument", "SimilaritySearch", "cosine_similarity"]
