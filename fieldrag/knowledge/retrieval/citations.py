from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from fieldrag.knowledge.retrieval.ranker import RankedResult

PREVIEW_LENGTH = 150


@dataclass
class Citation:
    rank: int
    document_id: str
    document_type: str
    namespace: str
    label: str


@dataclass
class FormattedResult:
    rank: int
    id: str
    content: str
    type: str
    namespace: str
    source: str
    timestamp: datetime
    similarity: float
    relevance_score: float
    group: str
    citation: Citation
    media_type: Optional[str] = None
    department: Optional[str] = None
    access_level: Optional[str] = None
    file_name: Optional[str] = None


def citation_label(rank: int, document_type: str, namespace: str) -> str:
    return f"[{rank}] {document_type} ({namespace})"


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    if len(content) <= length:
        return content
    return content[:length] + "..."


def format_results(results: Sequence[RankedResult]) -> List[FormattedResult]:
    """Attach 1-based ranks, two-decimal scores and citation labels."""

    formatted: List[FormattedResult] = []
    for rank, item in enumerate(results, start=1):
        document = item.document
        metadata = document.metadata
        citation = Citation(
            rank=rank,
            document_id=document.id,
            document_type=metadata.type.value,
            namespace=metadata.namespace.value,
            label=citation_label(rank, metadata.type.value, metadata.namespace.value),
        )
        formatted.append(
            FormattedResult(
                rank=rank,
                id=document.id,
                content=document.content,
                type=metadata.type.value,
                namespace=metadata.namespace.value,
                source=metadata.source,
                timestamp=metadata.timestamp,
                similarity=round(item.similarity, 2),
                relevance_score=round(item.relevance_score, 2),
                group=item.group,
                citation=citation,
                media_type=metadata.media_type.value if metadata.media_type else None,
                department=metadata.department,
                access_level=metadata.access_level.value if metadata.access_level else None,
                file_name=metadata.file_name,
            )
        )
    return formatted


__all__ = ["Citation", "FormattedResult", "citation_label", "format_results", "preview"]
