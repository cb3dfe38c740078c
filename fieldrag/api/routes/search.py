"""Search, ingestion and maintenance endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt

from fieldrag.api.dependencies import get_requester, get_retrieval_service
from fieldrag.core.security import RequesterContext
from fieldrag.knowledge.retrieval.citations import format_results, preview
from fieldrag.knowledge.retrieval.hybrid import HybridSearchResult
from fieldrag.knowledge.retrieval.ranker import RankedResult
from fieldrag.knowledge.service import RetrievalService
from fieldrag.models.document import DocumentMetadataInput, MediaType, Namespace
from fieldrag.models.search import SearchConfig, SearchMode

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1)
    mode: SearchMode = SearchMode.HYBRID
    config: SearchConfig = Field(default_factory=SearchConfig)


class SearchResultModel(BaseModel):
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
    citation: str
    media_type: Optional[str] = None
    department: Optional[str] = None
    access_level: Optional[str] = None
    file_name: Optional[str] = None


class CategoryEntry(BaseModel):
    id: str
    content: str
    similarity: float
    type: str
    timestamp: datetime


class SearchStatsModel(BaseModel):
    total_results: int
    group_counts: Dict[str, int]
    elapsed_ms: float
    has_results: bool
    failed_groups: List[str]
    mode: SearchMode


class SearchResponse(BaseModel):
    query: str
    summary: Optional[str]
    results: List[SearchResultModel]
    categories: Dict[str, List[CategoryEntry]]
    stats: SearchStatsModel


class AddDocumentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1)
    metadata: DocumentMetadataInput


class InternalKnowledgeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InternalSearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1)
    media_types: List[MediaType] = Field(default_factory=lambda: list(MediaType))
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    limit: Optional[PositiveInt] = None


class CompanySearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1)
    limit: PositiveInt = 5


class DocumentCreatedResponse(BaseModel):
    id: str


class CleanupRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    days_to_keep: Optional[NonNegativeInt] = None


class CleanupResponse(BaseModel):
    removed: int


class MigrationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_namespace: Namespace
    records: List[Dict[str, Any]]


class MigrationResponse(BaseModel):
    target_namespace: str
    migrated: int
    failed: int
    document_ids: List[str]


class SeedResponse(BaseModel):
    added: int


@router.post("/search", response_model=SearchResponse)
async def hybrid_search(
    request: SearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> SearchResponse:
    result = await service.search(request.query, mode=request.mode, requester=requester, config=request.config)
    return _convert_result(result)


@router.post("/internal-knowledge/search", response_model=List[SearchResultModel])
async def internal_knowledge_search(
    request: InternalSearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> List[SearchResultModel]:
    results = await service.search_internal_knowledge(
        request.query,
        requester=requester,
        media_types=request.media_types,
        threshold=request.threshold,
        limit=request.limit,
    )
    return _convert_ranked(results)


@router.post("/company-knowledge/search", response_model=List[SearchResultModel])
async def company_knowledge_search(
    request: CompanySearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> List[SearchResultModel]:
    results = await service.search_company_knowledge(request.query, requester=requester, limit=request.limit)
    return _convert_ranked(results)


@router.post("/documents", response_model=DocumentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_document(
    request: AddDocumentRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> DocumentCreatedResponse:
    document_id = await service.add_document(request.content, metadata=request.metadata, requester=requester)
    return DocumentCreatedResponse(id=document_id)


@router.post("/internal-knowledge", response_model=DocumentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_internal_knowledge(
    request: InternalKnowledgeRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> DocumentCreatedResponse:
    document_id = await service.add_internal_knowledge(request.content, metadata=request.metadata, requester=requester)
    return DocumentCreatedResponse(id=document_id)


@router.get("/stats")
async def get_stats(service: RetrievalService = Depends(get_retrieval_service)) -> Dict[str, Any]:
    return asdict(service.get_stats())


@router.get("/stats/users/{user_id}")
async def get_user_stats(user_id: str, service: RetrievalService = Depends(get_retrieval_service)) -> Dict[str, Any]:
    stats = service.user_stats(user_id)
    return {
        "user_id": stats.user_id,
        "total": stats.total,
        "by_type": stats.by_type,
        "recent": [
            {
                "id": document.id,
                "type": document.metadata.type.value,
                "namespace": document.namespace.value,
                "timestamp": document.timestamp,
                "preview": preview(document.content),
            }
            for document in stats.recent
        ],
    }


@router.post("/maintenance/cleanup", response_model=CleanupResponse)
async def cleanup(
    request: CleanupRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> CleanupResponse:
    removed = await service.cleanup(days_to_keep=request.days_to_keep)
    return CleanupResponse(removed=removed)


@router.post("/maintenance/migrate", response_model=MigrationResponse)
async def migrate(
    request: MigrationRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> MigrationResponse:
    report = await service.migrate_documents(request.records, target_namespace=request.target_namespace)
    return MigrationResponse(**asdict(report))


@router.post("/maintenance/samples", response_model=SeedResponse)
async def seed_samples(
    service: RetrievalService = Depends(get_retrieval_service),
    requester: RequesterContext = Depends(get_requester),
) -> SeedResponse:
    added = await service.seed_samples(user_id=requester.user_id)
    return SeedResponse(added=added)


def _convert_ranked(results: List[RankedResult]) -> List[SearchResultModel]:
    converted = []
    for item in format_results(results):
        payload = asdict(item)
        payload["citation"] = item.citation.label
        converted.append(SearchResultModel(**payload))
    return converted


def _convert_result(result: HybridSearchResult) -> SearchResponse:
    categories = {
        name: [
            CategoryEntry(
                id=item.document.id,
                content=preview(item.document.content),
                similarity=round(item.similarity, 2),
                type=item.document.metadata.type.value,
                timestamp=item.document.timestamp,
            )
            for item in items
        ]
        for name, items in result.groups.items()
    }
    return SearchResponse(
        query=result.query,
        summary=result.summary,
        results=_convert_ranked(result.merged),
        categories=categories,
        stats=SearchStatsModel(mode=result.mode, **asdict(result.stats)),
    )
