"""In-memory, append-only document store with best-effort replication."""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from fieldrag.core.exceptions import EmbeddingFailure, ValidationError
from fieldrag.knowledge.store.sinks import FanOutWriter
from fieldrag.knowledge.vector.embeddings import EmbeddingProvider
from fieldrag.models.document import (
    AccessLevel,
    Document,
    DocumentMetadata,
    DocumentMetadataInput,
    DocumentType,
    MediaType,
    Namespace,
)
from fieldrag.utils.monitoring import record_document_added
from fieldrag.utils.validators import require_non_empty

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LENGTH = 9
RECENT_DOCUMENTS_LIMIT = 10

Predicate = Callable[[Document], bool]
MetadataLike = DocumentMetadataInput | Mapping[str, Any]


@dataclass
class StoreStats:
    total: int
    by_namespace: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)


@dataclass
class NamespaceStats:
    namespace: str
    total: int
    by_type: Dict[str, int] = field(default_factory=dict)
    by_access_level: Dict[str, int] = field(default_factory=dict)


@dataclass
class UserStats:
    user_id: str
    total: int
    by_type: Dict[str, int] = field(default_factory=dict)
    recent: List[Document] = field(default_factory=list)


@dataclass
class MigrationReport:
    target_namespace: str
    migrated: int = 0
    failed: int = 0
    document_ids: List[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def in_namespaces(*namespaces: Namespace) -> Predicate:
    allowed = frozenset(namespaces)
    return lambda document: document.namespace in allowed


def owned_by(user_id: str) -> Predicate:
    return lambda document: document.metadata.user_id == user_id


def in_department(department: str) -> Predicate:
    return lambda document: document.metadata.department == department


class DocumentStore:
    """Append-only corpus shared by every search.

    Writers serialize through a single ``asyncio.Lock``; readers receive the
    current immutable tuple, so a search never observes a partially added
    document.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        *,
        writer: Optional[FanOutWriter] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.writer = writer or FanOutWriter([])
        self._clock = clock
        self._lock = asyncio.Lock()
        self._documents: Tuple[Document, ...] = ()
        self._ids: set[str] = set()

    async def add(self, content: str, metadata: MetadataLike) -> str:
        """Embed ``content`` and append it; nothing is stored if embedding fails."""

        metadata_input = self._coerce_metadata(metadata)
        try:
            content = require_non_empty(content)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        try:
            embedding = await self.embedding_provider.generate(content)
        except EmbeddingFailure:
            logger.warning("Embedding failed; document for namespace %s rejected", metadata_input.namespace.value)
            raise

        async with self._lock:
            document_id = self._new_id(metadata_input.namespace)
            document = Document(
                id=document_id,
                content=content,
                embedding=tuple(embedding),
                metadata=DocumentMetadata(**metadata_input.model_dump(), timestamp=self._clock()),
            )
            self._documents = self._documents + (document,)
            self._ids.add(document_id)

        record_document_added(document.namespace.value)
        logger.info("Added document %s to namespace %s", document_id, document.namespace.value)
        self.writer.schedule_persist(document)
        return document_id

    async def add_internal_knowledge(self, content: str, metadata: MetadataLike) -> str:
        """Add a company-internal record; namespace and type follow the media type."""

        fields = dict(metadata.model_dump(exclude_unset=True) if isinstance(metadata, DocumentMetadataInput) else metadata)
        try:
            media_type = MediaType(fields.get("media_type") or MediaType.TEXT)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        fields["namespace"] = Namespace.INTERNAL
        fields["type"] = DocumentType(f"internal_{media_type.value}")
        fields["media_type"] = media_type
        return await self.add(content, fields)

    def snapshot(self) -> Tuple[Document, ...]:
        return self._documents

    def get(self, document_id: str) -> Optional[Document]:
        for document in self._documents:
            if document.id == document_id:
                return document
        return None

    def query(self, predicate: Optional[Predicate] = None) -> List[Document]:
        documents = self._documents
        if predicate is None:
            return list(documents)
        return [document for document in documents if predicate(document)]

    def count(self, namespace: Optional[Namespace] = None) -> int:
        if namespace is None:
            return len(self._documents)
        return sum(1 for document in self._documents if document.namespace == namespace)

    def stats(self) -> StoreStats:
        documents = self._documents
        return StoreStats(
            total=len(documents),
            by_namespace=dict(Counter(document.namespace.value for document in documents)),
            by_type=dict(Counter(document.metadata.type.value for document in documents)),
        )

    def namespace_stats(self, namespace: Namespace) -> NamespaceStats:
        documents = self.query(in_namespaces(namespace))
        return NamespaceStats(
            namespace=namespace.value,
            total=len(documents),
            by_type=dict(Counter(document.metadata.type.value for document in documents)),
            by_access_level=dict(
                Counter((document.metadata.access_level or AccessLevel.PUBLIC).value for document in documents)
            ),
        )

    def user_stats(self, user_id: str) -> UserStats:
        documents = self.query(owned_by(user_id))
        recent = sorted(documents, key=lambda document: document.timestamp, reverse=True)[:RECENT_DOCUMENTS_LIMIT]
        return UserStats(
            user_id=user_id,
            total=len(documents),
            by_type=dict(Counter(document.metadata.type.value for document in documents)),
            recent=recent,
        )

    async def cleanup(self, days_to_keep: int = 30) -> int:
        """Drop documents older than ``days_to_keep`` days; returns how many were removed."""

        if days_to_keep < 0:
            raise ValidationError("days_to_keep must not be negative")
        cutoff = self._clock() - timedelta(days=days_to_keep)
        async with self._lock:
            kept = tuple(document for document in self._documents if document.timestamp >= cutoff)
            removed_ids = [document.id for document in self._documents if document.timestamp < cutoff]
            self._documents = kept
            self._ids.difference_update(removed_ids)

        if removed_ids:
            logger.info("Retention cleanup removed %s documents older than %s days", len(removed_ids), days_to_keep)
            self.writer.schedule_remove(removed_ids)
        return len(removed_ids)

    async def load_from_sinks(self) -> int:
        """Merge documents from every sink, keeping the first copy of each id."""

        loaded = await self.writer.load_all()
        async with self._lock:
            fresh: Dict[str, Document] = {}
            for document in loaded:
                if document.id in self._ids or document.id in fresh:
                    continue
                fresh[document.id] = document
            ordered = sorted(fresh.values(), key=lambda document: (document.timestamp, document.id))
            self._documents = self._documents + tuple(ordered)
            self._ids.update(fresh)

        logger.info("Restored %s documents from durable sinks", len(fresh))
        return len(fresh)

    async def migrate_documents(
        self,
        records: Iterable[Mapping[str, Any]],
        target_namespace: Namespace,
    ) -> MigrationReport:
        """Re-add legacy ``{"content", "metadata"}`` records into ``target_namespace``."""

        report = MigrationReport(target_namespace=target_namespace.value)
        for index, record in enumerate(records):
            try:
                legacy = dict(record.get("metadata") or {})
                fields = {
                    "namespace": target_namespace,
                    "type": legacy.get("type", DocumentType.KNOWLEDGE),
                    "source": legacy.get("source") or "migration",
                    # Legacy records name the owner ``userId``.
                    "user_id": legacy.get("userId") or legacy.get("user_id"),
                    "department": legacy.get("department"),
                    "access_level": AccessLevel.INTERNAL,
                }
                document_id = await self.add(str(record.get("content") or ""), fields)
            except (EmbeddingFailure, ValidationError, TypeError, ValueError, AttributeError) as exc:
                report.failed += 1
                logger.warning("Failed to migrate record %s into %s: %s", index, target_namespace.value, exc)
                continue
            report.migrated += 1
            report.document_ids.append(document_id)

        logger.info(
            "Migration into %s finished: %s migrated, %s failed",
            target_namespace.value,
            report.migrated,
            report.failed,
        )
        return report

    def _coerce_metadata(self, metadata: MetadataLike) -> DocumentMetadataInput:
        if isinstance(metadata, DocumentMetadataInput):
            return metadata
        try:
            return DocumentMetadataInput.model_validate(dict(metadata))
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid document metadata: {exc.errors(include_url=False)}") from exc

    def _new_id(self, namespace: Namespace) -> str:
        while True:
            millis = int(self._clock().timestamp() * 1000)
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
            candidate = f"{namespace.value}_{millis}_{suffix}"
            if candidate not in self._ids:
                return candidate


__all__ = [
    "DocumentStore",
    "MigrationReport",
    "NamespaceStats",
    "StoreStats",
    "UserStats",
    "in_department",
    "in_namespaces",
    "owned_by",
]
