from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from fieldrag.core.exceptions import EmbeddingFailure
from fieldrag.models.document import Document, DocumentMetadata

QUERY_VECTOR = [1.0, 0.0]


def vector_at(similarity: float) -> List[float]:
    """Unit vector whose cosine with QUERY_VECTOR equals ``similarity``."""

    return [similarity, (1.0 - similarity * similarity) ** 0.5]


class StubEmbeddingProvider:
    name = "stub"

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        *,
        default: Sequence[float] = (0.0, 1.0),
        fail_on: Sequence[str] = (),
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.fail_on = set(fail_on)
        self.calls: List[str] = []

    @property
    def dimensions(self) -> int:
        return len(self.default)

    async def generate(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingFailure(error_code="embedding_failed", message="stub failure", details={"text": text})
        return list(self.vectors.get(text, self.default))


class SteppingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2025, 6, 3, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


class RecordingSink:
    def __init__(self, name: str = "recording", documents: Sequence[Document] = (), fail: bool = False) -> None:
        self.name = name
        self.persisted: List[Document] = []
        self.removed: List[str] = []
        self._documents = list(documents)
        self.fail = fail

    async def persist(self, document: Document) -> None:
        if self.fail:
            raise OSError("disk full")
        self.persisted.append(document)

    async def load(self) -> List[Document]:
        if self.fail:
            raise OSError("unreadable")
        return list(self._documents)

    async def remove(self, ids: Sequence[str]) -> None:
        if self.fail:
            raise OSError("disk full")
        self.removed.extend(ids)


@pytest.fixture
def make_document():
    base = datetime(2025, 6, 3, 9, 0, tzinfo=timezone.utc)

    def factory(
        document_id: str,
        embedding: Sequence[float],
        *,
        namespace: str = "logs",
        type: str = "log",
        seconds: int = 0,
        content: Optional[str] = None,
        **metadata,
    ) -> Document:
        return Document(
            id=document_id,
            content=content or f"content of {document_id}",
            embedding=tuple(embedding),
            metadata=DocumentMetadata(
                namespace=namespace,
                type=type,
                source="test",
                timestamp=base + timedelta(seconds=seconds),
                **metadata,
            ),
        )

    return factory


@pytest.fixture
def clock():
    return SteppingClock()
