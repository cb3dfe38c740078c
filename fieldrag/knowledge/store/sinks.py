"""Best-effort durable replication of the in-memory document store.

Sinks mirror documents to disk or Redis so the corpus survives restarts. They
are never the source of truth: writes are fire-and-forget and failures are
logged, never raised to the caller that added the document.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Set

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError

from fieldrag.core.config import Settings, settings as default_settings
from fieldrag.models.document import Document

logger = logging.getLogger(__name__)


class DurableSink(Protocol):
    name: str

    async def persist(self, document: Document) -> None:
        ...

    async def load(self) -> List[Document]:
        ...

    async def remove(self, ids: Sequence[str]) -> None:
        ...


def _decode_documents(payloads: Iterable[Any], *, sink: str) -> List[Document]:
    documents: List[Document] = []
    for payload in payloads:
        try:
            documents.append(Document.model_validate(payload))
        except PydanticValidationError as exc:
            logger.warning("Skipping malformed document in %s sink: %s", sink, exc)
    return documents


class NullSink:
    """Sink that keeps nothing; used when replication is disabled."""

    name = "none"

    async def persist(self, document: Document) -> None:
        return None

    async def load(self) -> List[Document]:
        return []

    async def remove(self, ids: Sequence[str]) -> None:
        return None


class JsonFileSink:
    """Mirror the corpus into a single JSON array on local disk."""

    name = "file"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def persist(self, document: Document) -> None:
        async with self._lock:
            await asyncio.to_thread(self._append, document.model_dump(mode="json"))

    async def load(self) -> List[Document]:
        async with self._lock:
            payloads = await asyncio.to_thread(self._read)
        return _decode_documents(payloads, sink=self.name)

    async def remove(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        async with self._lock:
            await asyncio.to_thread(self._remove, set(ids))

    def _read(self) -> List[Any]:
        if not self.path.exists():
            return []
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON array in {self.path}")
        return data

    def _write(self, payloads: List[Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payloads, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)

    def _append(self, payload: Any) -> None:
        payloads = [item for item in self._read() if item.get("id") != payload["id"]]
        payloads.append(payload)
        self._write(payloads)

    def _remove(self, ids: Set[str]) -> None:
        payloads = self._read()
        kept = [item for item in payloads if item.get("id") not in ids]
        if len(kept) != len(payloads):
            self._write(kept)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    namespace TEXT NOT NULL,
    created_at TEXT NOT NULL,
    payload_json TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_namespace ON documents(namespace);
"""


class SqliteSink:
    """Mirror documents into a local SQLite database (stdlib ``sqlite3``)."""

    name = "sqlite"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        if not self._initialized:
            conn.executescript(_SCHEMA_SQL)
            self._initialized = True
        return conn

    async def persist(self, document: Document) -> None:
        row = (
            document.id,
            document.namespace.value,
            document.timestamp.isoformat(),
            json.dumps(document.model_dump(mode="json"), ensure_ascii=False),
        )
        await asyncio.to_thread(self._execute, "INSERT OR REPLACE INTO documents VALUES (?, ?, ?, ?)", [row])

    async def load(self) -> List[Document]:
        rows = await asyncio.to_thread(self._fetch_payloads)
        return _decode_documents((json.loads(row) for row in rows), sink=self.name)

    async def remove(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        await asyncio.to_thread(self._execute, "DELETE FROM documents WHERE id = ?", [(item,) for item in ids])

    def _execute(self, sql: str, rows: List[tuple]) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.executemany(sql, rows)
        finally:
            conn.close()

    def _fetch_payloads(self) -> List[str]:
        conn = self._connect()
        try:
            cursor = conn.execute("SELECT payload_json FROM documents ORDER BY created_at, id")
            return [row[0] for row in cursor.fetchall()]
        finally:
            conn.close()


class RedisSink:
    """Mirror each document under ``<prefix><id>`` as a JSON string."""

    name = "redis"

    def __init__(self, client: Any, *, key_prefix: str = "fieldrag:document:") -> None:
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "fieldrag:document:") -> "RedisSink":
        return cls(redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    async def persist(self, document: Document) -> None:
        await self.client.set(self.key_prefix + document.id, document.model_dump_json())

    async def load(self) -> List[Document]:
        keys = [key async for key in self.client.scan_iter(match=self.key_prefix + "*")]
        if not keys:
            return []
        values = await self.client.mget(keys)
        payloads = [json.loads(value) for value in values if value]
        return _decode_documents(payloads, sink=self.name)

    async def remove(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        await self.client.delete(*(self.key_prefix + item for item in ids))

    async def close(self) -> None:
        await self.client.aclose()


class FanOutWriter:
    """Replicate store mutations to every sink without blocking the writer."""

    def __init__(self, sinks: Sequence[DurableSink]) -> None:
        self.sinks = list(sinks)
        self._pending: Set[asyncio.Task] = set()

    def schedule_persist(self, document: Document) -> None:
        for sink in self.sinks:
            self._spawn(sink.persist(document), sink.name, "persist")

    def schedule_remove(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        frozen_ids = list(ids)
        for sink in self.sinks:
            self._spawn(sink.remove(frozen_ids), sink.name, "remove")

    async def load_all(self) -> List[Document]:
        """Load every sink concurrently; a failing sink contributes nothing."""

        results = await asyncio.gather(*(sink.load() for sink in self.sinks), return_exceptions=True)
        documents: List[Document] = []
        for sink, result in zip(self.sinks, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to load documents from %s sink: %s", sink.name, result)
                continue
            logger.info("Loaded %s documents from %s sink", len(result), sink.name)
            documents.extend(result)
        return documents

    async def drain(self) -> None:
        """Wait for outstanding writes, e.g. before shutdown."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _spawn(self, coro: Any, sink_name: str, operation: str) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.warning("Durable %s to %s sink failed: %s", operation, sink_name, exc)

        task.add_done_callback(_done)


def build_sinks(config: Optional[Settings] = None) -> List[DurableSink]:
    """Instantiate the sinks listed in ``DURABLE_SINKS``."""

    config = config or default_settings
    sinks: List[DurableSink] = []
    for name in config.DURABLE_SINKS:
        if name == "file":
            sinks.append(JsonFileSink(config.FILE_SINK_PATH))
        elif name == "sqlite":
            sinks.append(SqliteSink(config.SQLITE_SINK_PATH))
        elif name == "redis":
            sinks.append(RedisSink.from_url(str(config.REDIS_URL), key_prefix=config.REDIS_KEY_PREFIX))
        elif name in {"none", "null", ""}:
            continue
        else:
            raise ValueError(f"Unsupported durable sink: {name}")
    return sinks or [NullSink()]


__all__ = [
    "DurableSink",
    "FanOutWriter",
    "JsonFileSink",
    "NullSink",
    "RedisSink",
    "SqliteSink",
    "build_sinks",
]
