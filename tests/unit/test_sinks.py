import fnmatch
import json
import logging

import pytest

from fieldrag.core.config import Settings
from fieldrag.knowledge.store.document_store import DocumentStore
from fieldrag.knowledge.store.sinks import (
    FanOutWriter,
    JsonFileSink,
    NullSink,
    RedisSink,
    SqliteSink,
    build_sinks,
)
from tests.conftest import RecordingSink, StubEmbeddingProvider


class FakeRedis:
    """Minimal async stand-in for the redis client calls used by RedisSink."""

    def __init__(self):
        self.data = {}
        self.closed = False

    async def set(self, key, value):
        self.data[key] = value

    async def mget(self, keys):
        return [self.data.get(key) for key in keys]

    async def scan_iter(self, match=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_json_file_sink_round_trip(tmp_path, make_document):
    path = tmp_path / "nested" / "documents.json"
    sink = JsonFileSink(path)
    first = make_document("logs_1_aaaaaaaaa", [1.0, 0.0], user_id="alice", access_level="internal")
    second = make_document("logs_2_bbbbbbbbb", [0.0, 1.0], seconds=3)

    await sink.persist(first)
    await sink.persist(second)
    await sink.persist(first)

    loaded = await sink.load()
    assert [document.id for document in loaded] == ["logs_2_bbbbbbbbb", "logs_1_aaaaaaaaa"]
    assert loaded[1] == first
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 2

    await sink.remove(["logs_1_aaaaaaaaa"])
    assert [document.id for document in await sink.load()] == ["logs_2_bbbbbbbbb"]


@pytest.mark.asyncio
async def test_json_file_sink_skips_malformed_entries(tmp_path, make_document):
    path = tmp_path / "documents.json"
    valid = make_document("logs_1_aaaaaaaaa", [1.0, 0.0])
    path.write_text(json.dumps([{"id": "broken"}, valid.model_dump(mode="json")]), encoding="utf-8")

    loaded = await JsonFileSink(path).load()

    assert [document.id for document in loaded] == ["logs_1_aaaaaaaaa"]


@pytest.mark.asyncio
async def test_naive_timestamps_in_sink_file_are_read_as_utc(tmp_path, make_document):
    path = tmp_path / "documents.json"
    aware = make_document("logs_1_aaaaaaaaa", [1.0, 0.0], seconds=10, user_id="alice").model_dump(mode="json")
    naive = make_document("logs_2_bbbbbbbbb", [0.0, 1.0], user_id="alice").model_dump(mode="json")
    naive["metadata"]["timestamp"] = "2025-06-03T09:00:00"
    path.write_text(json.dumps([aware, naive]), encoding="utf-8")
    store = DocumentStore(StubEmbeddingProvider(), writer=FanOutWriter([JsonFileSink(path)]))

    restored = await store.load_from_sinks()

    assert restored == 2
    assert [d.id for d in store.query()] == ["logs_2_bbbbbbbbb", "logs_1_aaaaaaaaa"]
    assert all(d.timestamp.tzinfo is not None for d in store.query())
    assert [d.id for d in store.user_stats("alice").recent] == ["logs_1_aaaaaaaaa", "logs_2_bbbbbbbbb"]
    assert await store.cleanup(days_to_keep=30) == 2
    await store.writer.drain()


@pytest.mark.asyncio
async def test_json_file_sink_missing_file_loads_nothing(tmp_path):
    assert await JsonFileSink(tmp_path / "absent.json").load() == []


@pytest.mark.asyncio
async def test_sqlite_sink_round_trip(tmp_path, make_document):
    sink = SqliteSink(tmp_path / "store.sqlite3")
    older = make_document("knowledge_1_aaaaaaaaa", [1.0, 0.0], namespace="knowledge", type="manual")
    newer = make_document("logs_2_bbbbbbbbb", [0.5, 0.5], seconds=10, department="ops")

    await sink.persist(newer)
    await sink.persist(older)

    loaded = await sink.load()
    assert [document.id for document in loaded] == ["knowledge_1_aaaaaaaaa", "logs_2_bbbbbbbbb"]
    assert loaded[1].metadata.department == "ops"

    await sink.remove(["knowledge_1_aaaaaaaaa"])
    assert [document.id for document in await sink.load()] == ["logs_2_bbbbbbbbb"]


@pytest.mark.asyncio
async def test_redis_sink_round_trip(make_document):
    client = FakeRedis()
    sink = RedisSink(client, key_prefix="test:doc:")
    document = make_document("security_1_aaaaaaaaa", [1.0, 0.0], namespace="security", type="policy")
    client.data["unrelated"] = "ignored"

    await sink.persist(document)
    assert "test:doc:security_1_aaaaaaaaa" in client.data
    assert await sink.load() == [document]

    await sink.remove([document.id])
    assert await sink.load() == []

    await sink.close()
    assert client.closed


@pytest.mark.asyncio
async def test_fan_out_writer_logs_and_absorbs_failures(make_document, caplog):
    healthy = RecordingSink("healthy")
    writer = FanOutWriter([RecordingSink("broken", fail=True), healthy])
    document = make_document("logs_1_aaaaaaaaa", [1.0, 0.0])

    with caplog.at_level(logging.WARNING, logger="fieldrag.knowledge.store.sinks"):
        writer.schedule_persist(document)
        await writer.drain()

    assert healthy.persisted == [document]
    assert writer.pending == 0
    assert "broken" in caplog.text


@pytest.mark.asyncio
async def test_fan_out_writer_load_all_skips_failing_sink(make_document):
    document = make_document("logs_1_aaaaaaaaa", [1.0, 0.0])
    writer = FanOutWriter([RecordingSink("broken", fail=True), RecordingSink("ok", documents=[document])])

    assert await writer.load_all() == [document]


@pytest.mark.asyncio
async def test_null_sink_keeps_nothing(make_document):
    sink = NullSink()
    await sink.persist(make_document("logs_1_aaaaaaaaa", [1.0, 0.0]))
    assert await sink.load() == []


def test_build_sinks_from_settings(tmp_path):
    config = Settings(
        DURABLE_SINKS="file, SQLite",
        FILE_SINK_PATH=tmp_path / "data.json",
        SQLITE_SINK_PATH=tmp_path / "data.sqlite3",
    )

    sinks = build_sinks(config)

    assert [sink.name for sink in sinks] == ["file", "sqlite"]
    assert sinks[0].path == tmp_path / "data.json"


def test_build_sinks_defaults_to_null_sink():
    assert [sink.name for sink in build_sinks(Settings(DURABLE_SINKS="none"))] == ["none"]


def test_build_sinks_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_sinks(Settings(DURABLE_SINKS="s3"))
