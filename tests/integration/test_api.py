import pytest
from fastapi.testclient import TestClient

from fieldrag.api.main import create_app
from fieldrag.core.config import Settings
from fieldrag.knowledge.service import build_retrieval_service
from fieldrag.knowledge.store.sinks import NullSink
from fieldrag.knowledge.vector.embeddings import LocalEmbeddingProvider
from fieldrag.utils.audit import AuditLogger
from tests.conftest import StubEmbeddingProvider

LOG_TEXT = "Compressor tripped on high discharge pressure at station 4"


@pytest.fixture
def audit():
    logger = AuditLogger()
    logger.keep_records = True
    return logger


@pytest.fixture
def service(audit):
    config = Settings(OPENAI_API_KEY=None, SEED_SAMPLE_DATA=False, DURABLE_SINKS="none")
    return build_retrieval_service(
        config,
        embedding_provider=LocalEmbeddingProvider(dimensions=128),
        sinks=[NullSink()],
        audit_logger=audit,
    )


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as test_client:
        yield test_client


def _add(client, content, **metadata):
    payload = {"content": content, "metadata": {"namespace": "logs", "type": "log", "source": "field-app", **metadata}}
    response = client.post("/api/documents", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "documents": 0}


def test_add_then_search_returns_formatted_results(client, audit):
    document_id = _add(client, LOG_TEXT)

    response = client.post("/api/search", json={"query": LOG_TEXT, "config": {"threshold": 0.0}})

    assert response.status_code == 200
    body = response.json()
    top = body["results"][0]
    assert top["id"] == document_id
    assert top["rank"] == 1
    assert top["similarity"] == 1.0
    assert top["citation"] == "[1] log (logs)"
    assert body["stats"]["has_results"] is True
    assert body["stats"]["mode"] == "hybrid"
    assert body["categories"]["logs"][0]["id"] == document_id
    assert body["summary"].startswith("1 results found")
    assert {record["details"]["action"] for record in audit.records} >= {
        "RetrievalService.add_document",
        "RetrievalService.search",
    }


def test_restricted_documents_need_clearance_header(client):
    _add(client, LOG_TEXT, access_level="restricted")
    request = {"query": LOG_TEXT, "config": {"threshold": 0.0}}

    hidden = client.post("/api/search", json=request)
    visible = client.post("/api/search", json=request, headers={"X-Access-Level": "restricted"})

    assert hidden.json()["results"] == []
    assert hidden.json()["stats"]["has_results"] is False
    assert len(visible.json()["results"]) == 1


def test_owner_filter_from_user_header(client):
    _add(client, LOG_TEXT, user_id="alice")
    request = {"query": LOG_TEXT, "mode": "logs", "config": {"threshold": 0.0}}

    assert client.post("/api/search", json=request, headers={"X-User-Id": "bob"}).json()["results"] == []
    assert len(client.post("/api/search", json=request, headers={"X-User-Id": "alice"}).json()["results"]) == 1


def test_invalid_access_level_header_rejected(client):
    response = client.post("/api/search", json={"query": "anything"}, headers={"X-Access-Level": "top-secret"})

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_unknown_metadata_field_rejected(client):
    response = client.post(
        "/api/documents",
        json={"content": "x", "metadata": {"namespace": "logs", "type": "log", "source": "a", "color": "red"}},
    )

    assert response.status_code == 422


def test_internal_knowledge_add_and_search(client):
    created = client.post(
        "/api/internal-knowledge",
        json={
            "content": "Replace the controller fan by removing the front panel",
            "metadata": {"source": "upload", "media_type": "video", "access_level": "company"},
        },
    )
    assert created.status_code == 201

    response = client.post(
        "/api/internal-knowledge/search",
        json={"query": "Replace the controller fan by removing the front panel", "media_types": ["video"]},
    )

    results = response.json()
    assert len(results) == 1
    assert results[0]["type"] == "internal_video"
    assert results[0]["access_level"] == "internal"
    assert results[0]["citation"] == "[1] internal_video (internal)"


def test_stats_and_user_stats(client):
    _add(client, LOG_TEXT, user_id="alice")
    _add(client, "Weekly pressure analysis", namespace="knowledge", type="analysis")

    stats = client.get("/api/stats").json()
    user_stats = client.get("/api/stats/users/alice").json()

    assert stats["store"]["total"] == 2
    assert stats["store"]["by_namespace"] == {"logs": 1, "knowledge": 1}
    assert stats["namespaces"]["knowledge"]["by_type"] == {"analysis": 1}
    assert stats["embedding_provider"] == "local"
    assert user_stats["total"] == 1
    assert user_stats["recent"][0]["type"] == "log"


def test_cleanup_and_samples(client):
    seeded = client.post("/api/maintenance/samples").json()["added"]
    assert seeded > 0

    response = client.post("/api/maintenance/cleanup", json={"days_to_keep": 30})

    assert response.status_code == 200
    assert response.json() == {"removed": 0}
    assert client.get("/health").json()["documents"] == seeded


def test_migration_endpoint(client):
    response = client.post(
        "/api/maintenance/migrate",
        json={
            "target_namespace": "knowledge",
            "records": [
                {"content": "Legacy valve manual", "metadata": {"type": "manual"}},
                {"content": "", "metadata": {}},
            ],
        },
    )

    body = response.json()
    assert body["migrated"] == 1
    assert body["failed"] == 1
    assert body["target_namespace"] == "knowledge"


def test_query_embedding_failure_maps_to_bad_gateway(audit):
    service = build_retrieval_service(
        Settings(OPENAI_API_KEY=None),
        embedding_provider=StubEmbeddingProvider(fail_on=["pump"]),
        sinks=[NullSink()],
        audit_logger=audit,
    )

    with TestClient(create_app(service)) as client:
        response = client.post("/api/search", json={"query": "pump"})

    assert response.status_code == 502
    assert response.json()["code"] == "query_embedding_failed"
    assert any(record["event"] == "error" for record in audit.records)


@pytest.mark.asyncio
async def test_audit_records_namespace_from_mapping_metadata(service, audit):
    await service.add_document(
        "Valve inspection overdue at station 9",
        metadata={"namespace": "logs", "type": "log", "source": "field-app"},
    )
    await service.store.writer.drain()

    starts = [record for record in audit.records if record["event"] == "start"]
    assert starts[-1]["details"]["namespace"] == "logs"
    assert starts[-1]["details"]["action"] == "RetrievalService.add_document"
