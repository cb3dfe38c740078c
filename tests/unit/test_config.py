import pytest
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from fieldrag.core import observability
from fieldrag.core.config import Settings


def test_comma_separated_env_lists(monkeypatch):
    monkeypatch.setenv("DURABLE_SINKS", "File, redis")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://ops.local, https://field.local")

    config = Settings()

    assert config.DURABLE_SINKS == ["file", "redis"]
    assert config.ALLOWED_ORIGINS == ["https://ops.local", "https://field.local"]


def test_log_level_normalized(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert Settings().LOG_LEVEL == "DEBUG"


def test_invalid_embedding_provider_rejected():
    with pytest.raises(ValueError):
        Settings(EMBEDDING_PROVIDER="word2vec")


def test_search_defaults():
    config = Settings()

    assert config.DEFAULT_THRESHOLD == 0.3
    assert config.DEFAULT_LIMIT == 5
    assert (config.DEFAULT_LOG_WEIGHT, config.DEFAULT_KNOWLEDGE_WEIGHT, config.DEFAULT_INTERNAL_WEIGHT) == (1.0, 1.2, 1.1)
    assert config.COMPANY_KNOWLEDGE_THRESHOLD == 0.6


def test_parse_otlp_headers():
    assert observability.parse_headers("api-key=abc, tenant = field ,broken,=x") == {"api-key": "abc", "tenant": "field"}
    assert observability.parse_headers(None) == {}


def test_exporter_selection(monkeypatch):
    monkeypatch.setattr(observability, "settings", Settings(OTEL_EXPORTER_OTLP_ENDPOINT=None))
    assert isinstance(observability._select_exporter(), ConsoleSpanExporter)

    monkeypatch.setattr(
        observability,
        "settings",
        Settings(OTEL_EXPORTER_OTLP_ENDPOINT="http://collector.local:4317", OTEL_EXPORTER_OTLP_HEADERS="api-key=abc"),
    )
    assert isinstance(observability._select_exporter(), OTLPSpanExporter)
