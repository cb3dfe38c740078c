"""Embedding providers for documents and search queries.

Every provider turns one text into one vector and reports the dimension it
produces. Failures of the underlying backend surface as ``EmbeddingFailure``;
no provider retries on its own.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError

from fieldrag.core.config import Settings, settings as default_settings
from fieldrag.core.exceptions import EmbeddingFailure
from fieldrag.utils.monitoring import record_embedding_failure

logger = logging.getLogger(__name__)

MODEL_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "all-MiniLM-L6-v2": 384,
    "all-mpnet-base-v2": 768,
    "nomic-embed-text": 768,
}
DEFAULT_DIMENSIONS = 1536

COHERE_EMBED_URL = "https://api.cohere.ai/v1/embed"
HUGGINGFACE_INFERENCE_URL = "https://api-inference.huggingface.co/pipeline/feature-extraction"


@runtime_checkable
class EmbeddingProvider(Protocol):
    name: str

    @property
    def dimensions(self) -> int:
        ...

    async def generate(self, text: str) -> List[float]:
        ...


def resolve_dimensions(model: str, configured: Optional[int] = None) -> int:
    if configured:
        return configured
    short_name = model.rsplit("/", 1)[-1]
    return MODEL_DIMENSIONS.get(model) or MODEL_DIMENSIONS.get(short_name) or DEFAULT_DIMENSIONS


def coerce_vector(raw: Any, *, provider: str) -> List[float]:
    """Validate a provider payload and return it as a list of floats."""

    if not isinstance(raw, (list, tuple)) or not raw:
        raise EmbeddingFailure(
            error_code="invalid_embedding",
            message=f"{provider} returned an empty or malformed embedding",
            details={"type": type(raw).__name__},
        )
    try:
        return [float(component) for component in raw]
    except (TypeError, ValueError) as exc:
        raise EmbeddingFailure(
            error_code="invalid_embedding",
            message=f"{provider} returned non-numeric embedding components",
        ) from exc


class _RemoteEmbeddingProvider:
    """Shared error translation for providers backed by a network call."""

    name = "remote"

    def __init__(self, model: str, dimensions: Optional[int] = None) -> None:
        self.model = model
        self._dimensions = resolve_dimensions(model, dimensions)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def generate(self, text: str) -> List[float]:
        try:
            raw = await self._embed(text)
        except EmbeddingFailure:
            record_embedding_failure(self.name)
            raise
        except (OpenAIError, httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            record_embedding_failure(self.name)
            logger.warning("%s embedding request failed: %s", self.name, exc)
            raise EmbeddingFailure(
                error_code="embedding_failed",
                message=f"{self.name} embedding request failed",
                details={"model": self.model, "reason": str(exc)},
            ) from exc
        try:
            return coerce_vector(raw, provider=self.name)
        except EmbeddingFailure:
            record_embedding_failure(self.name)
            raise

    async def _embed(self, text: str) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError


class OpenAIEmbeddingProvider(_RemoteEmbeddingProvider):
    name = "openai"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        super().__init__(model, dimensions)
        self._request_dimensions = dimensions
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def _embed(self, text: str) -> Any:
        kwargs: Dict[str, Any] = {"model": self.model, "input": text}
        if self._request_dimensions:
            kwargs["dimensions"] = self._request_dimensions
        response = await self.client.embeddings.create(**kwargs)
        return response.data[0].embedding


class AzureOpenAIEmbeddingProvider(OpenAIEmbeddingProvider):
    """Azure deployment of an OpenAI embedding model; ``model`` is the deployment name."""

    name = "azure-openai"

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: Optional[str],
        api_version: str,
        model: str,
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[AsyncAzureOpenAI] = None,
    ) -> None:
        azure_client = client or AsyncAzureOpenAI(
            azure_endpoint=endpoint,
            api_key=api_key,
            api_version=api_version,
            timeout=timeout,
            max_retries=0,
        )
        super().__init__(model=model, dimensions=dimensions, client=azure_client)


class CohereEmbeddingProvider(_RemoteEmbeddingProvider):
    name = "cohere"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str = "embed-english-v3.0",
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model, dimensions)
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _embed(self, text: str) -> Any:
        response = await self.client.post(
            COHERE_EMBED_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"texts": [text], "model": self.model, "input_type": "search_document"},
        )
        response.raise_for_status()
        return response.json()["embeddings"][0]


class HuggingFaceEmbeddingProvider(_RemoteEmbeddingProvider):
    name = "huggingface"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model, dimensions)
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _embed(self, text: str) -> Any:
        response = await self.client.post(
            f"{HUGGINGFACE_INFERENCE_URL}/{self.model}",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"inputs": text},
        )
        response.raise_for_status()
        data = response.json()
        # Some pipelines wrap the vector in an outer batch list.
        if isinstance(data, list) and data and isinstance(data[0], list):
            return data[0]
        return data


class OllamaEmbeddingProvider(_RemoteEmbeddingProvider):
    name = "ollama"

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model, dimensions)
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _embed(self, text: str) -> Any:
        response = await self.client.post(
            f"{self.base_url}/api/embeddings",
            json={"model": self.model, "prompt": text},
        )
        response.raise_for_status()
        return response.json()["embedding"]


class LocalEmbeddingProvider:
    """Deterministic, offline embedding provider for development and testing."""

    name = "local"

    def __init__(self, dimensions: int = 256) -> None:
        self._dimensions = max(8, dimensions)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def generate(self, text: str) -> List[float]:
        return self.encode_sync(text)

    def encode_sync(self, text: str) -> List[float]:
        tokens = text.lower().split()
        vector = [0.0] * self._dimensions
        if not tokens:
            return vector

        for token in tokens:
            token_value = sum(ord(char) * (position + 1) for position, char in enumerate(token))
            vector[token_value % self._dimensions] += 1.0

        norm = sum(component * component for component in vector) ** 0.5 or 1.0
        return [component / norm for component in vector]


def create_embedding_provider(config: Optional[Settings] = None) -> EmbeddingProvider:
    """Build the provider selected by ``EMBEDDING_PROVIDER``."""

    config = config or default_settings
    provider = config.EMBEDDING_PROVIDER
    timeout = config.EMBEDDING_TIMEOUT_SECONDS

    if provider == "local":
        return LocalEmbeddingProvider(config.LOCAL_EMBEDDING_DIMENSIONS)
    if provider == "openai":
        if not config.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not configured; falling back to deterministic local embeddings.")
            return LocalEmbeddingProvider(config.LOCAL_EMBEDDING_DIMENSIONS)
        return OpenAIEmbeddingProvider(
            api_key=config.OPENAI_API_KEY,
            model=config.EMBEDDING_MODEL,
            dimensions=config.EMBEDDING_DIMENSIONS,
            timeout=timeout,
        )
    if provider == "azure-openai":
        if config.AZURE_OPENAI_ENDPOINT is None:
            raise ValueError("AZURE_OPENAI_ENDPOINT is required for the azure-openai provider")
        return AzureOpenAIEmbeddingProvider(
            endpoint=str(config.AZURE_OPENAI_ENDPOINT),
            api_key=config.AZURE_OPENAI_API_KEY,
            api_version=config.AZURE_OPENAI_API_VERSION,
            model=config.EMBEDDING_MODEL,
            dimensions=config.EMBEDDING_DIMENSIONS,
            timeout=timeout,
        )
    if provider == "cohere":
        return CohereEmbeddingProvider(
            api_key=config.COHERE_API_KEY,
            model=config.EMBEDDING_MODEL,
            dimensions=config.EMBEDDING_DIMENSIONS,
            timeout=timeout,
        )
    if provider == "huggingface":
        return HuggingFaceEmbeddingProvider(
            api_key=config.HUGGINGFACE_API_KEY,
            model=config.EMBEDDING_MODEL,
            dimensions=config.EMBEDDING_DIMENSIONS,
            timeout=timeout,
        )
    if provider == "ollama":
        return OllamaEmbeddingProvider(
            base_url=str(config.OLLAMA_BASE_URL),
            model=config.EMBEDDING_MODEL,
            dimensions=config.EMBEDDING_DIMENSIONS,
            timeout=timeout,
        )
    raise ValueError(f"Unsupported embedding provider: {provider}")


__all__ = [
    "AzureOpenAIEmbeddingProvider",
    "CohereEmbeddingProvider",
    "EmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "LocalEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_embedding_provider",
    "coerce_vector",
    "resolve_dimensions",
]
