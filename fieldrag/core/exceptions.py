"""Custom exception hierarchy for FieldRAG."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import status


class ApplicationError(Exception):
    """Base application error with HTTP semantics."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "application_error"

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message


class ValidationError(ApplicationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


@dataclass(eq=False)
class FieldRAGError(Exception):
    """Base class for retrieval errors with structured payloads."""

    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        base = f"[{self.error_code}] {self.message}"
        if self.details:
            return f"{base} :: {self.details}"
        return base


class EmbeddingFailure(FieldRAGError):
    """Raised when the embedding provider cannot vectorize document text."""


class QueryEmbeddingFailure(FieldRAGError):
    """Raised when the search query itself cannot be vectorized."""


class GroupSearchFailure(FieldRAGError):
    """Raised when one namespace group fails during fusion."""


class DimensionMismatch(FieldRAGError):
    """Raised when two vectors of different length are compared."""
