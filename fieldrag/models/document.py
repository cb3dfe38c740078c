"""Document data model definitions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator


class Namespace(str, Enum):
    LOGS = "logs"
    KNOWLEDGE = "knowledge"
    PROJECTS = "projects"
    SECURITY = "security"
    INTERNAL = "internal"


class DocumentType(str, Enum):
    LOG = "log"
    QUERY = "query"
    REPORT = "report"
    ANALYSIS = "analysis"
    KNOWLEDGE = "knowledge"
    POLICY = "policy"
    MANUAL = "manual"
    INTERNAL_TEXT = "internal_text"
    INTERNAL_IMAGE = "internal_image"
    INTERNAL_VIDEO = "internal_video"


class MediaType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class AccessLevel(str, Enum):
    """Ordered permission tier; later members are more restrictive."""

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"

    @property
    def rank(self) -> int:
        return ACCESS_LEVEL_ORDER.index(self)

    def covers(self, other: "AccessLevel") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: "str | AccessLevel") -> "AccessLevel":
        if isinstance(value, AccessLevel):
            return value
        normalized = str(value).strip().lower()
        normalized = ACCESS_LEVEL_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown access level: {value!r}") from exc


ACCESS_LEVEL_ORDER = [
    AccessLevel.PUBLIC,
    AccessLevel.INTERNAL,
    AccessLevel.CONFIDENTIAL,
    AccessLevel.RESTRICTED,
]

# Naming used by the internal-knowledge records of the field application.
ACCESS_LEVEL_ALIASES = {
    "company": AccessLevel.INTERNAL.value,
    "department": AccessLevel.CONFIDENTIAL.value,
    "project": AccessLevel.RESTRICTED.value,
}


class DocumentMetadataInput(BaseModel):
    """Caller-supplied metadata; the store assigns the timestamp."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    namespace: Namespace
    type: DocumentType
    source: str = Field(..., min_length=1, description="Free-text provenance label")
    user_id: Optional[str] = None
    department: Optional[str] = None
    access_level: Optional[AccessLevel] = None
    media_type: Optional[MediaType] = None
    media_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[NonNegativeInt] = None
    transcription: Optional[str] = None

    @field_validator("access_level", mode="before")
    def _parse_access_level(cls, value: object) -> object:
        if value is None or isinstance(value, AccessLevel):
            return value
        return AccessLevel.parse(str(value))


class DocumentMetadata(DocumentMetadataInput):
    timestamp: datetime

    @field_validator("timestamp")
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from older sink files are taken as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Document(BaseModel):
    """Immutable retrieval unit with its embedding."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    embedding: Tuple[float, ...]
    metadata: DocumentMetadata

    @property
    def namespace(self) -> Namespace:
        return self.metadata.namespace

    @property
    def timestamp(self) -> datetime:
        return self.metadata.timestamp

    @property
    def dimensions(self) -> int:
        return len(self.embedding)
