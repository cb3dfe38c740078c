"""Search request data model definitions."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from fieldrag.models.document import MediaType


class SearchMode(str, Enum):
    LOGS = "logs"
    KNOWLEDGE = "knowledge"
    INTERNAL = "internal"
    SECURITY = "security"
    HYBRID = "hybrid"


class SearchConfig(BaseModel):
    """Per-call tuning; unset values fall back to service settings."""

    model_config = ConfigDict(extra="forbid")

    log_weight: Optional[float] = Field(None, ge=0.0)
    knowledge_weight: Optional[float] = Field(None, ge=0.0)
    internal_weight: Optional[float] = Field(None, ge=0.0)
    include_internal: bool = True
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    limit: Optional[PositiveInt] = None
    media_types: List[MediaType] = Field(default_factory=lambda: list(MediaType))
    timeout_seconds: Optional[float] = Field(None, gt=0.0)
    summarize: bool = True
