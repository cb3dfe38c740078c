from .document import (
    AccessLevel,
    Document,
    DocumentMetadata,
    DocumentMetadataInput,
    DocumentType,
    MediaType,
    Namespace,
)
from .search import SearchConfig, SearchMode

__all__ = [
    "AccessLevel",
    "Document",
    "DocumentMetadata",
    "DocumentMetadataInput",
    "DocumentType",
    "MediaType",
    "Namespace",
    "SearchConfig",
    "SearchMode",
]
