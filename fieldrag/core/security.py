"""Access control filtering for retrieval candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Tuple

from fieldrag.models.document import ACCESS_LEVEL_ORDER, AccessLevel, Document

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_LEVELS: FrozenSet[AccessLevel] = frozenset({AccessLevel.PUBLIC, AccessLevel.INTERNAL})


@dataclass(frozen=True)
class RequesterContext:
    """Identity and clearance of the caller issuing a search."""

    user_id: Optional[str] = None
    allowed_access_levels: FrozenSet[AccessLevel] = field(default_factory=lambda: DEFAULT_ALLOWED_LEVELS)
    department: Optional[str] = None

    @classmethod
    def with_clearance(
        cls,
        level: AccessLevel | str,
        *,
        user_id: Optional[str] = None,
        department: Optional[str] = None,
    ) -> "RequesterContext":
        """Allow every access level up to and including ``level``."""

        clearance = AccessLevel.parse(level)
        allowed = frozenset(item for item in ACCESS_LEVEL_ORDER if clearance.covers(item))
        return cls(user_id=user_id, allowed_access_levels=allowed, department=department)

    def allows(self, level: AccessLevel) -> bool:
        return level in self.allowed_access_levels


def can_access(document: Document, requester: RequesterContext) -> bool:
    metadata = document.metadata
    if metadata.access_level is not None and not requester.allows(metadata.access_level):
        return False
    if metadata.department and requester.department and metadata.department != requester.department:
        return False
    if metadata.user_id and requester.user_id and metadata.user_id != requester.user_id:
        return False
    return True


def filter_documents(documents: Iterable[Document], requester: RequesterContext) -> Tuple[Document, ...]:
    """Return the documents visible to ``requester``, preserving order."""

    visible = tuple(document for document in documents if can_access(document, requester))
    logger.debug(
        "Access filter kept %s documents for requester %s",
        len(visible),
        requester.user_id or "<anonymous>",
    )
    return visible


__all__ = [
    "DEFAULT_ALLOWED_LEVELS",
    "RequesterContext",
    "can_access",
    "filter_documents",
]
