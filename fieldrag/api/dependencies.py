from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from fieldrag.core.exceptions import ValidationError
from fieldrag.core.security import RequesterContext
from fieldrag.knowledge.service import RetrievalService
from fieldrag.utils.validators import optional_header


def get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


async def get_requester(
    x_user_id: Optional[str] = Header(None),
    x_department: Optional[str] = Header(None),
    x_access_level: Optional[str] = Header(None),
) -> RequesterContext:
    """Build the requester from gateway-supplied identity headers."""

    user_id = optional_header(x_user_id)
    department = optional_header(x_department)
    access_level = optional_header(x_access_level)
    if access_level is None:
        return RequesterContext(user_id=user_id, department=department)
    try:
        return RequesterContext.with_clearance(access_level, user_id=user_id, department=department)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
