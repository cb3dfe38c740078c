"""Audit logging utilities."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, List, Mapping

logger = logging.getLogger("fieldrag.audit")


class AuditLogger:
    """Structured audit logger emitting one JSON object per record."""

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []
        self.keep_records = False

    def record(self, event: str, actor: str, details: Dict[str, Any]) -> None:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "actor": actor,
            "details": details,
        }
        if self.keep_records:
            self.records.append(payload)
        logger.info(json.dumps(payload, default=str))


audit_logger = AuditLogger()


def audit_log(func: Callable) -> Callable:
    """Decorator that emits structured audit records around a coroutine."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        context_logger = _resolve_logger(args)
        actor = _resolve_actor(kwargs)
        metadata = _build_metadata(func, kwargs)
        context_logger.record("start", actor, metadata)
        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            context_logger.record("error", actor, metadata | {"error": str(exc)})
            raise
        context_logger.record("success", actor, metadata)
        return result

    return wrapper


def _resolve_logger(args: tuple) -> AuditLogger:
    # Bound methods may carry their own audit logger.
    if args and isinstance(getattr(args[0], "audit_logger", None), AuditLogger):
        return args[0].audit_logger
    return audit_logger


def _resolve_actor(kwargs: Dict[str, Any]) -> str:
    requester = kwargs.get("requester")
    if requester is not None and getattr(requester, "user_id", None):
        return str(requester.user_id)
    return "anonymous"


def _build_metadata(func: Callable, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"action": func.__qualname__}
    mode = kwargs.get("mode")
    if mode is not None:
        metadata["mode"] = getattr(mode, "value", mode)
    document_metadata = kwargs.get("metadata")
    if isinstance(document_metadata, Mapping):
        namespace = document_metadata.get("namespace")
    else:
        namespace = getattr(document_metadata, "namespace", None)
    if namespace is not None:
        metadata["namespace"] = getattr(namespace, "value", namespace)
    return metadata


__all__ = ["audit_logger", "audit_log", "AuditLogger"]
