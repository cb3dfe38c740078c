"""Built-in field-operations corpus for development and demos."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from fieldrag.core.exceptions import EmbeddingFailure
from fieldrag.knowledge.store.document_store import DocumentStore

logger = logging.getLogger(__name__)

SAMPLE_CORPUS: List[Dict[str, Any]] = [
    {
        "content": (
            "2025-06-03 09:15:00 [ERROR] Database connection failed: Connection timeout\n"
            "2025-06-03 09:15:01 [WARNING] Retrying database connection (attempt 1/3)\n"
            "2025-06-03 09:15:02 [ERROR] Authentication failed for user admin\n"
            "2025-06-03 09:15:03 [INFO] System startup completed"
        ),
        "metadata": {"namespace": "logs", "type": "log", "source": "sample_data"},
    },
    {
        "content": (
            "2025-06-03 09:19:01 [CRITICAL] Memory usage exceeded 95%\n"
            "2025-06-03 09:19:02 [ERROR] OutOfMemoryError in application module\n"
            "2025-06-03 09:19:03 [WARNING] Performance degradation detected\n"
            "2025-06-03 09:19:04 [INFO] Emergency cleanup initiated"
        ),
        "metadata": {"namespace": "logs", "type": "log", "source": "sample_data"},
    },
    {
        "content": (
            "2025-06-03 08:30:00 [ERROR] Network connectivity lost\n"
            "2025-06-03 08:30:01 [WARNING] Switching to backup network\n"
            "2025-06-03 08:30:02 [INFO] Backup network established\n"
            "2025-06-03 08:30:03 [ERROR] DNS resolution failed for example.com"
        ),
        "metadata": {"namespace": "logs", "type": "log", "source": "sample_data"},
    },
    {
        "content": (
            "Log analysis: 16 lines, 10 errors or warnings. Main issues: database connection errors (3), "
            "out of memory errors (2), network connectivity problems (2). Recommended: review database "
            "connection timeout settings, optimize memory usage, add network redundancy."
        ),
        "metadata": {"namespace": "knowledge", "type": "analysis", "source": "sample_analysis"},
    },
    {
        "content": (
            "Error trend analysis for the last 24 hours: database errors cluster around 09:15, memory errors "
            "around 09:19 and network errors around 08:30. Errors concentrate at the start of the business day."
        ),
        "metadata": {"namespace": "knowledge", "type": "analysis", "source": "sample_analysis"},
    },
    {
        "content": (
            "Incident report: main application outage from 09:19 to 09:25. Root cause was a memory leak that "
            "overloaded the host. The application was restarted and memory tuned; periodic memory monitoring "
            "and cleanup jobs were added to prevent recurrence."
        ),
        "metadata": {"namespace": "projects", "type": "report", "source": "sample_report"},
    },
    {
        "content": (
            "Security policy: rotate service account passwords every 90 days. Repeated authentication failures "
            "for the admin account must be escalated to the security on-call within 15 minutes."
        ),
        "metadata": {
            "namespace": "security",
            "type": "policy",
            "source": "sample_policy",
            "access_level": "internal",
        },
    },
    {
        "content": (
            "Field manual: to recover a pump controller after a network loss, power-cycle the gateway, confirm "
            "the backup link LED is green, then resync the controller clock before restarting telemetry."
        ),
        "metadata": {
            "namespace": "internal",
            "type": "internal_text",
            "source": "sample_manual",
            "department": "field-service",
            "access_level": "internal",
            "media_type": "text",
        },
    },
    {
        "content": (
            "Transcript of training video: replacing the controller fan. Remove the front panel, unplug the fan "
            "harness, swap the unit and verify airflow direction before closing the panel."
        ),
        "metadata": {
            "namespace": "internal",
            "type": "internal_video",
            "source": "sample_training",
            "access_level": "internal",
            "media_type": "video",
            "media_url": "https://media.local/training/controller-fan.mp4",
            "file_name": "controller-fan.mp4",
            "transcription": "Remove the front panel, unplug the fan harness, swap the unit.",
        },
    },
]


async def seed_sample_corpus(
    store: DocumentStore,
    *,
    user_id: Optional[str] = None,
    corpus: Optional[Sequence[Dict[str, Any]]] = None,
) -> int:
    """Add the sample corpus to ``store``; returns the number of documents added."""

    added = 0
    for item in corpus or SAMPLE_CORPUS:
        metadata = dict(item["metadata"])
        if user_id and metadata["namespace"] == "logs":
            metadata["user_id"] = user_id
        try:
            await store.add(item["content"], metadata)
        except EmbeddingFailure as exc:
            logger.warning("Skipping sample document from %s: %s", metadata["source"], exc)
            continue
        added += 1
    logger.info("Seeded %s sample documents", added)
    return added


__all__ = ["SAMPLE_CORPUS", "seed_sample_corpus"]
