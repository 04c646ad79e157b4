"""Run tracking for document processing.

This module provides a thread-safe, per-document single-flight guard plus
progress reporting for processing runs, with TTL-based cleanup of finished
entries to prevent memory leaks.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Any

from fintrack.config import settings

logger = logging.getLogger(__name__)

# Thread-safe run tracking keyed by document id
_run_progress: dict[int, dict[str, Any]] = {}
_progress_lock = threading.Lock()


def _cleanup_stale_entries() -> None:
    """Remove finished entries older than the TTL. Caller holds the lock."""
    current_time = time.time()
    stale_keys = [
        document_id
        for document_id, data in _run_progress.items()
        if not data["_active"] and current_time - data["_updated_at"] > settings.progress_ttl_seconds
    ]

    for key in stale_keys:
        del _run_progress[key]
        logger.debug(f"Cleaned up stale progress entry for document {key}")


def claim_run(document_id: int) -> bool:
    """
    Claim the processing slot for a document.

    Args:
        document_id: Document to process

    Returns:
        True if the caller now owns the run, False if one is already active
    """
    with _progress_lock:
        _cleanup_stale_entries()

        existing = _run_progress.get(document_id)
        if existing is not None and existing["_active"]:
            return False

        now = time.time()
        _run_progress[document_id] = {
            "stage": "queued",
            "message": "Waiting for a worker",
            "details": {},
            "timestamp": datetime.now().isoformat(),
            "_active": True,
            "_created_at": now,
            "_updated_at": now,
        }

    logger.debug(f"Claimed processing run for document {document_id}")
    return True


def update_progress(
    document_id: int,
    stage: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Update the progress of an active run.

    Args:
        document_id: Document being processed
        stage: Current stage ("queued", "extracting", "parsing", "saving")
        message: Human-readable status message
        details: Optional additional details
    """
    with _progress_lock:
        existing = _run_progress.get(document_id)
        if existing is None:
            return
        existing.update(
            stage=stage,
            message=message,
            details=details or {},
            timestamp=datetime.now().isoformat(),
            _updated_at=time.time(),
        )

    logger.info(f"[PROGRESS] document {document_id} -> {stage} - {message}")


def release_run(
    document_id: int,
    stage: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Mark a run as finished so the document can be processed again.

    Args:
        document_id: Document that was processed
        stage: Final stage ("complete", "error", "cancelled")
        message: Human-readable outcome
        details: Optional additional details
    """
    with _progress_lock:
        existing = _run_progress.get(document_id)
        if existing is None:
            return
        existing.update(
            stage=stage,
            message=message,
            details=details or {},
            timestamp=datetime.now().isoformat(),
            _active=False,
            _updated_at=time.time(),
        )

    logger.debug(f"Released processing run for document {document_id} ({stage})")


def is_run_active(document_id: int) -> bool:
    """Check whether a run for the document is queued or in progress."""
    with _progress_lock:
        data = _run_progress.get(document_id)
        return data is not None and data["_active"]


def get_progress(document_id: int) -> dict[str, Any] | None:
    """
    Get current run progress.

    Args:
        document_id: Document to look up

    Returns:
        Progress data dict or None if not found
    """
    with _progress_lock:
        data = _run_progress.get(document_id)
        if data is None:
            return None

        # Return a copy without internal fields
        progress = {k: v for k, v in data.items() if not k.startswith("_")}
        progress["active"] = data["_active"]
        return progress


def clear_progress(document_id: int) -> None:
    """
    Drop tracking data for a document, active or not.

    Args:
        document_id: Document to forget
    """
    with _progress_lock:
        if document_id in _run_progress:
            del _run_progress[document_id]
            logger.debug(f"Cleared progress for document {document_id}")


def get_all_active_runs() -> list[int]:
    """
    Get the documents with a queued or running run.

    Returns:
        List of document ids
    """
    with _progress_lock:
        return [document_id for document_id, data in _run_progress.items() if data["_active"]]
