"""Processing status transitions for uploaded documents.

A document starts out ``uploaded``. Each processing attempt overwrites the
status with exactly one outcome, ``processed`` or ``failed``; there is no
history. A successful run with zero transactions is still ``processed``,
while a failed run has no transaction count at all.
"""

from datetime import datetime, timezone

from fintrack.models import ProcessingState, ProcessingStatus


def initial_status() -> ProcessingStatus:
    """Status of a freshly uploaded (or manually reset) document."""
    return ProcessingStatus()


def mark_processed(transaction_count: int | None, now: datetime | None = None) -> ProcessingStatus:
    """Status after a successful run that produced ``transaction_count`` transactions."""
    if transaction_count is not None and transaction_count < 0:
        raise ValueError(f"transaction_count must be >= 0, got {transaction_count}")
    return ProcessingStatus(
        is_processed=True,
        processed_at=now or datetime.now(timezone.utc),
        transaction_count=transaction_count,
    )


def mark_failed(reason: str) -> ProcessingStatus:
    """Status after a failed run."""
    return ProcessingStatus(failure_reason=reason or "Processing failed")


def status_for(
    is_processed: bool, transaction_count: int | None, failure_reason: str | None = None
) -> ProcessingStatus:
    """Build the next status from the collaborator-facing (is_processed, count) pair.

    ``is_processed=False`` without a reason resets the document to ``uploaded``.
    A manual override may mark a document processed without a count.
    """
    if is_processed:
        return mark_processed(transaction_count)
    if failure_reason:
        return mark_failed(failure_reason)
    return initial_status()


def state_of(status: ProcessingStatus) -> ProcessingState:
    """Derive the externally visible state of a status record."""
    return status.state
