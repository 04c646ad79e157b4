"""Document processing pipeline: extract text, parse transactions, record status."""

import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import Protocol

from fintrack.config import settings
from fintrack.db.sqlite import DocumentNotFoundError
from fintrack.models import Document, ParsedTransaction, ProcessingResult, ProcessingState, StoredTransaction
from fintrack.parsers.classifier import parse_transactions
from fintrack.parsers.text_extractor import ExtractionError, extract_text
from fintrack.services.progress import claim_run, release_run, update_progress

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Persistence collaborator used by the pipeline."""

    def create_bulk(self, document_id: int | None, transactions: list[ParsedTransaction]) -> list[StoredTransaction]: ...

    def update_status(
        self,
        document_id: int,
        is_processed: bool,
        transaction_count: int | None = None,
        failure_reason: str | None = None,
    ) -> Document: ...


class AlreadyProcessingError(Exception):
    """Raised when a run for the same document is already queued or running."""

    def __init__(self, document_id: int):
        super().__init__(f"Document {document_id} is already being processed")
        self.document_id = document_id


class ProcessorBusyError(Exception):
    """Raised when the processing backlog is full."""

    pass


class PersistenceError(Exception):
    """Raised when storing transactions or status fails."""

    pass


async def _fail(store: DocumentStore, document_id: int, reason: str) -> ProcessingResult:
    logger.error(f"Processing failed for document {document_id}: {reason}")
    await asyncio.to_thread(store.update_status, document_id, False, None, reason)
    return ProcessingResult(document_id=document_id, state=ProcessingState.FAILED, failure_reason=reason)


async def _persist(store: DocumentStore, document_id: int, transactions: list[ParsedTransaction]) -> int:
    """Store a run's transactions, then mark the document processed."""
    try:
        stored = await asyncio.to_thread(store.create_bulk, document_id, transactions)
        await asyncio.to_thread(store.update_status, document_id, True, len(stored))
    except DocumentNotFoundError:
        raise
    except Exception as e:
        reason = f"Could not save results: {e}"
        logger.error(f"Processing failed for document {document_id}: {reason}")
        try:
            await asyncio.to_thread(store.update_status, document_id, False, None, reason)
        except Exception as status_error:
            logger.error(f"Could not mark document {document_id} failed: {status_error}")
        raise PersistenceError(reason) from e
    return len(stored)


async def run_pipeline(
    document_id: int,
    file_path: Path | str,
    store: DocumentStore,
    timeout: float | None = None,
) -> ProcessingResult:
    """
    Run extraction, parsing and persistence for one document.

    The caller must hold the run claim for ``document_id``. Extraction
    failures (including timeouts) mark the document failed and return a
    failed result. Persistence failures are raised as ``PersistenceError``
    after a best-effort attempt to mark the document failed.
    """
    timeout = settings.extraction_timeout_seconds if timeout is None else timeout

    update_progress(document_id, "extracting", "Extracting text...")
    try:
        text = await asyncio.wait_for(asyncio.to_thread(extract_text, file_path), timeout=timeout)
    except ExtractionError as e:
        return await _fail(store, document_id, str(e))
    except asyncio.TimeoutError:
        return await _fail(store, document_id, f"Text extraction timed out after {timeout:g}s")

    update_progress(document_id, "parsing", "Parsing transactions...")
    transactions = await asyncio.to_thread(parse_transactions, text)

    update_progress(document_id, "saving", f"Saving {len(transactions)} transactions...")
    persist = asyncio.ensure_future(_persist(store, document_id, transactions))
    try:
        count = await asyncio.shield(persist)
    except asyncio.CancelledError:
        # Rows and status land together; finish the write before stopping
        while not persist.done():
            try:
                await asyncio.wait({persist})
            except asyncio.CancelledError:
                continue
        if not persist.cancelled() and persist.exception() is not None:
            logger.error(f"Saving results for cancelled document {document_id} failed: {persist.exception()}")
        raise

    logger.info(f"Processed document {document_id}: {count} transactions")
    return ProcessingResult(
        document_id=document_id,
        state=ProcessingState.PROCESSED,
        transaction_count=count,
    )


def _release(document_id: int, task: "asyncio.Task[ProcessingResult]") -> None:
    """Release the run claim according to how the task ended."""
    if task.cancelled():
        logger.info(f"Processing cancelled for document {document_id}")
        release_run(document_id, "cancelled", "Processing cancelled")
        return

    error = task.exception()
    if error is not None:
        logger.error(f"Background processing error for document {document_id}: {error}", exc_info=error)
        release_run(document_id, "error", f"Error: {error}")
        return

    result = task.result()
    if result.state == ProcessingState.PROCESSED:
        release_run(
            document_id,
            "complete",
            f"Complete! Found {result.transaction_count} transactions",
            {"transaction_count": result.transaction_count},
        )
    else:
        release_run(document_id, "error", f"Error: {result.failure_reason}")


async def process_document(
    document_id: int,
    file_path: Path | str,
    store: DocumentStore,
    timeout: float | None = None,
) -> ProcessingResult:
    """
    Process one document under the per-document single-flight guard.

    Raises:
        AlreadyProcessingError: If a run for the document is already active
    """
    if not claim_run(document_id):
        raise AlreadyProcessingError(document_id)

    task = asyncio.ensure_future(run_pipeline(document_id, file_path, store, timeout))
    task.add_done_callback(partial(_release, document_id))
    return await task


class DocumentProcessor:
    """
    Bounded worker pool for document processing.

    At most ``max_workers`` runs execute at once; up to ``max_pending`` more
    wait for a slot. Submitting beyond that raises ``ProcessorBusyError``.
    """

    def __init__(
        self,
        store: DocumentStore,
        max_workers: int | None = None,
        max_pending: int | None = None,
        timeout: float | None = None,
    ):
        self.store = store
        self.max_workers = max_workers or settings.max_concurrent_runs
        self.max_pending = settings.max_pending_runs if max_pending is None else max_pending
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(self.max_workers)
        self._tasks: dict[int, asyncio.Task[ProcessingResult]] = {}

    @property
    def backlog(self) -> int:
        """Number of queued or running tasks."""
        return len(self._tasks)

    def submit(self, document_id: int, file_path: Path | str) -> "asyncio.Task[ProcessingResult]":
        """
        Queue a document for background processing.

        Raises:
            ProcessorBusyError: If the backlog is full
            AlreadyProcessingError: If the document is already queued or running
        """
        if self.backlog >= self.max_workers + self.max_pending:
            raise ProcessorBusyError(f"Processing backlog is full ({self.backlog} documents)")

        if document_id in self._tasks or not claim_run(document_id):
            raise AlreadyProcessingError(document_id)

        task = asyncio.create_task(
            self._run(document_id, file_path),
            name=f"process-document-{document_id}",
        )
        self._tasks[document_id] = task
        task.add_done_callback(partial(self._on_done, document_id))
        logger.info(f"Queued document {document_id} for processing (backlog {self.backlog})")
        return task

    async def run(self, document_id: int, file_path: Path | str) -> ProcessingResult:
        """Process a document and wait for the result."""
        return await self.submit(document_id, file_path)

    def cancel(self, document_id: int) -> bool:
        """Cancel a queued or running task. Returns False if there is none."""
        task = self._tasks.get(document_id)
        if task is None or task.done():
            return False
        return task.cancel()

    async def shutdown(self) -> None:
        """Cancel every outstanding task and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, document_id: int, file_path: Path | str) -> ProcessingResult:
        async with self._semaphore:
            return await run_pipeline(document_id, file_path, self.store, self.timeout)

    def _on_done(self, document_id: int, task: "asyncio.Task[ProcessingResult]") -> None:
        if self._tasks.get(document_id) is task:
            del self._tasks[document_id]
        _release(document_id, task)
