"""Tests for the document processing pipeline and worker pool."""

import asyncio
import sqlite3
import threading
import time
from unittest.mock import ANY, MagicMock, patch

import pytest

from fintrack.models import ProcessingState
from fintrack.parsers.classifier import parse_transactions
from fintrack.parsers.text_extractor import ExtractionError
from fintrack.services.processing import (
    AlreadyProcessingError,
    DocumentProcessor,
    PersistenceError,
    ProcessorBusyError,
    process_document,
)
from fintrack.services.progress import claim_run, get_progress, is_run_active

STATEMENT_TEXT = """Tue, Oct. 14, 2025 -$45.67
Grocery Store
Wed, Oct. 15, 2025 +$100.00
Payroll
10/14/2025 Coffee Shop $4.50
"""

EXTRACT = "fintrack.services.processing.extract_text"


def make_document(db):
    return db.create_document("statement.pdf", "/tmp/statement.pdf", "application/pdf", 1234)


def blocking_extractor(release: threading.Event, text: str = STATEMENT_TEXT):
    """Extractor stand-in that blocks until ``release`` is set."""

    def _extract(path):
        release.wait(timeout=5)
        return text

    return _extract


@pytest.mark.asyncio
class TestProcessDocument:
    """Test a single pipeline run."""

    async def test_success_records_count(self, db):
        """Should store transactions and mark the document processed."""
        document = make_document(db)

        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            result = await process_document(document.id, document.file_path, db)

        assert result.state == ProcessingState.PROCESSED
        assert result.transaction_count == 2

        stored = db.get_document(document.id)
        assert stored.is_processed is True
        assert stored.processed_at is not None
        assert stored.transaction_count == len(parse_transactions(STATEMENT_TEXT))
        assert len(db.list_transactions(document_id=document.id)) == 2

    async def test_empty_document_is_zero_count_success(self, db):
        """Should report success with zero transactions for empty text."""
        document = make_document(db)

        with patch(EXTRACT, return_value=""):
            result = await process_document(document.id, document.file_path, db)

        assert result.state == ProcessingState.PROCESSED
        assert result.transaction_count == 0
        assert db.get_document(document.id).transaction_count == 0

    async def test_extraction_failure_marks_failed(self, db):
        """Should mark the document failed and keep the reason."""
        document = make_document(db)

        with patch(EXTRACT, side_effect=ExtractionError("PDF text extraction failed: No /Root object")):
            result = await process_document(document.id, document.file_path, db)

        assert result.state == ProcessingState.FAILED
        assert "No /Root object" in result.failure_reason

        stored = db.get_document(document.id)
        assert stored.is_processed is False
        assert stored.transaction_count is None
        assert "No /Root object" in stored.failure_reason
        assert db.get_transaction_count() == 0

    async def test_extraction_timeout_marks_failed(self, db):
        """Should give up on slow extraction."""
        document = make_document(db)

        def slow_extract(path):
            time.sleep(0.3)
            return STATEMENT_TEXT

        with patch(EXTRACT, side_effect=slow_extract):
            result = await process_document(document.id, document.file_path, db, timeout=0.05)

        assert result.state == ProcessingState.FAILED
        assert "timed out" in result.failure_reason
        assert db.get_document(document.id).state == ProcessingState.FAILED

    async def test_failure_after_success_overwrites_status(self, db):
        """Should overwrite a previous successful outcome."""
        document = make_document(db)
        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            await process_document(document.id, document.file_path, db)

        with patch(EXTRACT, side_effect=ExtractionError("gone")):
            await process_document(document.id, document.file_path, db)

        stored = db.get_document(document.id)
        assert stored.state == ProcessingState.FAILED
        assert stored.processed_at is None

    async def test_rerun_does_not_duplicate_transactions(self, db):
        """Should replace the previous run's transactions."""
        document = make_document(db)

        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            await process_document(document.id, document.file_path, db)
            await process_document(document.id, document.file_path, db)

        assert db.get_transaction_count() == 2

    async def test_persistence_failure_is_raised(self):
        """Should raise PersistenceError and try to mark the document failed."""
        store = MagicMock()
        store.create_bulk.side_effect = sqlite3.OperationalError("disk I/O error")

        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            with pytest.raises(PersistenceError, match="disk I/O error"):
                await process_document(1, "/tmp/statement.pdf", store)

        store.update_status.assert_called_once_with(1, False, None, ANY)
        assert is_run_active(1) is False

    async def test_rejects_concurrent_run_of_same_document(self, db):
        """Should refuse to start while the document is claimed."""
        document = make_document(db)
        claim_run(document.id)

        with pytest.raises(AlreadyProcessingError):
            await process_document(document.id, document.file_path, db)

    async def test_releases_claim_and_reports_progress(self, db):
        """Should release the claim and keep the final progress."""
        document = make_document(db)

        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            await process_document(document.id, document.file_path, db)

        assert is_run_active(document.id) is False
        progress = get_progress(document.id)
        assert progress["stage"] == "complete"
        assert progress["details"] == {"transaction_count": 2}


@pytest.mark.asyncio
class TestDocumentProcessor:
    """Test the bounded worker pool."""

    async def test_submit_runs_in_background(self, db):
        """Should process submitted documents."""
        document = make_document(db)
        processor = DocumentProcessor(db, max_workers=2, max_pending=2)

        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            task = processor.submit(document.id, document.file_path)
            result = await task

        assert result.transaction_count == 2
        assert processor.backlog == 0
        assert db.get_document(document.id).is_processed is True

    async def test_run_waits_for_result(self, db):
        """Should return the outcome of a synchronous run."""
        document = make_document(db)
        processor = DocumentProcessor(db)

        with patch(EXTRACT, return_value=""):
            result = await processor.run(document.id, document.file_path)

        assert result.state == ProcessingState.PROCESSED
        assert result.transaction_count == 0

    async def test_rejects_duplicate_submission(self, db):
        """Should not queue the same document twice."""
        document = make_document(db)
        processor = DocumentProcessor(db, max_workers=1, max_pending=4)
        release = threading.Event()

        with patch(EXTRACT, side_effect=blocking_extractor(release)):
            task = processor.submit(document.id, document.file_path)
            try:
                with pytest.raises(AlreadyProcessingError):
                    processor.submit(document.id, document.file_path)
            finally:
                release.set()
            await task

        assert db.get_document(document.id).transaction_count == 2

    async def test_backpressure_when_backlog_full(self, db):
        """Should reject submissions beyond workers plus pending slots."""
        documents = [make_document(db) for _ in range(3)]
        processor = DocumentProcessor(db, max_workers=1, max_pending=1)
        release = threading.Event()

        with patch(EXTRACT, side_effect=blocking_extractor(release)):
            tasks = [processor.submit(d.id, d.file_path) for d in documents[:2]]
            await asyncio.sleep(0.05)
            try:
                assert get_progress(documents[0].id)["stage"] == "extracting"
                assert get_progress(documents[1].id)["stage"] == "queued"
                with pytest.raises(ProcessorBusyError):
                    processor.submit(documents[2].id, documents[2].file_path)
            finally:
                release.set()
            await asyncio.gather(*tasks)

        assert all(db.get_document(d.id).is_processed for d in documents[:2])
        assert db.get_document(documents[2].id).state == ProcessingState.UPLOADED

    async def test_cancel_leaves_status_untouched(self, db):
        """Should cancel an in-flight run without recording an outcome."""
        document = make_document(db)
        processor = DocumentProcessor(db)
        release = threading.Event()

        with patch(EXTRACT, side_effect=blocking_extractor(release)):
            task = processor.submit(document.id, document.file_path)
            await asyncio.sleep(0.05)
            try:
                assert processor.cancel(document.id) is True
                with pytest.raises(asyncio.CancelledError):
                    await task
            finally:
                release.set()

        assert db.get_document(document.id).state == ProcessingState.UPLOADED
        assert get_progress(document.id)["stage"] == "cancelled"
        assert is_run_active(document.id) is False
        assert processor.cancel(document.id) is False

    async def test_cancel_during_save_keeps_rows_and_status_consistent(self, db):
        """Should finish storing rows and status before a cancel takes effect."""
        document = make_document(db)
        entered = threading.Event()
        release = threading.Event()
        store = MagicMock(wraps=db)

        def slow_create_bulk(document_id, transactions):
            entered.set()
            release.wait(timeout=5)
            return db.create_bulk(document_id, transactions)

        store.create_bulk.side_effect = slow_create_bulk
        processor = DocumentProcessor(store)

        with patch(EXTRACT, return_value=STATEMENT_TEXT):
            task = processor.submit(document.id, document.file_path)
            try:
                assert await asyncio.to_thread(entered.wait, 5)
                assert processor.cancel(document.id) is True
                await asyncio.sleep(0.05)
                assert is_run_active(document.id) is True
            finally:
                release.set()
            with pytest.raises(asyncio.CancelledError):
                await task

        stored = db.get_document(document.id)
        assert stored.state == ProcessingState.PROCESSED
        assert stored.transaction_count == 2
        assert len(db.list_transactions(document_id=document.id)) == 2
        assert is_run_active(document.id) is False

    async def test_shutdown_cancels_everything(self, db):
        """Should cancel outstanding tasks on shutdown."""
        documents = [make_document(db) for _ in range(2)]
        processor = DocumentProcessor(db, max_workers=1)
        release = threading.Event()

        with patch(EXTRACT, side_effect=blocking_extractor(release)):
            tasks = [processor.submit(d.id, d.file_path) for d in documents]
            await asyncio.sleep(0.05)
            try:
                await processor.shutdown()
            finally:
                release.set()

        assert all(task.cancelled() for task in tasks)
        assert processor.backlog == 0
