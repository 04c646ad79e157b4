"""FastAPI application for FinTrack."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import uuid4

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status

from fintrack.config import settings
from fintrack.db.sqlite import Database, DocumentNotFoundError, get_db
from fintrack.logging_setup import configure_logging
from fintrack.models import Document, ProcessingResult, ProcessingStatusUpdate, StoredTransaction
from fintrack.services.processing import (
    AlreadyProcessingError,
    DocumentProcessor,
    PersistenceError,
    ProcessorBusyError,
)
from fintrack.services.progress import get_progress

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cancel outstanding runs on shutdown."""
    configure_logging(settings.log_level)
    settings.ensure_directories()
    if settings.dev_mode:
        settings.log_config()
    yield
    processor = getattr(app.state, "processor", None)
    if processor is not None:
        await processor.shutdown()


app = FastAPI(
    title="FinTrack",
    description="Bank statement import: PDF text extraction and transaction parsing",
    version="0.1.0",
    lifespan=lifespan,
)


async def get_processor(request: Request, db: Database = Depends(get_db)) -> DocumentProcessor:
    """Process-wide document processor bound to the database."""
    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        processor = DocumentProcessor(db)
        request.app.state.processor = processor
    return processor


def _get_document_or_404(db: Database, document_id: int) -> Document:
    document = db.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@app.get("/health")
async def health_check(db: Database = Depends(get_db)):
    """Health check endpoint."""
    return {"status": "healthy", "transaction_count": db.get_transaction_count()}


@app.get("/api/imported-documents", response_model=list[Document])
async def list_documents(db: Database = Depends(get_db)):
    """Get all imported documents, newest first."""
    return db.list_documents()


@app.get("/api/imported-documents/{document_id}", response_model=Document)
async def get_document(document_id: int, db: Database = Depends(get_db)):
    """Get a single imported document."""
    return _get_document_or_404(db, document_id)


@app.post("/api/imported-documents/upload", response_model=Document, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    processor: DocumentProcessor = Depends(get_processor),
):
    """Upload a PDF statement and process it in the background."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    is_pdf = (file.content_type or "").lower() == PDF_CONTENT_TYPE or file.filename.lower().endswith(".pdf")
    if not is_pdf:
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(contents) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")

    settings.ensure_directories()
    file_path = settings.uploads_path / f"{uuid4()}_{Path(file.filename).name}"
    try:
        file_path.write_bytes(contents)
        document = db.create_document(
            file_name=file.filename,
            file_path=str(file_path),
            file_type=file.content_type or PDF_CONTENT_TYPE,
            file_size_bytes=len(contents),
        )
    except Exception as e:
        logger.exception(f"Upload failed for {file.filename}")
        raise HTTPException(status_code=500, detail=f"Error uploading file: {str(e)}")

    try:
        processor.submit(document.id, file_path)
    except (ProcessorBusyError, AlreadyProcessingError) as e:
        # The document is stored; it can be processed later via /process
        logger.warning(f"Document {document.id} not queued: {e}")

    return document


@app.put("/api/imported-documents/{document_id}/processing-status", response_model=Document)
async def update_processing_status(
    document_id: int,
    request: ProcessingStatusUpdate,
    db: Database = Depends(get_db),
):
    """Manually override a document's processing status."""
    try:
        return db.update_status(document_id, request.is_processed, request.transaction_count)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")


@app.post("/api/imported-documents/{document_id}/process", response_model=ProcessingResult)
async def process_document(
    document_id: int,
    db: Database = Depends(get_db),
    processor: DocumentProcessor = Depends(get_processor),
):
    """Re-run extraction and parsing for a document and wait for the outcome."""
    document = _get_document_or_404(db, document_id)

    try:
        return await processor.run(document.id, document.file_path)
    except AlreadyProcessingError:
        raise HTTPException(status_code=409, detail="Document is already being processed")
    except ProcessorBusyError:
        raise HTTPException(status_code=503, detail="Too many documents are being processed, try again later")
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Error processing document: {str(e)}")


@app.get("/api/imported-documents/{document_id}/progress")
async def get_document_progress(document_id: int, db: Database = Depends(get_db)):
    """Get in-memory progress of the document's latest run."""
    _get_document_or_404(db, document_id)
    progress = get_progress(document_id)
    if progress is None:
        return {"document_id": document_id, "active": False, "stage": None}
    return {"document_id": document_id, **progress}


@app.delete("/api/imported-documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: int,
    db: Database = Depends(get_db),
    processor: DocumentProcessor = Depends(get_processor),
):
    """Soft-delete a document, cancelling any in-flight processing."""
    if not db.delete_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    if processor.cancel(document_id):
        logger.info(f"Cancelled processing for deleted document {document_id}")


@app.get("/api/transactions", response_model=list[StoredTransaction])
async def list_transactions(document_id: int | None = None, limit: int = 1000, db: Database = Depends(get_db)):
    """Get stored transactions, optionally for one document."""
    return db.list_transactions(document_id=document_id, limit=limit)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fintrack.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.dev_mode,
    )
