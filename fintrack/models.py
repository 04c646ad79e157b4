"""Data models for FinTrack."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class RawLine:
    """A single line of extracted text and its position in the document."""

    text: str
    index: int


class ParsedTransaction(BaseModel):
    """A transaction reconstructed from statement text, before persistence."""

    model_config = ConfigDict(frozen=True)

    date: date
    amount: Decimal = Field(ge=0)  # Sign is consumed by the parser, never stored
    description: str = ""

    @field_validator("amount")
    @classmethod
    def quantize_amount(cls, value: Decimal) -> Decimal:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class ProcessingState(str, Enum):
    """Externally visible processing states of a document."""

    UPLOADED = "uploaded"
    PROCESSED = "processed"
    FAILED = "failed"


class ProcessingStatus(BaseModel):
    """Per-document record of the last extraction-and-parse run."""

    is_processed: bool = False
    processed_at: datetime | None = None
    transaction_count: int | None = None
    failure_reason: str | None = None

    @property
    def state(self) -> ProcessingState:
        if self.is_processed:
            return ProcessingState.PROCESSED
        if self.failure_reason:
            return ProcessingState.FAILED
        return ProcessingState.UPLOADED


class Document(BaseModel):
    """An uploaded statement document."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    file_path: str
    file_type: str
    file_size_bytes: int
    uploaded_at: datetime
    is_processed: bool = False
    processed_at: datetime | None = None
    transaction_count: int | None = None
    failure_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def status(self) -> ProcessingStatus:
        return ProcessingStatus(
            is_processed=self.is_processed,
            processed_at=self.processed_at,
            transaction_count=self.transaction_count,
            failure_reason=self.failure_reason,
        )

    @computed_field  # type: ignore[misc]
    @property
    def state(self) -> ProcessingState:
        return self.status.state


class StoredTransaction(BaseModel):
    """A transaction as persisted by the transaction store."""

    id: int
    document_id: int | None = None
    date: date
    amount: Decimal
    description: str
    created_at: datetime
    updated_at: datetime


class ProcessingResult(BaseModel):
    """Outcome of one processing run for a document."""

    document_id: int
    state: ProcessingState
    transaction_count: int | None = None
    failure_reason: str | None = None


class ProcessingStatusUpdate(BaseModel):
    """Manual processing status override request."""

    is_processed: bool
    transaction_count: int | None = Field(default=None, ge=0)
