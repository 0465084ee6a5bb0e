"""
Document type classification and parser result variants.

Both hierarchies are closed: callers dispatch with ``isinstance`` on the
concrete classes defined here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .transactions import ImportedTransaction


@dataclass(frozen=True)
class DocumentType:
    """Base class for detected document types."""

    @property
    def kind(self) -> str:
        return "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}


@dataclass(frozen=True)
class CsvDocument(DocumentType):
    delimiter: str = ","
    encoding: str = "UTF-8"

    @property
    def kind(self) -> str:
        return "csv"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "delimiter": self.delimiter, "encoding": self.encoding}


@dataclass(frozen=True)
class PdfDocument(DocumentType):
    bank_signature: Optional[str] = None

    @property
    def kind(self) -> str:
        return "pdf"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "bank_signature": self.bank_signature}


@dataclass(frozen=True)
class OfxDocument(DocumentType):
    version: str = "2.2"

    @property
    def kind(self) -> str:
        return "ofx"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "version": self.version}


@dataclass(frozen=True)
class QifDocument(DocumentType):
    account_type: str = "Bank"

    @property
    def kind(self) -> str:
        return "qif"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "account_type": self.account_type}


@dataclass(frozen=True)
class ImageDocument(DocumentType):
    format: str = "JPEG"

    @property
    def kind(self) -> str:
        return "image"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "format": self.format}


@dataclass(frozen=True)
class UnknownDocument(DocumentType):
    pass


# Parser results


@dataclass(frozen=True)
class ImportResult:
    """Base class for parser results."""


@dataclass(frozen=True)
class ParseSuccess(ImportResult):
    transactions: list[ImportedTransaction]
    document_type: DocumentType
    total_confidence: float


@dataclass(frozen=True)
class ParseError(ImportResult):
    message: str
    document_type: Optional[DocumentType] = None
    partial_transactions: list[ImportedTransaction] = field(default_factory=list)


@dataclass(frozen=True)
class NeedsUserInput(ImportResult):
    """Parsing succeeded partially; the user must resolve the listed issues."""

    transactions: list[ImportedTransaction]
    document_type: DocumentType
    issues: list[str] = field(default_factory=list)
