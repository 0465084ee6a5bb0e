"""
Base parser interface.
"""

from abc import ABC, abstractmethod

from ..schemas.documents import DocumentType, ImportResult


class BaseParser(ABC):
    """
    Base class for statement parsers.

    Each parser handles one document family:
    - Delimited text (CSV/TSV)
    - OFX / QFX
    - QIF
    - OCR text from scanned statements and receipts

    Parsers never raise on malformed input; they return ``ParseError``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Parser name for logging and provenance."""
        pass

    @abstractmethod
    def can_parse(self, document_type: DocumentType) -> bool:
        """
        Check if this parser handles the given document type.

        Args:
            document_type: Type reported by the format detector

        Returns:
            True if this parser should be used
        """
        pass

    @abstractmethod
    def parse(self, content: str, document_type: DocumentType) -> ImportResult:
        """
        Parse decoded statement text.

        Args:
            content: Decoded text content
            document_type: Detected type, carrying parsing hints

        Returns:
            ParseSuccess, ParseError or NeedsUserInput
        """
        pass
