"""
Parser router - detects the statement format and dispatches to a parser.
"""

import logging
from typing import Optional

from ..formats import FormatDetector
from ..schemas.documents import (
    DocumentType,
    ImageDocument,
    ImportResult,
    ParseError,
    PdfDocument,
    UnknownDocument,
)
from .base import BaseParser
from .csv_parser import CsvParser
from .ocr_extractor import OCRTextExtractor
from .ofx_parser import OfxParser
from .qif_parser import QifParser

logger = logging.getLogger(__name__)


class ParserRouter:
    """
    Routes raw statement content to the matching parser.

    Parsers are consulted in order:
    1. OFX / QFX - structured, highest confidence
    2. QIF
    3. CSV with detected delimiter
    4. OCR text heuristics - PDF and image documents, text supplied by caller
    """

    def __init__(
        self,
        detector: Optional[FormatDetector] = None,
        parsers: Optional[list[BaseParser]] = None,
    ):
        self.detector = detector or FormatDetector()
        self.parsers: list[BaseParser] = parsers or [
            OfxParser(),
            QifParser(),
            CsvParser(),
            OCRTextExtractor(),
        ]

    def parser_for(self, document_type: DocumentType) -> Optional[BaseParser]:
        for parser in self.parsers:
            if parser.can_parse(document_type):
                return parser
        return None

    def parse(
        self,
        filename: str,
        content: bytes,
        extracted_text: Optional[str] = None,
    ) -> ImportResult:
        """
        Detect the format of a statement and parse it.

        Args:
            filename: Original file name, used when content is ambiguous
            content: Raw file bytes
            extracted_text: OCR or text-layer output for PDF/image documents

        Returns:
            ParseSuccess, ParseError or NeedsUserInput
        """
        document_type = self.detector.detect(filename, content)
        return self.parse_as(document_type, content, extracted_text)

    def parse_as(
        self,
        document_type: DocumentType,
        content: bytes,
        extracted_text: Optional[str] = None,
    ) -> ImportResult:
        """Parse content as an already-detected document type."""
        if isinstance(document_type, UnknownDocument):
            return ParseError("Unsupported file format", document_type)

        parser = self.parser_for(document_type)
        if parser is None:
            return ParseError(f"No parser for {document_type.kind} documents", document_type)

        if isinstance(document_type, (PdfDocument, ImageDocument)):
            if not extracted_text or not extracted_text.strip():
                return ParseError(
                    f"{document_type.kind.upper()} documents require extracted text",
                    document_type,
                )
            text = extracted_text
            if isinstance(document_type, PdfDocument) and document_type.bank_signature is None:
                bank = self.detector.detect_bank_signature(text)
                if bank is not None:
                    document_type = PdfDocument(bank.id)
        else:
            text = self.detector.decode(content)
            if text is None:
                return ParseError("Unable to decode file content", document_type)

        logger.info(f"Parsing {document_type.kind} document with {parser.name} parser")
        return parser.parse(text, document_type)

