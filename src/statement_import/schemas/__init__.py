"""
Data model for the import pipeline.

Provides:
- Transaction shapes (imported, partial OCR, persisted)
- Document type and parser result variants
- Duplicate status, review rows, preview and progress states
- Categorization results and learning records
"""

from .categorization import (
    HIGH_CONFIDENCE_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
    CategorizationResult,
    CategorizationSource,
    CategoryCorrection,
    CorrectionSaved,
    LearnedMerchant,
    LearnedMerchantSource,
    LearnResult,
    MappingCreated,
    MappingUpdated,
    TransactionForCategorization,
)
from .documents import (
    CsvDocument,
    DocumentType,
    ImageDocument,
    ImportResult,
    NeedsUserInput,
    OfxDocument,
    ParseError,
    ParseSuccess,
    PdfDocument,
    QifDocument,
    UnknownDocument,
)
from .review import (
    IDLE,
    UNIQUE,
    AwaitingConfirmation,
    Cancelled,
    Categorizing,
    Completed,
    Deduplicating,
    DetectingFormat,
    DuplicateStatus,
    ExactDuplicate,
    Failed,
    Idle,
    ImportConfirmationResult,
    ImportPreviewResult,
    ImportProgress,
    Parsing,
    ProbableDuplicate,
    ReviewableTransaction,
    Saving,
    Unique,
    Validating,
)
from .transactions import (
    Category,
    ImportedTransaction,
    ImportSource,
    PartialTransaction,
    Transaction,
    TransactionType,
)

__all__ = [
    # transactions
    "Category",
    "ImportedTransaction",
    "ImportSource",
    "PartialTransaction",
    "Transaction",
    "TransactionForCategorization",
    "TransactionType",
    # documents
    "CsvDocument",
    "DocumentType",
    "ImageDocument",
    "ImportResult",
    "NeedsUserInput",
    "OfxDocument",
    "ParseError",
    "ParseSuccess",
    "PdfDocument",
    "QifDocument",
    "UnknownDocument",
    # review
    "IDLE",
    "UNIQUE",
    "AwaitingConfirmation",
    "Cancelled",
    "Categorizing",
    "Completed",
    "Deduplicating",
    "DetectingFormat",
    "DuplicateStatus",
    "ExactDuplicate",
    "Failed",
    "Idle",
    "ImportConfirmationResult",
    "ImportPreviewResult",
    "ImportProgress",
    "Parsing",
    "ProbableDuplicate",
    "ReviewableTransaction",
    "Saving",
    "Unique",
    "Validating",
    # categorization
    "HIGH_CONFIDENCE_THRESHOLD",
    "MEDIUM_CONFIDENCE_THRESHOLD",
    "CategorizationResult",
    "CategorizationSource",
    "CategoryCorrection",
    "CorrectionSaved",
    "LearnedMerchant",
    "LearnedMerchantSource",
    "LearnResult",
    "MappingCreated",
    "MappingUpdated",
]
