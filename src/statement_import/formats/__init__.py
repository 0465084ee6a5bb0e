"""
Statement format detection.

Provides:
- FormatDetector: bytes + filename -> DocumentType
- BankSignature: known institutions and their locale hints
"""

from .detector import BANK_SIGNATURES, BankSignature, FormatDetector

__all__ = ["FormatDetector", "BankSignature", "BANK_SIGNATURES"]
