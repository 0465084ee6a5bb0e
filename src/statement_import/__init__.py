"""
Statement Import

Turns third-party bank statements (CSV, OFX, QIF, OCR text) into clean,
categorized, de-duplicated transaction records ready for persistence.
"""

__version__ = "0.1.0"
