"""
Privacy boundary for cloud inference.

Provides:
- PIIAnonymizer: reversible placeholder substitution
- AnonymizationResult, DetectedPII, PIIType
"""

from .anonymizer import AnonymizationResult, DetectedPII, PIIAnonymizer, PIIType

__all__ = ["PIIAnonymizer", "AnonymizationResult", "DetectedPII", "PIIType"]
