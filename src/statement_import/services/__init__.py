"""
Import services.

Provides:
- ImportOrchestrator: the import session state machine
- ProgressStream: latest-value progress broadcast
- LearnFromCorrectionUseCase: feeds corrections into learned merchants
"""

from .learning import LearnFromCorrectionUseCase, LearningError
from .orchestrator import ImportCancelledException, ImportException, ImportOrchestrator
from .progress import ProgressStream

__all__ = [
    "ImportCancelledException",
    "ImportException",
    "ImportOrchestrator",
    "LearnFromCorrectionUseCase",
    "LearningError",
    "ProgressStream",
]
