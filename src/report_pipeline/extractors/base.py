# ============================================================================
# src/report_pipeline/extractors/base.py
# ============================================================================
"""
Extraction Collaborator Interfaces

Defines the contracts for the two external collaborators:
- OCR: file reference -> OCROutput
- Structured extraction: report text + report type -> JSON payload

Collaborators may raise. The core converts every failure into a
scored outcome; nothing they raise escapes the pipeline.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union
import logging

from ..core.models import OCROutput
from ..constants import ReportType


# A collaborator may hand back raw model text or an already-decoded object
ExtractionPayload = Union[str, Dict[str, Any]]


class BaseOCRProvider(ABC):
    """OCR collaborator: turns a file reference into text + quality"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def extract_text(self, source: str) -> OCROutput:
        """
        Extract text from a file reference.

        Returns:
            OCROutput(text, quality_score, confidence)
        """
        pass


class BaseStructuredExtractor(ABC):
    """
    Structured extraction collaborator.

    Given report text and the classified report type, returns a payload
    shaped as {"panel_name": ..., "observations": [...]}, either as JSON
    text or a decoded dict. Raises on any failure.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def report_type(self) -> ReportType:
        """The single report type this extractor understands."""
        pass

    @abstractmethod
    async def extract(self, text: str, report_type: ReportType) -> ExtractionPayload:
        """Request structured observations for report text of the given type."""
        pass

    async def close(self) -> None:
        """Release network resources, if any."""
        return None
