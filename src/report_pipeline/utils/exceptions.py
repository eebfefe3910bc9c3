# ============================================================================
# src/report_pipeline/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the report interpretation pipeline.

DiscardError subclasses are terminal pipeline outcomes, not crashes.
Each one names the user feedback template the orchestrator attaches
to the discarded result.
"""

from typing import Optional


class ReportPipelineError(Exception):
    """Base exception for all report pipeline errors."""
    pass


class ConfigurationError(ReportPipelineError):
    """Invalid or missing configuration (knowledge tables, thresholds)."""
    pass


class UnitConversionError(ReportPipelineError):
    """Error converting units."""
    def __init__(self, message: str, from_unit: Optional[str] = None, to_unit: Optional[str] = None):
        super().__init__(message)
        self.from_unit = from_unit
        self.to_unit = to_unit


class ExtractionError(ReportPipelineError):
    """Structured extraction collaborator failed or returned garbage."""
    pass


class ExtractionTimeoutError(ExtractionError):
    """Structured extraction did not answer within the bounded wait."""
    pass


class OCRError(ReportPipelineError):
    """OCR collaborator failed to produce text."""
    pass


# ============================================================================
# DISCARD OUTCOMES
# ============================================================================

class DiscardError(ReportPipelineError):
    """
    A pipeline stage decided the report cannot be accepted.

    Attributes:
        feedback_key: Key into the user feedback templates
        detail: Internal detail recorded in the audit trail (never shown
            to the user as feedback)
    """
    feedback_key = "partial_parse"

    def __init__(self, detail: str, feedback_key: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if feedback_key:
            self.feedback_key = feedback_key


class LowQualityInputError(DiscardError):
    """OCR quality score is below the quality floor."""
    feedback_key = "low_quality_ocr"


class UnrecognizedTypeError(DiscardError):
    """Classifier confidence is below the type detection minimum."""
    feedback_key = "unrecognized_type"


class UnsupportedTypeError(DiscardError):
    """Report type was recognized but has no wired extractor."""
    feedback_key = "unsupported_type"


class LowExtractionConfidenceError(DiscardError):
    """Extracted observations are too incomplete to trust."""
    feedback_key = "partial_parse"


class LowNormalizationConfidenceError(DiscardError):
    """Too many observations have missing or unrecognized units."""
    feedback_key = "missing_units"


class ValidationFailureError(DiscardError):
    """At least one validation check failed."""
    feedback_key = "partial_parse"


class LowOverallConfidenceError(DiscardError):
    """Minimum of the stage confidences is below the acceptance bar."""
    feedback_key = "partial_parse"


class PipelineSystemError(DiscardError):
    """Unexpected exception inside a stage, sanitized for the caller."""
    feedback_key = "processing_error"
