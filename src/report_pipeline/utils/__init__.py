"""
Shared utilities: logging setup and the exception hierarchy.
"""

from .logging import (
    setup_logging,
    setup_logging_from_settings,
    report_log_context,
    current_report_id,
    JsonFormatter,
    ReportContextFilter,
)
from .exceptions import (
    ReportPipelineError,
    ConfigurationError,
    UnitConversionError,
    ExtractionError,
    ExtractionTimeoutError,
    OCRError,
    DiscardError,
    LowQualityInputError,
    UnrecognizedTypeError,
    UnsupportedTypeError,
    LowExtractionConfidenceError,
    LowNormalizationConfidenceError,
    ValidationFailureError,
    LowOverallConfidenceError,
    PipelineSystemError,
)
