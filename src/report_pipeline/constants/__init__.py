# ============================================================================
# src/report_pipeline/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .report_types import (
    ReportType,
    SourceFormat,
    InterpretationCategory,
    ValidationOutcome,
    ResultStatus,
    CATEGORY_SEVERITY,
    SUPPORTED_REPORT_TYPES,
)
from .type_heuristics import TYPE_DETECTION_HEURISTICS
from .unit_conversions import UNIT_CONVERSIONS, CANONICAL_UNITS, NUMERIC_UNITS
from .analyte_rules import INTERPRETATION_RULES, CLINICAL_REFERENCES
from .user_feedback import USER_FEEDBACK_TEMPLATES
