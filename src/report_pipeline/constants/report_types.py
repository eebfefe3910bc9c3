# ============================================================================
# src/report_pipeline/constants/report_types.py
# ============================================================================
"""
Report Types and Output Enumerations
- Report types the classifier can emit
- Source formats accepted on input
- Interpretation categories, validation outcomes, result status
"""

from enum import Enum
from typing import Optional


class ReportType(str, Enum):
    """
    Report types that can be classified.
    Only OBSERVATION_LABS is routed to a working extractor.
    """
    OBSERVATION_LABS = "Observation_Labs"
    CARDIAC_ECG = "Cardiac_ECG"
    CARDIAC_ECHO = "Cardiac_Echo"
    IMAGING = "DiagnosticReport_Imaging"
    GENOMIC = "Genomic"
    WEARABLE = "Wearable"
    VITALS_ANTHRO = "VitalsAnthro"
    MEDICATION_STATEMENT = "MedicationStatement"
    PROCEDURE = "Procedure"
    IMMUNIZATION = "Immunization"
    CLINICAL_NOTE = "ClinicalNote"
    OTHER = "Other"

    @classmethod
    def from_label(cls, label: str) -> "ReportType":
        """Unknown labels map to OTHER"""
        try:
            return cls(label)
        except ValueError:
            return cls.OTHER


class SourceFormat(str, Enum):
    PDF = "PDF"
    PDF_OCR = "PDF_OCR"
    IMAGE_OCR = "Image_OCR"
    FHIR_JSON = "FHIR_JSON"
    HL7 = "HL7"
    CSV = "CSV"
    JSON = "JSON"
    XML = "XML"
    DICOM = "DICOM"
    TXT = "TXT"

    @classmethod
    def from_hint(cls, hint: Optional[str]) -> "SourceFormat":
        """Resolve a caller hint; missing or unknown hints default to PDF_OCR"""
        if not hint:
            return cls.PDF_OCR
        for member in cls:
            if member.value.lower() == hint.strip().lower():
                return member
        return cls.PDF_OCR


class InterpretationCategory(str, Enum):
    NORMAL = "Normal"
    BORDERLINE = "Borderline"
    ABNORMAL = "Abnormal"
    INDETERMINATE = "Indeterminate"


# Escalation order; Indeterminate is never reached by escalation
CATEGORY_SEVERITY = {
    InterpretationCategory.NORMAL: 0,
    InterpretationCategory.BORDERLINE: 1,
    InterpretationCategory.ABNORMAL: 2,
}


class ValidationOutcome(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class ResultStatus(str, Enum):
    ACCEPTED = "accepted"
    DISCARDED = "discarded"


# Report types with a wired extractor
SUPPORTED_REPORT_TYPES = frozenset({ReportType.OBSERVATION_LABS})
