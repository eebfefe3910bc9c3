# ============================================================================
# src/report_pipeline/core/models.py
# ============================================================================
"""
Pipeline data model
- OCR output and type detection
- Observations with Raw / Normalized quantities
- Audit trail and the terminal PipelineResult

Everything here is a frozen dataclass: stages return new objects
instead of mutating their input, and a PipelineResult is never changed
after it is built.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union
import re

from ..constants.report_types import (
    ReportType,
    SourceFormat,
    InterpretationCategory,
    ValidationOutcome,
    ResultStatus,
)


Value = Optional[Union[int, float, str]]

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


def as_number(value: Any) -> Optional[float]:
    """
    Numeric reading of an observation value.

    Numbers pass through; strings are read by their leading numeric
    prefix ("7.2 H" -> 7.2, "<5" -> None). Booleans are not numbers.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match:
            return float(match.group(0))
    return None


# ============================================================================
# OCR / CLASSIFICATION
# ============================================================================

@dataclass(frozen=True)
class OCROutput:
    """Output of the external OCR collaborator"""
    text: str
    quality_score: float
    confidence: float = 0.0


@dataclass(frozen=True)
class TypeDetection:
    label: str
    confidence: float
    rationale: str = ""

    def to_dict(self) -> Dict[str, Any]:
        # Audit keeps label + confidence only
        return {"label": self.label, "confidence": self.confidence}


@dataclass(frozen=True)
class PipelineInput:
    source_bytes_or_uri: str
    source_format_hint: Optional[str] = None
    user_region: Optional[str] = None
    preserve_high_res: bool = False


# ============================================================================
# QUANTITIES
# ============================================================================

@dataclass(frozen=True)
class RawQuantity:
    """A value in whatever unit the report used. Only Raw is normalized."""
    value: Value
    unit: str = ""


@dataclass(frozen=True)
class NormalizedQuantity:
    """A value already in canonical units. The normalizer never touches it again."""
    value: Value
    unit: str = ""


Quantity = Union[RawQuantity, NormalizedQuantity]


@dataclass(frozen=True)
class ReferenceRange:
    low: Optional[float] = None
    high: Optional[float] = None
    unit: Optional[str] = None

    @property
    def has_bound(self) -> bool:
        return self.low is not None or self.high is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"low": self.low, "high": self.high, "unit": self.unit}


@dataclass(frozen=True)
class Observation:
    code: str
    display: str
    quantity: Quantity
    reference_range: Optional[ReferenceRange] = None
    collected_at: Optional[str] = None
    flags: Tuple[str, ...] = ()

    @property
    def value(self) -> Value:
        return self.quantity.value

    @property
    def unit(self) -> str:
        return self.quantity.unit

    @property
    def is_normalized(self) -> bool:
        return isinstance(self.quantity, NormalizedQuantity)

    @property
    def numeric_value(self) -> Optional[float]:
        return as_number(self.quantity.value)

    @property
    def search_text(self) -> str:
        """Lowercased code + display used for fuzzy analyte lookups"""
        return f"{self.code} {self.display}".lower()

    def with_quantity(self, quantity: Quantity, reference_range: Optional[ReferenceRange] = None) -> "Observation":
        return replace(
            self,
            quantity=quantity,
            reference_range=reference_range if reference_range is not None else self.reference_range,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "display": self.display,
            "value": self.value,
            "unit": self.unit,
            "reference_range": self.reference_range.to_dict() if self.reference_range else None,
            "collected_at": self.collected_at,
            "flags": list(self.flags),
        }


@dataclass(frozen=True)
class ObservationSet:
    panel_name: Optional[str] = None
    observations: Tuple[Observation, ...] = ()

    def __len__(self) -> int:
        return len(self.observations)

    @classmethod
    def empty(cls) -> "ObservationSet":
        return cls(panel_name=None, observations=())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "panel_name": self.panel_name,
            "observations": [obs.to_dict() for obs in self.observations],
        }


# ============================================================================
# STAGE OUTPUTS
# ============================================================================

@dataclass(frozen=True)
class UnitConversionRecord:
    field: str
    from_unit: str
    to_unit: str
    factor: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "from": self.from_unit,
            "to": self.to_unit,
            "factor": self.factor,
        }


@dataclass(frozen=True)
class ExtractionResult:
    data: ObservationSet
    confidence: float
    repaired: bool = False


@dataclass(frozen=True)
class NormalizationResult:
    data: ObservationSet
    conversions: Tuple[UnitConversionRecord, ...]
    confidence: float


@dataclass(frozen=True)
class ValidationFinding:
    outcome: ValidationOutcome
    message: str = ""
    field: Optional[str] = None


@dataclass(frozen=True)
class Interpretation:
    category: Optional[InterpretationCategory] = None
    insights: Tuple[str, ...] = ()
    caveats: Tuple[str, ...] = ()
    next_best_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value if self.category else None,
            "insights": list(self.insights),
            "caveats": list(self.caveats),
            "next_best_actions": list(self.next_best_actions),
        }


@dataclass(frozen=True)
class InterpretationOutcome:
    interpretation: Interpretation
    rules_triggered: Tuple[str, ...] = ()


# ============================================================================
# RESULT
# ============================================================================

@dataclass(frozen=True)
class PatientInfo:
    pseudo_id: str
    dob: Optional[str] = None
    sex_at_birth: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"pseudo_id": self.pseudo_id, "dob": self.dob, "sex_at_birth": self.sex_at_birth}


@dataclass(frozen=True)
class AuditTrail:
    type_classifier: TypeDetection
    extraction_confidence: float = 0.0
    normalization_confidence: float = 0.0
    overall_confidence: float = 0.0
    rules_triggered: Tuple[str, ...] = ()
    unit_conversions: Tuple[UnitConversionRecord, ...] = ()
    validation_findings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type_classifier": self.type_classifier.to_dict(),
            "extraction_confidence": self.extraction_confidence,
            "normalization_confidence": self.normalization_confidence,
            "overall_confidence": self.overall_confidence,
            "rules_triggered": list(self.rules_triggered),
            "unit_conversions": [c.to_dict() for c in self.unit_conversions],
            "validation_findings": list(self.validation_findings),
        }


@dataclass(frozen=True)
class PipelineResult:
    report_id: str
    report_type: ReportType
    source_format: SourceFormat
    ingested_at: datetime
    patient: PatientInfo
    data: ObservationSet
    interpretation: Interpretation
    audit: AuditTrail
    status: ResultStatus
    references: Tuple[str, ...] = ()
    user_feedback: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == ResultStatus.ACCEPTED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the output contract consumed downstream"""
        result = {
            "report_id": self.report_id,
            "report_type": self.report_type.value,
            "source_format": self.source_format.value,
            "ingested_at": self.ingested_at.isoformat(),
            "patient": self.patient.to_dict(),
            "data": self.data.to_dict(),
            "interpretation": self.interpretation.to_dict(),
            "audit": self.audit.to_dict(),
            "references": list(self.references),
            "status": self.status.value,
        }
        if self.status == ResultStatus.DISCARDED:
            result["user_feedback"] = self.user_feedback
        return result
