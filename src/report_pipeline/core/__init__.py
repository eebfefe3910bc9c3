"""
Core pipeline: data model, injected configuration, stage base class.

The orchestrator is imported from report_pipeline (or
report_pipeline.core.orchestrator) directly.
"""

from .models import (
    OCROutput,
    TypeDetection,
    PipelineInput,
    RawQuantity,
    NormalizedQuantity,
    ReferenceRange,
    Observation,
    ObservationSet,
    UnitConversionRecord,
    ExtractionResult,
    NormalizationResult,
    ValidationFinding,
    Interpretation,
    InterpretationOutcome,
    PatientInfo,
    AuditTrail,
    PipelineResult,
)
from .pipeline_config import PipelineConfig, Thresholds, load_pipeline_config
