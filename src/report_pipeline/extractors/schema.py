# ============================================================================
# src/report_pipeline/extractors/schema.py
# ============================================================================
"""
Strict intermediate schema for structured extraction responses.

The collaborator's response shape is outside our control. It is parsed
into these pydantic models (explicit optional fields, camelCase aliases
accepted) before anything in the core sees it; a payload that does not
fit yields an empty ObservationSet instead of an exception.
"""

from typing import Any, List, Optional, Tuple, Union
import logging

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..core.models import Observation, ObservationSet, RawQuantity, ReferenceRange


logger = logging.getLogger(__name__)


class ExtractedReferenceRange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    low: Optional[float] = None
    high: Optional[float] = None
    unit: Optional[str] = None


class ExtractedObservation(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    code: Optional[str] = None
    display: Optional[str] = None
    value: Optional[Union[int, float, str]] = None
    unit: Optional[str] = None
    reference_range: Optional[ExtractedReferenceRange] = Field(
        default=None,
        validation_alias=AliasChoices("reference_range", "referenceRange"),
    )
    collected_at: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("collected_at", "collectedAt"),
    )
    flags: List[str] = Field(default_factory=list)

    def to_observation(self) -> Observation:
        ref = None
        if self.reference_range is not None:
            ref = ReferenceRange(
                low=self.reference_range.low,
                high=self.reference_range.high,
                unit=self.reference_range.unit,
            )
        return Observation(
            code=(self.code or "").strip(),
            display=(self.display or "").strip(),
            quantity=RawQuantity(value=self.value, unit=(self.unit or "").strip()),
            reference_range=ref,
            collected_at=self.collected_at or None,
            flags=tuple(self.flags),
        )


class ExtractionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    panel_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("panel_name", "panelName"),
    )
    observations: List[ExtractedObservation] = Field(default_factory=list)

    def to_observation_set(self) -> ObservationSet:
        return ObservationSet(
            panel_name=self.panel_name,
            observations=tuple(o.to_observation() for o in self.observations),
        )


def parse_extraction_payload(payload: Any) -> Tuple[ObservationSet, bool]:
    """
    Validate a decoded payload against the strict schema.

    Returns:
        (observation_set, schema_ok). On mismatch the set is empty.
    """
    if not isinstance(payload, dict):
        logger.warning(f"Extraction payload is {type(payload).__name__}, expected object")
        return ObservationSet.empty(), False

    try:
        response = ExtractionResponse.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Extraction payload failed schema validation: {e.error_count()} error(s)")
        return ObservationSet.empty(), False

    return response.to_observation_set(), True
