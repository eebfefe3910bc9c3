# ============================================================================
# src/report_pipeline/normalizers/unit_normalizer.py
# ============================================================================
"""
Unit Normalizer

Converts Raw observation quantities into canonical (SI) units.

For each Raw observation:
1. First conversion entry whose analyte occurs in the code/display and
   whose source unit matches -> scale value and range bounds, record it
2. Unit already canonical -> accept as is
3. Otherwise -> leave Raw, counted as a failure

NormalizedQuantity inputs pass through untouched, so normalizing an
already normalized set changes nothing.

confidence = successes / total (1.0 for an empty set)
"""

from typing import List, Optional, Tuple

from ..core.stage_base import Stage
from ..core.models import (
    NormalizationResult,
    NormalizedQuantity,
    Observation,
    ObservationSet,
    ReferenceRange,
    UnitConversionRecord,
)
from ..core.pipeline_config import UnitConversionSpec, canonical_unit_key
from ..utils.exceptions import UnitConversionError


def convert(value: float, factor: float) -> float:
    return value * factor


def revert(value: float, factor: float) -> float:
    """Inverse of convert()"""
    if factor == 0:
        raise UnitConversionError("Cannot invert a zero factor")
    return value / factor


def _scale(bound: Optional[float], factor: float) -> Optional[float]:
    return None if bound is None else convert(bound, factor)


class UnitNormalizer(Stage):
    """Normalizes an ObservationSet against the configured conversion table."""

    def get_name(self) -> str:
        return "UnitNormalizer"

    def find_conversion(self, obs: Observation, unit: Optional[str] = None) -> Optional[UnitConversionSpec]:
        """First table entry for this analyte whose source unit matches"""
        unit_key = canonical_unit_key(obs.unit if unit is None else unit)
        if not unit_key:
            return None

        search_text = obs.search_text
        for conversion in self.config.conversions:
            if conversion.analyte in search_text and canonical_unit_key(conversion.from_unit) == unit_key:
                return conversion
        return None

    def is_canonical(self, unit: str) -> bool:
        return canonical_unit_key(unit) in self.config.canonical_units

    def execute(self, data: ObservationSet) -> NormalizationResult:
        observations: List[Observation] = []
        conversions: List[UnitConversionRecord] = []
        successes = 0

        for obs in data.observations:
            normalized, record = self._normalize_one(obs)
            observations.append(normalized)
            if normalized.is_normalized:
                successes += 1
            if record is not None:
                conversions.append(record)

        total = len(data.observations)
        confidence = successes / total if total else 1.0

        self.logger.info(
            f"Normalized {successes}/{total} observations "
            f"({len(conversions)} conversions, confidence: {confidence:.2f})"
        )

        return NormalizationResult(
            data=ObservationSet(panel_name=data.panel_name, observations=tuple(observations)),
            conversions=tuple(conversions),
            confidence=confidence,
        )

    def _normalize_one(self, obs: Observation) -> Tuple[Observation, Optional[UnitConversionRecord]]:
        if obs.is_normalized:
            return obs, None

        numeric = obs.numeric_value
        conversion = self.find_conversion(obs)

        if conversion is not None and numeric is not None:
            ref = obs.reference_range
            if ref is not None:
                ref = ReferenceRange(
                    low=_scale(ref.low, conversion.factor),
                    high=_scale(ref.high, conversion.factor),
                    unit=conversion.to_unit,
                )
            record = UnitConversionRecord(
                field=obs.code or obs.display,
                from_unit=obs.unit,
                to_unit=conversion.to_unit,
                factor=conversion.factor,
            )
            self.logger.debug(f"{record.field}: {obs.unit} -> {conversion.to_unit} (x{conversion.factor})")
            quantity = NormalizedQuantity(value=convert(numeric, conversion.factor), unit=conversion.to_unit)
            return obs.with_quantity(quantity, ref), record

        if obs.unit and self.is_canonical(obs.unit):
            quantity = NormalizedQuantity(value=obs.value, unit=obs.unit)
            return obs.with_quantity(quantity, self._reconcile_range(obs)), None

        self.logger.debug(f"No conversion for {obs.code or obs.display!r} in {obs.unit!r}")
        return obs, None

    def _reconcile_range(self, obs: Observation) -> Optional[ReferenceRange]:
        """
        Bring the reference range into the observation's unit where
        possible. A mismatch with no table entry is left for validation.
        """
        ref = obs.reference_range
        if ref is None:
            return None

        if not ref.unit:
            return ReferenceRange(low=ref.low, high=ref.high, unit=obs.unit)

        if canonical_unit_key(ref.unit) == canonical_unit_key(obs.unit):
            return ref

        conversion = self.find_conversion(obs, unit=ref.unit)
        if conversion is not None and canonical_unit_key(conversion.to_unit) == canonical_unit_key(obs.unit):
            return ReferenceRange(
                low=_scale(ref.low, conversion.factor),
                high=_scale(ref.high, conversion.factor),
                unit=obs.unit,
            )

        return ref
