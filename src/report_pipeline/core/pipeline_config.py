# ============================================================================
# src/report_pipeline/core/pipeline_config.py
# ============================================================================
"""
Pipeline Configuration

Heuristics, conversion tables, analyte decision tables, thresholds and
feedback templates are assembled once into a frozen PipelineConfig and
injected into every stage. Nothing in the pipeline reads global mutable
state after this point.

Usage:
    from report_pipeline.core.pipeline_config import load_pipeline_config

    config = load_pipeline_config()
    strict = config.with_thresholds(overall_accept_min=0.8)
"""

from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple
from types import MappingProxyType

from ..constants import (
    TYPE_DETECTION_HEURISTICS,
    UNIT_CONVERSIONS,
    CANONICAL_UNITS,
    NUMERIC_UNITS,
    INTERPRETATION_RULES,
    CLINICAL_REFERENCES,
    USER_FEEDBACK_TEMPLATES,
    InterpretationCategory,
)
from ..config import threshold_settings, extractor_settings
from ..utils.exceptions import ConfigurationError


def canonical_unit_key(unit: Optional[str]) -> str:
    """Comparison key for units: trimmed, lowercased, micro sign unified"""
    if not unit:
        return ""
    return unit.strip().lower().replace("μ", "µ")


@dataclass(frozen=True)
class Heuristic:
    label: str
    patterns: Tuple[str, ...]
    weight: float = 1.0
    exclusions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UnitConversionSpec:
    analyte: str
    from_unit: str
    to_unit: str
    factor: float


@dataclass(frozen=True)
class DecisionBand:
    """
    One row of an analyte decision table. A band matches when the value
    is >= at_least (if set) and < below (if set).
    """
    category: InterpretationCategory
    insight: str
    action: Optional[str] = None
    at_least: Optional[float] = None
    below: Optional[float] = None

    def matches(self, value: float) -> bool:
        if self.at_least is not None and value < self.at_least:
            return False
        if self.below is not None and value >= self.below:
            return False
        return True


@dataclass(frozen=True)
class AnalyteRule:
    name: str
    analyte: str
    terms: Tuple[str, ...]
    unit: str
    bands: Tuple[DecisionBand, ...]
    default: DecisionBand
    unit_factors: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    skip_if_triggered: Tuple[str, ...] = ()
    exclusions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Thresholds:
    quality_floor: float = 0.15
    type_detection_min: float = 0.30
    extraction_min: float = 0.50
    normalization_min: float = 0.30
    overall_accept_min: float = 0.50


@dataclass(frozen=True)
class PipelineConfig:
    heuristics: Tuple[Heuristic, ...]
    conversions: Tuple[UnitConversionSpec, ...]
    canonical_units: frozenset
    numeric_units: Tuple[str, ...]
    analyte_rules: Tuple[AnalyteRule, ...]
    feedback_templates: Mapping[str, str]
    references: Tuple[str, ...] = ()
    thresholds: Thresholds = field(default_factory=Thresholds)
    extraction_timeout_seconds: float = 60.0

    def with_thresholds(self, **overrides: float) -> "PipelineConfig":
        """Copy with some thresholds replaced"""
        return replace(self, thresholds=replace(self.thresholds, **overrides))

    def feedback(self, key: str) -> str:
        return self.feedback_templates.get(key) or self.feedback_templates["processing_error"]


# ============================================================================
# BUILDERS (raw JSON -> typed config)
# ============================================================================

def build_heuristics(raw: Any) -> Tuple[Heuristic, ...]:
    heuristics = []
    for entry in raw:
        patterns = entry["patterns"]
        if isinstance(patterns, str):
            patterns = patterns.split("|")
        exclusions = entry.get("exclusions") or []
        if isinstance(exclusions, str):
            exclusions = exclusions.split("|")
        if not patterns:
            raise ConfigurationError(f"Heuristic for {entry.get('label')} has no patterns")
        weight = float(entry.get("weight", 1.0))
        if weight <= 0:
            raise ConfigurationError(f"Non-positive heuristic weight for {entry.get('label')}")
        heuristics.append(Heuristic(
            label=entry["label"],
            patterns=tuple(patterns),
            weight=weight,
            exclusions=tuple(e for e in exclusions if e.strip()),
        ))
    return tuple(heuristics)


def build_conversions(raw: Any) -> Tuple[UnitConversionSpec, ...]:
    conversions = []
    for entry in raw:
        factor = float(entry["factor"])
        if factor <= 0:
            raise ConfigurationError(f"Non-positive conversion factor for {entry['analyte']}")
        conversions.append(UnitConversionSpec(
            analyte=entry["analyte"].lower(),
            from_unit=entry["from"],
            to_unit=entry["to"],
            factor=factor,
        ))
    return tuple(conversions)


def _build_band(raw: Dict[str, Any]) -> DecisionBand:
    return DecisionBand(
        category=InterpretationCategory(raw["category"]),
        insight=raw["insight"],
        action=raw.get("action"),
        at_least=raw.get("at_least"),
        below=raw.get("below"),
    )


def build_analyte_rules(raw: Any) -> Tuple[AnalyteRule, ...]:
    rules = []
    for entry in raw:
        rules.append(AnalyteRule(
            name=entry["name"],
            analyte=entry.get("analyte", entry["name"]),
            terms=tuple(t.lower() for t in entry["terms"]),
            unit=entry["unit"],
            bands=tuple(_build_band(b) for b in entry.get("bands", [])),
            default=_build_band(entry["default"]),
            unit_factors=MappingProxyType({
                canonical_unit_key(unit): float(factor)
                for unit, factor in (entry.get("unit_factors") or {}).items()
            }),
            skip_if_triggered=tuple(entry.get("skip_if_triggered", [])),
            exclusions=tuple(e.lower() for e in entry.get("exclusions", [])),
        ))
    return tuple(rules)


def thresholds_from_settings() -> Thresholds:
    return Thresholds(
        quality_floor=threshold_settings.QUALITY_FLOOR,
        type_detection_min=threshold_settings.TYPE_DETECTION_MIN,
        extraction_min=threshold_settings.EXTRACTION_MIN,
        normalization_min=threshold_settings.NORMALIZATION_MIN,
        overall_accept_min=threshold_settings.OVERALL_ACCEPT_MIN,
    )


@lru_cache(maxsize=1)
def load_pipeline_config() -> PipelineConfig:
    """
    Build the process-wide PipelineConfig from the knowledge tables and
    settings. Cached: call once at startup and pass the result around.

    Raises:
        ConfigurationError: If a required table is missing or malformed
    """
    if not TYPE_DETECTION_HEURISTICS:
        raise ConfigurationError("No type detection heuristics configured")
    if "processing_error" not in USER_FEEDBACK_TEMPLATES:
        raise ConfigurationError("Feedback templates must define 'processing_error'")

    try:
        return PipelineConfig(
            heuristics=build_heuristics(TYPE_DETECTION_HEURISTICS),
            conversions=build_conversions(UNIT_CONVERSIONS),
            canonical_units=frozenset(canonical_unit_key(u) for u in CANONICAL_UNITS),
            numeric_units=tuple(NUMERIC_UNITS),
            analyte_rules=build_analyte_rules(INTERPRETATION_RULES),
            feedback_templates=MappingProxyType(dict(USER_FEEDBACK_TEMPLATES)),
            references=tuple(CLINICAL_REFERENCES),
            thresholds=thresholds_from_settings(),
            extraction_timeout_seconds=extractor_settings.EXTRACTION_TIMEOUT_SECONDS,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed knowledge table: {e}") from e
