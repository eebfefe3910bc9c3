# ============================================================================
# src/report_pipeline/validators/observation_validator.py
# ============================================================================
"""
Observation Validator

Independent structural / clinical sanity checks over normalized data:

1. Non-numeric value with a numeric unit         -> fail
2. Reference range unit differs from value unit  -> warn
3. Collection time after ingestion (or garbled)  -> warn
4. Missing unit                                  -> fail
5. Value far outside its reference range         -> warn
   (|value - midpoint| > 4 * range width)

No findings -> a single synthetic pass. Any fail is a hard gate in the
orchestrator.
"""

from datetime import datetime, timezone
from typing import List, Optional

from ..core.stage_base import Stage
from ..core.models import Observation, ObservationSet, ValidationFinding
from ..core.pipeline_config import canonical_unit_key
from ..constants import ValidationOutcome


OUTLIER_WIDTH_MULTIPLIER = 4.0

ALL_CHECKS_PASSED = "All validation checks passed"


def parse_timestamp(raw: str) -> Optional[datetime]:
    """ISO-8601 -> aware datetime (naive input is read as UTC)"""
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ObservationValidator(Stage):

    def get_name(self) -> str:
        return "ObservationValidator"

    def has_numeric_unit(self, unit: str) -> bool:
        key = canonical_unit_key(unit)
        return bool(key) and any(nu in key for nu in self.config.numeric_units)

    def execute(self, data: ObservationSet, ingested_at: datetime) -> List[ValidationFinding]:
        if ingested_at.tzinfo is None:
            ingested_at = ingested_at.replace(tzinfo=timezone.utc)

        findings: List[ValidationFinding] = []
        for obs in data.observations:
            findings.extend(self.check_observation(obs, ingested_at))

        if not findings:
            findings.append(ValidationFinding(outcome=ValidationOutcome.PASS, message=ALL_CHECKS_PASSED))

        fails = sum(1 for f in findings if f.outcome == ValidationOutcome.FAIL)
        warns = sum(1 for f in findings if f.outcome == ValidationOutcome.WARN)
        self.logger.info(f"Validation: {fails} fail, {warns} warn over {len(data)} observations")

        return findings

    def check_observation(self, obs: Observation, ingested_at: datetime) -> List[ValidationFinding]:
        findings = []
        field = obs.code or None
        name = obs.display or obs.code
        numeric = obs.numeric_value

        if self.has_numeric_unit(obs.unit) and numeric is None:
            findings.append(ValidationFinding(
                outcome=ValidationOutcome.FAIL,
                message=f"Value for {name} is not numeric despite having numeric unit {obs.unit}",
                field=field,
            ))

        ref = obs.reference_range
        if ref is not None and ref.unit and canonical_unit_key(ref.unit) != canonical_unit_key(obs.unit):
            findings.append(ValidationFinding(
                outcome=ValidationOutcome.WARN,
                message=(
                    f"Reference range unit ({ref.unit}) does not match "
                    f"observation unit ({obs.unit}) for {name}"
                ),
                field=field,
            ))

        if obs.collected_at:
            collected = parse_timestamp(obs.collected_at)
            if collected is None:
                findings.append(ValidationFinding(
                    outcome=ValidationOutcome.WARN,
                    message=f"Collection time ({obs.collected_at}) could not be parsed",
                    field=field,
                ))
            elif collected > ingested_at:
                findings.append(ValidationFinding(
                    outcome=ValidationOutcome.WARN,
                    message=f"Collection time ({obs.collected_at}) is in the future relative to ingestion time",
                    field=field,
                ))

        if not obs.unit or not obs.unit.strip():
            findings.append(ValidationFinding(
                outcome=ValidationOutcome.FAIL,
                message=f"Missing unit for {name}",
                field=field,
            ))

        if numeric is not None and ref is not None and ref.low is not None and ref.high is not None:
            width = ref.high - ref.low
            midpoint = (ref.low + ref.high) / 2
            if abs(numeric - midpoint) > OUTLIER_WIDTH_MULTIPLIER * width:
                findings.append(ValidationFinding(
                    outcome=ValidationOutcome.WARN,
                    message=f"Value {obs.value} {obs.unit} for {name} is unusually far from reference range",
                    field=field,
                ))

        return findings
