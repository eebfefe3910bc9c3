# ============================================================================
# src/report_pipeline/extractors/boundary.py
# ============================================================================
"""
Extraction boundary: everything the core does with a collaborator payload.

1. Decode JSON text (one repair pass for malformed responses)
2. Validate against the strict schema
3. Score completeness -> extraction confidence

Confidence per observation (capped at 1.0):
    +0.3  code and display present
    +0.2  value present
    +0.2  unit present
    +0.2  a non-null reference range bound
    +0.1  collection timestamp
Overall confidence is the mean over observations, 0 for an empty set.
"""

from typing import Any, Optional, Tuple
import json
import logging
import re

from json_repair import repair_json

from .base import ExtractionPayload
from .schema import parse_extraction_payload
from ..core.models import ExtractionResult, Observation, ObservationSet


logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\u0000-\u001F\u007F-\u009F]")
_TRAILING_SEPARATORS = re.compile(r",\s*([}\]])")


def clean_json_text(text: str) -> str:
    """Strip control characters and trailing separators before } or ]"""
    text = _CONTROL_CHARS.sub("", text)
    return _TRAILING_SEPARATORS.sub(r"\1", text)


def decode_json_payload(text: str) -> Tuple[Optional[Any], bool]:
    """
    Decode model output, repairing it once if needed.

    Returns:
        Tuple of (decoded_object_or_None, was_repaired)
    """
    if not text or not text.strip():
        logger.warning("Empty extraction response")
        return None, False

    # Try 1: Direct parse
    try:
        return json.loads(text), False
    except json.JSONDecodeError:
        pass

    # Try 2: single repair pass
    cleaned = clean_json_text(text)
    try:
        decoded = json.loads(cleaned)
        logger.info("Extraction response parsed after cleanup")
        return decoded, True
    except json.JSONDecodeError:
        pass

    try:
        repaired = repair_json(cleaned, return_objects=True)
    except Exception as e:
        logger.warning(f"json_repair failed on extraction response: {e}")
        return None, True

    if isinstance(repaired, dict):
        logger.warning(
            f"json_repair fixed extraction response - potential data loss. "
            f"Original (first 200 chars): {text[:200]}"
        )
        return repaired, True

    logger.warning(f"Could not parse JSON from extraction response: {text[:200]}...")
    return None, True


def observation_completeness(obs: Observation) -> float:
    score = 0.0

    if obs.code and obs.display:
        score += 0.3
    if obs.value is not None and obs.value != "":
        score += 0.2
    if obs.unit:
        score += 0.2
    if obs.reference_range is not None and obs.reference_range.has_bound:
        score += 0.2
    if obs.collected_at:
        score += 0.1

    return min(score, 1.0)


def extraction_confidence(data: ObservationSet) -> float:
    """Mean observation completeness; 0 for an empty set"""
    if not data.observations:
        return 0.0
    total = sum(observation_completeness(obs) for obs in data.observations)
    return total / len(data.observations)


def interpret_payload(payload: ExtractionPayload) -> ExtractionResult:
    """
    Turn whatever the collaborator returned into a scored ExtractionResult.

    Never raises: undecodable or mis-shaped payloads score 0 with an
    empty observation set.
    """
    repaired = False

    if isinstance(payload, (str, bytes)):
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        decoded, repaired = decode_json_payload(payload)
        if decoded is None:
            return ExtractionResult(data=ObservationSet.empty(), confidence=0.0, repaired=repaired)
    else:
        decoded = payload

    data, schema_ok = parse_extraction_payload(decoded)
    if not schema_ok:
        return ExtractionResult(data=ObservationSet.empty(), confidence=0.0, repaired=repaired)

    return ExtractionResult(data=data, confidence=extraction_confidence(data), repaired=repaired)


def failed_extraction() -> ExtractionResult:
    """Outcome used for collaborator errors and timeouts"""
    return ExtractionResult(data=ObservationSet.empty(), confidence=0.0)
