# ============================================================================
# src/report_pipeline/classifiers/report_classifier.py
# ============================================================================
"""
Report Type Classification

Weighted heuristic pattern matching with exclusion penalties.

For each heuristic:
    match_ratio       = patterns found / patterns
    exclusion_penalty = 0.5 per exclusion pattern found
    weighted_score    = max(0, match_ratio * weight - exclusion_penalty)

Several heuristics may target the same label; their scores and weights
accumulate and the label score is score / weight. The best label wins
(first one in registry order on ties) and its score is capped by OCR
quality to give the classification confidence:

    confidence = min(1.0, best_score * quality_score)

A quality score outside [0, 1] is clamped; a non-finite one counts as 0.

Below the type detection threshold the label is forced to "Other".
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import math
import re

from ..core.stage_base import Stage
from ..core.models import OCROutput, TypeDetection
from ..core.pipeline_config import Heuristic
from ..constants import ReportType


EXCLUSION_PENALTY = 0.5


@dataclass(frozen=True)
class LabelScores:
    """Output of score_labels(): normalized score and matched terms per label"""
    scores: Dict[str, float]
    matched_terms: Dict[str, Tuple[str, ...]] = field(default_factory=dict)


def _found(pattern: str, text: str) -> bool:
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error:
        # Not a valid regex: treat as a literal term
        return pattern.lower() in text.lower()


def heuristic_score(heuristic: Heuristic, text: str) -> Tuple[float, List[str]]:
    """
    Score one heuristic against text.

    Returns:
        (weighted_score, matched_patterns)
    """
    matched = [p for p in heuristic.patterns if _found(p, text)]
    exclusion_hits = sum(1 for e in heuristic.exclusions if _found(e, text))

    match_ratio = len(matched) / len(heuristic.patterns)
    weighted = match_ratio * heuristic.weight - EXCLUSION_PENALTY * exclusion_hits

    return max(0.0, weighted), matched


def score_labels(heuristics: Sequence[Heuristic], text: str) -> LabelScores:
    """
    Accumulate heuristic scores per label and normalize by label weight.

    Pure function: same heuristics + text always give the same mapping.
    Labels keep the order in which they first appear in the registry.
    """
    label_score: Dict[str, float] = {}
    label_weight: Dict[str, float] = {}
    matched_terms: Dict[str, List[str]] = {}

    for heuristic in heuristics:
        score, matched = heuristic_score(heuristic, text)
        label = heuristic.label

        label_score[label] = label_score.get(label, 0.0) + score
        label_weight[label] = label_weight.get(label, 0.0) + heuristic.weight
        matched_terms.setdefault(label, []).extend(matched)

    normalized = {
        label: label_score[label] / (label_weight[label] or 1.0)
        for label in label_score
    }

    return LabelScores(
        scores=normalized,
        matched_terms={k: tuple(v) for k, v in matched_terms.items()},
    )


def best_label(scores: Dict[str, float]) -> Tuple[str, float]:
    """Argmax with first-wins ties; nothing above zero -> ('Other', 0.0)"""
    label, best = ReportType.OTHER.value, 0.0
    for candidate, score in scores.items():
        if score > best:
            label, best = candidate, score
    return label, best


class ReportClassifier(Stage):
    """
    Guesses the report type of OCR text.

    The heuristic registry comes from PipelineConfig; the classifier
    itself keeps no per-report state.
    """

    def get_name(self) -> str:
        return "ReportClassifier"

    def execute(self, ocr: OCROutput, heuristics: Optional[Sequence[Heuristic]] = None) -> TypeDetection:
        heuristics = self.config.heuristics if heuristics is None else heuristics
        result = score_labels(heuristics, ocr.text or "")
        label, score = best_label(result.scores)

        quality = ocr.quality_score if math.isfinite(ocr.quality_score) else 0.0
        confidence = min(1.0, score * max(0.0, min(1.0, quality)))
        terms = result.matched_terms.get(label, ()) if score > 0 else ()

        if terms:
            rationale = f"Detected {label} based on keywords: {', '.join(terms[:3])}"
        else:
            rationale = "No strong pattern matches found"

        self.logger.info(
            f"Classification: {label} (score: {score:.2f}, confidence: {confidence:.2f})"
        )

        if confidence < self.config.thresholds.type_detection_min:
            label = ReportType.OTHER.value

        return TypeDetection(label=label, confidence=confidence, rationale=rationale)
