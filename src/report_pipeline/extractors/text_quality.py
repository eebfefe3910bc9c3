# ============================================================================
# src/report_pipeline/extractors/text_quality.py
# ============================================================================
"""
Text quality assessment and a plain-text OCR collaborator.

The quality score feeds the pipeline's quality floor and caps the
classifier's confidence, so it has to be cheap and deterministic:

    base 0.5
    + 0.3 * (medical keywords found / keywords)
    + 0.1 if more than five numbers
    + 0.1 if any lab unit
Texts shorter than 50 characters score 0.1.
"""

from pathlib import Path
import re

from .base import BaseOCRProvider
from ..core.models import OCROutput
from ..utils.exceptions import OCRError


MIN_TEXT_LENGTH = 50

MEDICAL_KEYWORDS = [
    'patient', 'test', 'result', 'value', 'range', 'reference',
    'normal', 'abnormal', 'lab', 'blood', 'specimen', 'collected',
]

_NUMBER = re.compile(r"\d+\.?\d*")
_LAB_UNITS = re.compile(r"mg/dL|mmol/L|g/L|U/L|%|bpm|mmHg", re.IGNORECASE)


def assess_text_quality(text: str) -> float:
    if not text or len(text) < MIN_TEXT_LENGTH:
        return 0.1

    lowered = text.lower()
    score = 0.5

    keyword_matches = sum(1 for kw in MEDICAL_KEYWORDS if kw in lowered)
    score += (keyword_matches / len(MEDICAL_KEYWORDS)) * 0.3

    if len(_NUMBER.findall(text)) > 5:
        score += 0.1

    if _LAB_UNITS.search(text):
        score += 0.1

    return min(score, 1.0)


class PlainTextOCR(BaseOCRProvider):
    """
    OCR collaborator for sources that are already text.

    Accepts a path to a UTF-8 text file; anything else is treated as
    the report text itself.
    """

    async def extract_text(self, source: str) -> OCROutput:
        text = source
        path = Path(source) if len(source) < 4096 and "\n" not in source else None

        if path is not None and path.is_file():
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise OCRError(f"Cannot read {path}: {e}") from e
            self.logger.info(f"Read {len(text)} chars from {path.name}")

        quality = assess_text_quality(text)
        confidence = 0.9 if quality > 0.6 else 0.7

        return OCROutput(text=text, quality_score=quality, confidence=confidence)
