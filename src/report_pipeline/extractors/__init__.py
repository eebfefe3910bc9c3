"""
Extraction boundary: collaborator contracts, strict response schema,
payload repair and extraction confidence scoring.
"""

from .base import BaseOCRProvider, BaseStructuredExtractor, ExtractionPayload
from .boundary import (
    clean_json_text,
    decode_json_payload,
    extraction_confidence,
    interpret_payload,
    failed_extraction,
)
from .schema import ExtractionResponse, ExtractedObservation, parse_extraction_payload
from .ollama_extractor import OllamaLabExtractor
from .text_quality import assess_text_quality, PlainTextOCR
