# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
import copy
from typing import Any, Optional

import pytest

from report_pipeline.core.pipeline_config import load_pipeline_config
from report_pipeline.core.orchestrator import ReportPipeline
from report_pipeline.extractors.base import BaseStructuredExtractor
from report_pipeline.constants import ReportType


class StubExtractor(BaseStructuredExtractor):
    """Structured extractor double: canned payload, error or delay; counts calls."""

    def __init__(self, payload: Any = None, error: Optional[Exception] = None, delay: float = 0.0):
        super().__init__()
        self.payload = payload
        self.error = error
        self.delay = delay
        self.calls = 0

    @property
    def report_type(self) -> ReportType:
        return ReportType.OBSERVATION_LABS

    async def extract(self, text: str, report_type: ReportType):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.payload)


@pytest.fixture
def pipeline_config():
    return load_pipeline_config()


@pytest.fixture
def sample_lab_text():
    """Sample lab report text that classifies as Observation_Labs"""
    return """
    Acme Laboratory - Lipid Panel (fasting)

    Specimen collected: 2024-01-15 08:00

    Test                Result      Reference Range
    ----------------------------------------------------------------
    LDL Cholesterol     160 mg/dL   0-100 mg/dL
    HbA1c               5.9 %       4.0-5.6 %
    """


@pytest.fixture
def sample_imaging_text():
    """Sample radiology report text"""
    return """
    RADIOLOGY REPORT

    Examination: Chest X-Ray PA and Lateral
    TECHNIQUE: Two views of the chest.
    COMPARISON: None available

    FINDINGS:
    The lungs are clear without focal consolidation, effusion, or pneumothorax.

    IMPRESSION:
    Normal chest radiograph.
    """


@pytest.fixture
def lab_payload():
    """Extractor response for sample_lab_text"""
    return {
        "panel_name": "Lipid Panel",
        "observations": [
            {
                "code": "LDL",
                "display": "LDL Cholesterol",
                "value": 160,
                "unit": "mg/dL",
                "reference_range": {"low": 0, "high": 100, "unit": "mg/dL"},
                "collected_at": "2024-01-15T08:00:00Z",
                "flags": ["high"],
            },
            {
                "code": "HBA1C",
                "display": "Hemoglobin A1c",
                "value": 5.9,
                "unit": "%",
                "reference_range": {"low": 4.0, "high": 5.6, "unit": "%"},
                "collected_at": "2024-01-15T08:00:00Z",
                "flags": [],
            },
        ],
    }


@pytest.fixture
def make_extractor():
    def _make(payload: Any = None, error: Optional[Exception] = None, delay: float = 0.0) -> StubExtractor:
        return StubExtractor(payload=payload, error=error, delay=delay)
    return _make


@pytest.fixture
def make_pipeline(pipeline_config):
    """Build a ReportPipeline around a stub lab extractor"""
    def _make(extractor: StubExtractor, config=None, **kwargs) -> ReportPipeline:
        return ReportPipeline(
            config=config or pipeline_config,
            extractors={ReportType.OBSERVATION_LABS: extractor},
            **kwargs,
        )
    return _make
