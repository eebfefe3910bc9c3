"""
Medical report interpretation pipeline.

OCR text -> classification -> extraction -> unit normalization ->
validation -> rule-based interpretation -> accept / discard.

Usage:
    from report_pipeline import ReportPipeline

    pipeline = ReportPipeline()
    result = await pipeline.interpret(text, quality_score=0.9, pseudo_id="p-1")
    print(result.to_dict())
"""

__version__ = "0.1.0"

from .core.models import PipelineInput, PipelineResult
from .core.pipeline_config import PipelineConfig, load_pipeline_config
from .core.orchestrator import ReportPipeline
from .constants import ReportType, SourceFormat, ResultStatus
