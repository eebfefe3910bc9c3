# ============================================================================
# src/report_pipeline/core/orchestrator.py
# ============================================================================
"""
Report Pipeline Orchestrator

This is the MAIN entry point for report interpretation.

Flow:
0. Quality floor (fast path, nothing else runs)
1. Classify report type
2. Route to the extractor for that type
3. Score extraction
4. Normalize units
5. Validate
6. Interpret
7. Accept if min(type, extraction, normalization) confidence is high enough

Every gate that fails raises a DiscardError subclass internally; the
public entry points catch it and return a discarded PipelineResult with
the matching user feedback. Unexpected exceptions become a generic
processing_error discard. interpret() and process() never raise.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import asyncio
import logging
import math
import uuid

from .models import (
    AuditTrail,
    ExtractionResult,
    Interpretation,
    ObservationSet,
    OCROutput,
    PatientInfo,
    PipelineInput,
    PipelineResult,
    TypeDetection,
)
from .pipeline_config import PipelineConfig, load_pipeline_config
from ..classifiers.report_classifier import ReportClassifier
from ..normalizers.unit_normalizer import UnitNormalizer
from ..validators.observation_validator import ObservationValidator
from ..interpretation.rule_engine import RuleInterpreter
from ..extractors.base import BaseOCRProvider, BaseStructuredExtractor
from ..extractors.boundary import failed_extraction, interpret_payload
from ..extractors.text_quality import PlainTextOCR
from ..constants import ReportType, SourceFormat, ResultStatus, ValidationOutcome, SUPPORTED_REPORT_TYPES
from ..utils.logging import report_log_context
from ..utils.exceptions import (
    DiscardError,
    LowQualityInputError,
    UnrecognizedTypeError,
    UnsupportedTypeError,
    LowExtractionConfidenceError,
    LowNormalizationConfidenceError,
    ValidationFailureError,
    LowOverallConfidenceError,
    PipelineSystemError,
    ExtractionTimeoutError,
)


AcceptedHook = Callable[[PipelineResult], Awaitable[Any]]

UNCLASSIFIED = TypeDetection(label=ReportType.OTHER.value, confidence=0.0)

# Audit details for failures whose message may carry internals
SYSTEM_ERROR_DETAIL = "System error"
OCR_FAILED_DETAIL = "OCR failed"


@dataclass
class _RunState:
    """Per-report audit builder. Lives for one run only."""
    report_id: str
    ingested_at: datetime
    source_format: SourceFormat
    pseudo_id: str
    type_detection: TypeDetection = UNCLASSIFIED
    extraction_confidence: float = 0.0
    normalization_confidence: float = 0.0
    rules_triggered: tuple = ()
    conversions: tuple = ()
    findings: List[str] = field(default_factory=list)

    @property
    def overall_confidence(self) -> float:
        return min(
            self.type_detection.confidence,
            self.extraction_confidence,
            self.normalization_confidence,
        )

    def audit(self) -> AuditTrail:
        return AuditTrail(
            type_classifier=self.type_detection,
            extraction_confidence=self.extraction_confidence,
            normalization_confidence=self.normalization_confidence,
            overall_confidence=self.overall_confidence,
            rules_triggered=tuple(self.rules_triggered),
            unit_conversions=tuple(self.conversions),
            validation_findings=tuple(self.findings),
        )


def new_report_id() -> str:
    return f"report_{uuid.uuid4().hex}"


def is_valid_quality_score(score: Any) -> bool:
    """A real number in [0, 1]; NaN, infinities and non-numbers are not"""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return False
    return math.isfinite(score) and 0.0 <= score <= 1.0


class ReportPipeline:
    """
    Confidence-gated interpretation pipeline.

    Holds only configuration and collaborators; every report gets its own
    run state, so one instance can serve concurrent submissions.

    Example:
        pipeline = ReportPipeline(extractors={ReportType.OBSERVATION_LABS: my_extractor})
        result = await pipeline.interpret(text, quality_score=0.9, pseudo_id="p-1")
        if result.accepted:
            ...
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        extractors: Optional[Dict[ReportType, BaseStructuredExtractor]] = None,
        ocr_provider: Optional[BaseOCRProvider] = None,
        on_accepted: Optional[AcceptedHook] = None,
    ):
        self.config = config or load_pipeline_config()
        self.logger = logging.getLogger(__name__)

        if extractors is None:
            from ..extractors.ollama_extractor import OllamaLabExtractor
            extractors = {ReportType.OBSERVATION_LABS: OllamaLabExtractor()}
        self.extractors = dict(extractors)
        self.ocr_provider = ocr_provider or PlainTextOCR()
        self.on_accepted = on_accepted

        self.classifier = ReportClassifier(self.config)
        self.normalizer = UnitNormalizer(self.config)
        self.validator = ObservationValidator(self.config)
        self.interpreter = RuleInterpreter(self.config)

        self.logger.info(
            f"Report pipeline initialized "
            f"(extractors: {', '.join(t.value for t in self.extractors) or 'none'})"
        )

    # ========================================================================
    # PUBLIC ENTRY POINTS
    # ========================================================================

    async def interpret(
        self,
        text: str,
        quality_score: float,
        pseudo_id: str,
        source_format_hint: Optional[str] = None,
    ) -> PipelineResult:
        """
        Run the pipeline over already-extracted report text.

        Args:
            text: Report text from OCR
            quality_score: OCR quality in [0, 1]
            pseudo_id: Opaque patient identifier, passed through
            source_format_hint: Optional SourceFormat name

        Returns:
            Accepted or discarded PipelineResult (never raises)
        """
        run = _RunState(
            report_id=new_report_id(),
            ingested_at=datetime.now(timezone.utc),
            source_format=SourceFormat.from_hint(source_format_hint),
            pseudo_id=pseudo_id,
        )
        with report_log_context(run.report_id):
            try:
                result = await self._run_stages(run, text or "", quality_score)
            except DiscardError as e:
                self.logger.warning(f"DISCARD ({e.feedback_key}): {e.detail}")
                return self._discard(run, e)
            except Exception as e:
                self.logger.error(f"Pipeline error: {e}", exc_info=True)
                return self._discard(run, PipelineSystemError(SYSTEM_ERROR_DETAIL))

            self.logger.info(f"ACCEPTED (overall confidence: {run.overall_confidence:.2f})")
            await self._notify_accepted(result)
            return result

    async def process(self, pipeline_input: PipelineInput, pseudo_id: str) -> PipelineResult:
        """
        Full entry point: OCR collaborator first, then interpret().

        OCR failure is reported as an unreadable document.
        """
        hint = pipeline_input.source_format_hint

        try:
            ocr = await self.ocr_provider.extract_text(pipeline_input.source_bytes_or_uri)
        except Exception as e:
            self.logger.warning(f"OCR failed: {e}", exc_info=True)
            run = _RunState(
                report_id=new_report_id(),
                ingested_at=datetime.now(timezone.utc),
                source_format=SourceFormat.from_hint(hint),
                pseudo_id=pseudo_id,
            )
            return self._discard(run, LowQualityInputError(OCR_FAILED_DETAIL))

        return await self.interpret(ocr.text, ocr.quality_score, pseudo_id, source_format_hint=hint)

    async def process_batch(
        self,
        inputs: Sequence[PipelineInput],
        pseudo_ids: Sequence[str],
        max_concurrent: int = 4,
    ) -> List[PipelineResult]:
        """Process several inputs concurrently; results keep input order."""
        semaphore = asyncio.Semaphore(max_concurrent)

        async def process_with_semaphore(pipeline_input, pseudo_id):
            async with semaphore:
                return await self.process(pipeline_input, pseudo_id)

        results = await asyncio.gather(*[
            process_with_semaphore(pipeline_input, pseudo_id)
            for pipeline_input, pseudo_id in zip(inputs, pseudo_ids)
        ])

        accepted = sum(1 for r in results if r.accepted)
        self.logger.info(f"Batch complete: {accepted} accepted, {len(results) - accepted} discarded")
        return list(results)

    async def close(self) -> None:
        for extractor in self.extractors.values():
            await extractor.close()

    # ========================================================================
    # STAGES
    # ========================================================================

    async def _run_stages(
        self,
        run: _RunState,
        text: str,
        quality_score: float,
    ) -> PipelineResult:
        thresholds = self.config.thresholds

        # Step 0: quality floor
        if not is_valid_quality_score(quality_score):
            raise LowQualityInputError(f"OCR quality score out of range: {quality_score!r}")
        if quality_score < thresholds.quality_floor:
            raise LowQualityInputError(
                f"OCR quality too low: {quality_score:.2f} < threshold {thresholds.quality_floor}"
            )

        # Step 1: classification
        detection = self.classifier.run(OCROutput(text=text, quality_score=quality_score))
        run.type_detection = detection
        self.logger.info(f"Classified as {detection.label} (confidence: {detection.confidence:.2f})")

        report_type = ReportType.from_label(detection.label)
        if report_type == ReportType.OTHER:
            raise UnrecognizedTypeError(
                f"Type detection confidence {detection.confidence:.2f} "
                f"< threshold {thresholds.type_detection_min}"
            )

        extractor = self.extractors.get(report_type)
        if report_type not in SUPPORTED_REPORT_TYPES or extractor is None:
            raise UnsupportedTypeError(f"Report type {report_type.value} is not supported")

        # Step 2: extraction
        extraction = await self._extract(extractor, text, report_type)
        run.extraction_confidence = extraction.confidence
        self.logger.info(
            f"Extracted {len(extraction.data)} observations "
            f"(confidence: {extraction.confidence:.2f}{', repaired' if extraction.repaired else ''})"
        )
        if extraction.confidence < thresholds.extraction_min:
            raise LowExtractionConfidenceError(
                f"Extraction confidence {extraction.confidence:.2f} < threshold {thresholds.extraction_min}"
            )

        # Step 3: normalization
        normalization = self.normalizer.run(extraction.data)
        run.normalization_confidence = normalization.confidence
        run.conversions = normalization.conversions
        if normalization.confidence < thresholds.normalization_min:
            raise LowNormalizationConfidenceError(
                f"Normalization confidence {normalization.confidence:.2f} "
                f"< threshold {thresholds.normalization_min} - some observations missing valid units"
            )

        # Step 4: validation
        findings = self.validator.run(normalization.data, run.ingested_at)
        run.findings = [f.message for f in findings]
        failures = [f for f in findings if f.outcome == ValidationOutcome.FAIL]
        if failures:
            raise ValidationFailureError(f"{len(failures)} validation check(s) failed")

        # Step 5: interpretation
        outcome = self.interpreter.run(normalization.data)
        run.rules_triggered = outcome.rules_triggered

        # Step 6: final gate
        if run.overall_confidence < thresholds.overall_accept_min:
            raise LowOverallConfidenceError(
                f"Overall confidence {run.overall_confidence:.2f} < threshold {thresholds.overall_accept_min}"
            )

        return PipelineResult(
            report_id=run.report_id,
            report_type=report_type,
            source_format=run.source_format,
            ingested_at=run.ingested_at,
            patient=PatientInfo(pseudo_id=run.pseudo_id),
            data=normalization.data,
            interpretation=outcome.interpretation,
            audit=run.audit(),
            status=ResultStatus.ACCEPTED,
            references=self.config.references,
        )

    async def _extract(
        self,
        extractor: BaseStructuredExtractor,
        text: str,
        report_type: ReportType,
    ) -> ExtractionResult:
        """Any collaborator failure scores as an empty extraction."""
        try:
            payload = await self._call_extractor(extractor, text, report_type)
        except ExtractionTimeoutError as e:
            self.logger.warning(str(e))
            return failed_extraction()
        except Exception as e:
            self.logger.warning(f"Extraction failed: {e}")
            return failed_extraction()

        return interpret_payload(payload)

    async def _call_extractor(
        self,
        extractor: BaseStructuredExtractor,
        text: str,
        report_type: ReportType,
    ) -> Any:
        """
        Extractor call bounded by the configured timeout.

        Raises:
            ExtractionTimeoutError: No answer within extraction_timeout_seconds
        """
        timeout = self.config.extraction_timeout_seconds
        try:
            return await asyncio.wait_for(extractor.extract(text, report_type), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ExtractionTimeoutError(f"Extraction timed out after {timeout}s") from e

    # ========================================================================
    # RESULT BUILDERS
    # ========================================================================

    def _discard(self, run: _RunState, error: DiscardError) -> PipelineResult:
        run.findings.append(error.detail)
        return PipelineResult(
            report_id=run.report_id,
            report_type=ReportType.OTHER,
            source_format=run.source_format,
            ingested_at=run.ingested_at,
            patient=PatientInfo(pseudo_id=run.pseudo_id),
            data=ObservationSet.empty(),
            interpretation=Interpretation(),
            audit=run.audit(),
            status=ResultStatus.DISCARDED,
            user_feedback=self.config.feedback(error.feedback_key),
        )

    async def _notify_accepted(self, result: PipelineResult) -> None:
        if self.on_accepted is None:
            return
        try:
            await self.on_accepted(result)
        except Exception as e:
            self.logger.error(f"on_accepted hook failed: {e}", exc_info=True)
