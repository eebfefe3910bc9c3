# ============================================================================
# FILE: tests/unit/test_orchestrator.py
# ============================================================================
"""
Unit tests for the confidence-gated report pipeline
"""

import dataclasses
import json

import pytest

from report_pipeline.constants import InterpretationCategory, ReportType, ResultStatus, SourceFormat
from report_pipeline.core.models import PipelineInput
from report_pipeline.extractors.base import BaseOCRProvider
from report_pipeline.utils.exceptions import ExtractionError, ExtractionTimeoutError, OCRError


def _assert_overall_is_min(result):
    audit = result.audit
    assert audit.overall_confidence == min(
        audit.type_classifier.confidence,
        audit.extraction_confidence,
        audit.normalization_confidence,
    )


def _assert_discarded(result, pipeline_config, feedback_key):
    assert result.status == ResultStatus.DISCARDED
    assert result.user_feedback == pipeline_config.feedback(feedback_key)
    assert len(result.data) == 0
    assert result.report_type == ReportType.OTHER
    _assert_overall_is_min(result)


# ============================================================================
# ACCEPTED PATH
# ============================================================================

@pytest.mark.asyncio
async def test_lab_report_accepted(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    extractor = make_extractor(lab_payload)
    pipeline = make_pipeline(extractor)

    result = await pipeline.interpret(sample_lab_text, quality_score=0.9, pseudo_id="patient-001")

    assert result.status == ResultStatus.ACCEPTED
    assert result.accepted
    assert result.report_type == ReportType.OBSERVATION_LABS
    assert result.report_id.startswith("report_")
    assert result.patient.pseudo_id == "patient-001"
    assert result.user_feedback is None
    assert result.references
    assert extractor.calls == 1

    assert result.interpretation.category == InterpretationCategory.BORDERLINE
    assert result.audit.rules_triggered == ("LipidRiskSimple", "A1cGlycemia")
    assert result.audit.type_classifier.confidence == pytest.approx(0.9)
    assert result.audit.extraction_confidence == pytest.approx(1.0)
    assert result.audit.normalization_confidence == 1.0
    assert result.audit.overall_confidence == pytest.approx(0.9)
    _assert_overall_is_min(result)

    ldl = result.data.observations[0]
    assert ldl.unit == "mmol/L"
    assert ldl.reference_range.unit == "mmol/L"
    assert [c.field for c in result.audit.unit_conversions] == ["LDL"]


@pytest.mark.asyncio
async def test_accepted_result_serialization(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    pipeline = make_pipeline(make_extractor(lab_payload))

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001", source_format_hint="txt")
    output = result.to_dict()

    assert output["status"] == "accepted"
    assert output["report_type"] == "Observation_Labs"
    assert output["source_format"] == "TXT"
    assert output["patient"] == {"pseudo_id": "patient-001", "dob": None, "sex_at_birth": None}
    assert output["audit"]["type_classifier"]["label"] == "Observation_Labs"
    assert output["audit"]["unit_conversions"][0]["from"] == "mg/dL"
    assert output["interpretation"]["category"] == "Borderline"
    assert "user_feedback" not in output
    json.dumps(output)


@pytest.mark.asyncio
async def test_repaired_json_text_accepted(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    text = json.dumps(lab_payload).replace("}]}", "},]}")
    pipeline = make_pipeline(make_extractor(text))

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    assert result.accepted


# ============================================================================
# DISCARD GATES
# ============================================================================

@pytest.mark.asyncio
async def test_quality_floor_runs_nothing(make_pipeline, make_extractor, pipeline_config, sample_lab_text, lab_payload):
    extractor = make_extractor(lab_payload)
    pipeline = make_pipeline(extractor)

    result = await pipeline.interpret(sample_lab_text, quality_score=0.1, pseudo_id="patient-001")

    _assert_discarded(result, pipeline_config, "low_quality_ocr")
    assert result.audit.overall_confidence == 0.0
    assert extractor.calls == 0
    for stage in (pipeline.classifier, pipeline.normalizer, pipeline.validator, pipeline.interpreter):
        assert stage.get_metrics()["execution_count"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("quality", [float("nan"), float("inf"), -0.1, 1.5, None])
async def test_out_of_range_quality_is_low_quality(
    make_pipeline, make_extractor, pipeline_config, sample_lab_text, lab_payload, quality
):
    """Only a finite score in [0, 1] gets past the quality floor"""
    extractor = make_extractor(lab_payload)
    pipeline = make_pipeline(extractor)

    result = await pipeline.interpret(sample_lab_text, quality_score=quality, pseudo_id="patient-001")

    _assert_discarded(result, pipeline_config, "low_quality_ocr")
    assert result.audit.type_classifier.confidence == 0.0
    assert extractor.calls == 0
    assert pipeline.classifier.get_metrics()["execution_count"] == 0


@pytest.mark.asyncio
async def test_unrecognized_type(make_pipeline, make_extractor, pipeline_config, lab_payload):
    extractor = make_extractor(lab_payload)
    pipeline = make_pipeline(extractor)

    result = await pipeline.interpret("Dear customer, your parcel has shipped.", 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "unrecognized_type")
    assert extractor.calls == 0


@pytest.mark.asyncio
async def test_unsupported_type(make_pipeline, make_extractor, pipeline_config, sample_imaging_text, lab_payload):
    extractor = make_extractor(lab_payload)
    pipeline = make_pipeline(extractor)

    result = await pipeline.interpret(sample_imaging_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "unsupported_type")
    assert result.audit.type_classifier.label == "DiagnosticReport_Imaging"
    assert extractor.calls == 0


@pytest.mark.asyncio
async def test_empty_extraction_is_partial_parse(make_pipeline, make_extractor, pipeline_config, sample_lab_text):
    pipeline = make_pipeline(make_extractor({"observations": []}))

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "partial_parse")
    assert result.audit.type_classifier.confidence == pytest.approx(0.9)
    assert result.audit.extraction_confidence == 0.0
    assert result.audit.overall_confidence == 0.0


@pytest.mark.asyncio
async def test_extractor_error_is_partial_parse(make_pipeline, make_extractor, pipeline_config, sample_lab_text):
    pipeline = make_pipeline(make_extractor(error=ExtractionError("connection refused")))

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "partial_parse")


@pytest.mark.asyncio
async def test_extractor_timeout_is_partial_parse(make_pipeline, make_extractor, pipeline_config, sample_lab_text, lab_payload):
    config = dataclasses.replace(pipeline_config, extraction_timeout_seconds=0.05)
    pipeline = make_pipeline(make_extractor(lab_payload, delay=1.0), config=config)

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "partial_parse")
    assert result.audit.extraction_confidence == 0.0


@pytest.mark.asyncio
async def test_slow_extractor_raises_timeout_error(make_pipeline, make_extractor, pipeline_config, lab_payload):
    config = dataclasses.replace(pipeline_config, extraction_timeout_seconds=0.05)
    extractor = make_extractor(lab_payload, delay=1.0)
    pipeline = make_pipeline(extractor, config=config)

    with pytest.raises(ExtractionTimeoutError):
        await pipeline._call_extractor(extractor, "LDL 160 mg/dL", ReportType.OBSERVATION_LABS)


@pytest.mark.asyncio
async def test_missing_units(make_pipeline, make_extractor, pipeline_config, sample_lab_text):
    payload = {"observations": [
        {"code": "X1", "display": "Analyte one", "value": 1, "unit": "furlongs",
         "reference_range": {"low": 0, "high": 2}, "collected_at": "2024-01-15T08:00:00Z"},
        {"code": "X2", "display": "Analyte two", "value": 2, "unit": "fortnights",
         "reference_range": {"low": 0, "high": 2}, "collected_at": "2024-01-15T08:00:00Z"},
    ]}
    pipeline = make_pipeline(make_extractor(payload))

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "missing_units")
    assert result.audit.normalization_confidence == 0.0


@pytest.mark.asyncio
async def test_single_validation_fail_discards(make_pipeline, make_extractor, pipeline_config, sample_lab_text, lab_payload):
    """High confidences everywhere, one non-numeric value"""
    payload = dict(lab_payload)
    payload["observations"] = lab_payload["observations"] + [{
        "code": "K", "display": "Potassium", "value": "hemolyzed", "unit": "mmol/L",
        "reference_range": {"low": 3.5, "high": 5.1, "unit": "mmol/L"},
        "collected_at": "2024-01-15T08:00:00Z",
    }]
    pipeline = make_pipeline(make_extractor(payload))

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "partial_parse")
    assert result.audit.overall_confidence == pytest.approx(0.9)
    assert any("not numeric" in f for f in result.audit.validation_findings)


@pytest.mark.asyncio
async def test_overall_confidence_gate(make_pipeline, make_extractor, pipeline_config, sample_lab_text, lab_payload):
    config = pipeline_config.with_thresholds(overall_accept_min=0.95)
    pipeline = make_pipeline(make_extractor(lab_payload), config=config)

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "partial_parse")
    assert result.audit.rules_triggered == ("LipidRiskSimple", "A1cGlycemia")


@pytest.mark.asyncio
async def test_unexpected_error_becomes_processing_error(
    monkeypatch, make_pipeline, make_extractor, pipeline_config, sample_lab_text, lab_payload
):
    pipeline = make_pipeline(make_extractor(lab_payload))

    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(pipeline.interpreter, "execute", boom)

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    _assert_discarded(result, pipeline_config, "processing_error")
    assert result.audit.validation_findings[-1] == "System error"
    assert not any("boom" in finding for finding in result.audit.validation_findings)
    assert "boom" not in json.dumps(result.to_dict())


# ============================================================================
# PROPERTIES
# ============================================================================

@pytest.mark.asyncio
async def test_deterministic(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    pipeline = make_pipeline(make_extractor(lab_payload))

    first = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")
    second = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    assert first.status == second.status
    assert first.interpretation.category == second.interpretation.category
    assert first.audit.type_classifier.confidence == second.audit.type_classifier.confidence
    assert first.audit.extraction_confidence == second.audit.extraction_confidence
    assert first.audit.normalization_confidence == second.audit.normalization_confidence
    assert first.report_id != second.report_id


@pytest.mark.asyncio
async def test_discarded_serialization(make_pipeline, make_extractor, sample_lab_text):
    pipeline = make_pipeline(make_extractor({"observations": []}))

    output = (await pipeline.interpret(sample_lab_text, 0.9, "patient-001")).to_dict()

    assert output["status"] == "discarded"
    assert output["user_feedback"]
    assert output["data"]["observations"] == []
    assert output["source_format"] == "PDF_OCR"


# ============================================================================
# ACCEPTED HOOK
# ============================================================================

@pytest.mark.asyncio
async def test_on_accepted_hook(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    seen = []

    async def hook(result):
        seen.append(result.report_id)

    pipeline = make_pipeline(make_extractor(lab_payload), on_accepted=hook)

    accepted = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")
    await pipeline.interpret(sample_lab_text, 0.1, "patient-001")

    assert seen == [accepted.report_id]


@pytest.mark.asyncio
async def test_failing_hook_keeps_result(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    async def hook(result):
        raise RuntimeError("database unavailable")

    pipeline = make_pipeline(make_extractor(lab_payload), on_accepted=hook)

    result = await pipeline.interpret(sample_lab_text, 0.9, "patient-001")

    assert result.accepted


# ============================================================================
# FULL INPUT
# ============================================================================

class FailingOCR(BaseOCRProvider):
    async def extract_text(self, source):
        raise OCRError("scanner on fire")


@pytest.mark.asyncio
async def test_process_with_plain_text_ocr(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    pipeline = make_pipeline(make_extractor(lab_payload))

    result = await pipeline.process(PipelineInput(sample_lab_text, source_format_hint="TXT"), "patient-001")

    assert result.accepted
    assert result.source_format == SourceFormat.TXT


@pytest.mark.asyncio
async def test_process_reads_text_file(tmp_path, make_pipeline, make_extractor, sample_lab_text, lab_payload):
    report = tmp_path / "report.txt"
    report.write_text(sample_lab_text, encoding="utf-8")
    pipeline = make_pipeline(make_extractor(lab_payload))

    result = await pipeline.process(PipelineInput(str(report)), "patient-001")

    assert result.accepted


@pytest.mark.asyncio
async def test_process_ocr_failure(make_pipeline, make_extractor, pipeline_config, lab_payload):
    extractor = make_extractor(lab_payload)
    pipeline = make_pipeline(extractor, ocr_provider=FailingOCR())

    result = await pipeline.process(PipelineInput("scan.pdf"), "patient-001")

    _assert_discarded(result, pipeline_config, "low_quality_ocr")
    assert extractor.calls == 0
    assert result.audit.validation_findings == ("OCR failed",)


@pytest.mark.asyncio
async def test_process_batch_keeps_order(make_pipeline, make_extractor, sample_lab_text, lab_payload):
    pipeline = make_pipeline(make_extractor(lab_payload))

    results = await pipeline.process_batch(
        [PipelineInput(sample_lab_text), PipelineInput("too short")],
        ["patient-001", "patient-002"],
        max_concurrent=2,
    )

    assert [r.patient.pseudo_id for r in results] == ["patient-001", "patient-002"]
    assert results[0].accepted
    assert not results[1].accepted
