# ============================================================================
# FILE: tests/unit/test_models.py
# ============================================================================
"""
Unit tests for the pipeline data model
"""

import dataclasses

import pytest

from report_pipeline.core.models import (
    NormalizedQuantity,
    Observation,
    ObservationSet,
    RawQuantity,
    ReferenceRange,
    as_number,
)


def test_as_number():
    assert as_number(5) == 5.0
    assert as_number(4.144) == 4.144
    assert as_number("7.2 H") == 7.2
    assert as_number(" -1.5") == -1.5
    assert as_number("<5") is None
    assert as_number("pending") is None
    assert as_number(None) is None
    assert as_number(True) is None


def test_observation_accessors():
    obs = Observation(code="LDL", display="LDL Cholesterol", quantity=RawQuantity("160", "mg/dL"))

    assert obs.value == "160"
    assert obs.unit == "mg/dL"
    assert obs.numeric_value == 160.0
    assert obs.search_text == "ldl ldl cholesterol"
    assert not obs.is_normalized


def test_with_quantity_keeps_range_unless_given():
    ref = ReferenceRange(0, 100, "mg/dL")
    obs = Observation(code="LDL", display="LDL", quantity=RawQuantity(160, "mg/dL"), reference_range=ref)

    moved = obs.with_quantity(NormalizedQuantity(4.144, "mmol/L"))

    assert moved.is_normalized
    assert moved.reference_range is ref
    assert obs.quantity == RawQuantity(160, "mg/dL")


def test_observation_is_frozen():
    obs = Observation(code="LDL", display="LDL", quantity=RawQuantity(160, "mg/dL"))
    with pytest.raises(dataclasses.FrozenInstanceError):
        obs.code = "HDL"


def test_raw_and_normalized_are_distinct():
    assert RawQuantity(1.0, "mmol/L") != NormalizedQuantity(1.0, "mmol/L")


def test_observation_set_to_dict():
    data = ObservationSet(panel_name="Lipid Panel", observations=(
        Observation(code="LDL", display="LDL", quantity=NormalizedQuantity(4.1, "mmol/L"),
                    reference_range=ReferenceRange(None, 2.59, "mmol/L"), flags=("high",)),
    ))

    assert data.to_dict() == {
        "panel_name": "Lipid Panel",
        "observations": [{
            "code": "LDL",
            "display": "LDL",
            "value": 4.1,
            "unit": "mmol/L",
            "reference_range": {"low": None, "high": 2.59, "unit": "mmol/L"},
            "collected_at": None,
            "flags": ["high"],
        }],
    }
