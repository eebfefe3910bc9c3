# ============================================================================
# src/report_pipeline/interpretation/rule_engine.py
# ============================================================================
"""
Clinical Interpretation Rule Engine

Matches known analytes to decision tables (analyte_rules.json) and
produces an Interpretation:

- Each rule looks at observations whose code/display contains one of its
  terms as a whole word (VLDL is not LDL) and none of its exclusions
  (Non-HDL, ratios), takes the first one readable in the rule's unit
  (converting with the rule's unit factors) and picks the first matching
  band, else default
- Overall category is the most severe one seen (Abnormal > Borderline > Normal)
- Each applied rule adds its insight, its action (if any) and its name
- No rule applied: one generic insight; Normal if some observation sits
  inside its own reference range, Indeterminate otherwise
"""

import re
from functools import lru_cache
from typing import Iterator, List, Optional, Pattern, Sequence, Tuple

from ..core.stage_base import Stage
from ..core.models import Interpretation, InterpretationOutcome, Observation, ObservationSet
from ..core.pipeline_config import AnalyteRule, DecisionBand, canonical_unit_key
from ..constants import CATEGORY_SEVERITY, InterpretationCategory


GENERIC_INSIGHT = "All measured values appear within typical ranges"
LIMITED_DATA_CAVEAT = "Limited data available - interpretations based on partial panel"
DEFAULT_ACTION = "Discuss results with your healthcare provider"

MIN_PANEL_SIZE = 3


@lru_cache(maxsize=256)
def term_pattern(term: str) -> Pattern[str]:
    """Whole-word match for a term, allowing a plural 's'"""
    return re.compile(r"(?<![a-z0-9])" + re.escape(term) + r"s?(?![a-z0-9])")


def mentions_analyte(text: str, terms: Sequence[str], exclusions: Sequence[str] = ()) -> bool:
    if any(excluded in text for excluded in exclusions):
        return False
    return any(term_pattern(term).search(text) for term in terms)


def matching_observations(
    observations: Sequence[Observation],
    terms: Sequence[str],
    exclusions: Sequence[str] = (),
) -> Iterator[Observation]:
    for obs in observations:
        if mentions_analyte(obs.search_text, terms, exclusions):
            yield obs


def find_observation(
    observations: Sequence[Observation],
    terms: Sequence[str],
    exclusions: Sequence[str] = (),
) -> Optional[Observation]:
    """First observation naming the analyte"""
    return next(matching_observations(observations, terms, exclusions), None)


def value_in_rule_unit(rule: AnalyteRule, obs: Observation) -> Optional[float]:
    """
    Observation value expressed in the rule's unit, or None if the value
    is not numeric or the unit is one the rule cannot convert from.
    """
    value = obs.numeric_value
    if value is None:
        return None

    unit_key = canonical_unit_key(obs.unit)
    if not unit_key or unit_key == canonical_unit_key(rule.unit):
        return value
    if unit_key in rule.unit_factors:
        return value * rule.unit_factors[unit_key]
    return None


def select_band(rule: AnalyteRule, value: float) -> DecisionBand:
    for band in rule.bands:
        if band.matches(value):
            return band
    return rule.default


def within_reference_range(obs: Observation) -> bool:
    ref = obs.reference_range
    value = obs.numeric_value
    if value is None or ref is None or not ref.has_bound:
        return False
    if ref.low is not None and value < ref.low:
        return False
    if ref.high is not None and value > ref.high:
        return False
    return True


def more_severe(
    current: Optional[InterpretationCategory],
    candidate: InterpretationCategory,
) -> InterpretationCategory:
    if current is None:
        return candidate
    if CATEGORY_SEVERITY.get(candidate, 0) > CATEGORY_SEVERITY.get(current, 0):
        return candidate
    return current


class RuleInterpreter(Stage):
    """Applies the configured analyte rules to a normalized ObservationSet."""

    def get_name(self) -> str:
        return "RuleInterpreter"

    def execute(self, data: ObservationSet) -> InterpretationOutcome:
        insights: List[str] = []
        caveats: List[str] = []
        actions: List[str] = []
        rules_triggered: List[str] = []
        category: Optional[InterpretationCategory] = None

        for rule in self.config.analyte_rules:
            if any(name in rules_triggered for name in rule.skip_if_triggered):
                continue

            applied = self.apply_rule(rule, data.observations)
            if applied is None:
                continue

            band, value = applied
            category = more_severe(category, band.category)
            insights.append(band.insight)
            if band.action:
                actions.append(band.action)
            rules_triggered.append(rule.name)

            self.logger.debug(f"{rule.name}: {value:.3f} {rule.unit} -> {band.category.value}")

        if len(data) < MIN_PANEL_SIZE:
            caveats.append(LIMITED_DATA_CAVEAT)

        if not rules_triggered:
            insights.append(GENERIC_INSIGHT)
            if any(within_reference_range(obs) for obs in data.observations):
                category = InterpretationCategory.NORMAL
            else:
                category = InterpretationCategory.INDETERMINATE

        if not actions and category != InterpretationCategory.NORMAL:
            actions.append(DEFAULT_ACTION)

        self.logger.info(
            f"Interpretation: {category.value} "
            f"(rules: {', '.join(rules_triggered) or 'none'})"
        )

        return InterpretationOutcome(
            interpretation=Interpretation(
                category=category,
                insights=tuple(insights),
                caveats=tuple(caveats),
                next_best_actions=tuple(actions),
            ),
            rules_triggered=tuple(rules_triggered),
        )

    def apply_rule(
        self,
        rule: AnalyteRule,
        observations: Sequence[Observation],
    ) -> Optional[Tuple[DecisionBand, float]]:
        for obs in matching_observations(observations, rule.terms, rule.exclusions):
            value = value_in_rule_unit(rule, obs)
            if value is not None:
                return select_band(rule, value), value
            self.logger.debug(f"{rule.name}: cannot read {obs.value!r} {obs.unit!r} in {rule.unit}")
        return None
