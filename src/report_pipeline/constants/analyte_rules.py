# ============================================================================
# src/report_pipeline/constants/analyte_rules.py
# ============================================================================
"""
Analyte Decision Tables
- Lipid, glycemia and triglyceride thresholds
- Reference list attached to accepted results
"""

import json
import logging

from ..config.base_config import base_settings

logger = logging.getLogger(__name__)

try:
    with open(base_settings.knowledge_file("analyte_rules.json"), encoding="utf-8") as f:
        _rules = json.load(f)
except FileNotFoundError:
    logger.warning("analyte_rules.json not found in %s", base_settings.KNOWLEDGE_DIR)
    _rules = {}

INTERPRETATION_RULES = _rules.get("rules", [])
CLINICAL_REFERENCES = _rules.get("references", [])
