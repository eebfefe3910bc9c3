# ============================================================================
# src/report_pipeline/constants/unit_conversions.py
# ============================================================================
"""
Unit Conversion Tables
- Conventional -> SI conversion factors per analyte
- Units already considered canonical
"""

import json
import logging

from ..config.base_config import base_settings

logger = logging.getLogger(__name__)

try:
    with open(base_settings.knowledge_file("unit_conversions.json"), encoding="utf-8") as f:
        _table = json.load(f)
except FileNotFoundError:
    logger.warning("unit_conversions.json not found in %s", base_settings.KNOWLEDGE_DIR)
    _table = {}

UNIT_CONVERSIONS = _table.get("conversions", [])
CANONICAL_UNITS = _table.get("canonical_units", [])

# Units whose values must be numbers
NUMERIC_UNITS = [
    "mg/dl", "mmol/l", "µmol/l", "umol/l", "g/l", "u/l", "%",
    "bpm", "mmhg", "cm", "kg", "fl", "pg", "x10^9/l",
]
