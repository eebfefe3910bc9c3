# ============================================================================
# src/report_pipeline/constants/type_heuristics.py
# ============================================================================
"""
Type Detection Heuristics
- Weighted regex pattern lists per report type, with exclusions
"""

import json
import logging

from ..config.base_config import base_settings

logger = logging.getLogger(__name__)

try:
    with open(base_settings.knowledge_file("type_heuristics.json"), encoding="utf-8") as f:
        TYPE_DETECTION_HEURISTICS = json.load(f).get("heuristics", [])
except FileNotFoundError:
    logger.warning("type_heuristics.json not found in %s", base_settings.KNOWLEDGE_DIR)
    TYPE_DETECTION_HEURISTICS = []
