# ============================================================================
# src/report_pipeline/constants/user_feedback.py
# ============================================================================
"""
User Feedback Templates
- The only text a discarded result ever shows the user
"""

import json
import logging

from ..config.base_config import base_settings

logger = logging.getLogger(__name__)

try:
    with open(base_settings.knowledge_file("user_feedback.json"), encoding="utf-8") as f:
        USER_FEEDBACK_TEMPLATES = json.load(f)
except FileNotFoundError:
    logger.warning("user_feedback.json not found in %s", base_settings.KNOWLEDGE_DIR)
    USER_FEEDBACK_TEMPLATES = {}
