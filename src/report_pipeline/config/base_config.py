# ============================================================================
# src/report_pipeline/config/base_config.py
# ============================================================================
"""
Base Configuration
- Knowledge tables directory (heuristics, conversions, analyte rules)
- Log file location
"""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseSettingsConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REPORT_PIPELINE_",
        env_file=".env",
        extra="ignore",
    )

    # Knowledge tables shipped with the package
    KNOWLEDGE_DIR: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent / "knowledge",
        description="Directory holding the JSON knowledge tables"
    )

    LOG_FILE: Optional[Path] = Field(
        default=None,
        description="Optional log file; console logging is always on"
    )

    def knowledge_file(self, name: str) -> Path:
        """Path of a knowledge table by file name"""
        return self.KNOWLEDGE_DIR / name


# Global instance
base_settings = BaseSettingsConfig()
