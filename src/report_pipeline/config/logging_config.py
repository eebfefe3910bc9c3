# ============================================================================
# src/report_pipeline/config/logging_config.py
# ============================================================================
"""
Logging Settings
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REPORT_PIPELINE_",
        env_file=".env",
        extra="ignore",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit JSON log lines"
    )


logging_settings = LoggingSettings()
