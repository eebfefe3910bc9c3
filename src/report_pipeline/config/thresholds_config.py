# ============================================================================
# src/report_pipeline/config/thresholds_config.py
# ============================================================================
"""
Confidence Thresholds
- OCR quality floor
- Type detection
- Extraction / normalization gates
- Overall acceptance

These values were loosened across releases; treat them as deployment
configuration and override through the environment.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThresholdSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REPORT_PIPELINE_",
        env_file=".env",
        extra="ignore",
    )

    QUALITY_FLOOR: float = Field(
        default=0.15,
        ge=0.0, le=1.0,
        description="OCR quality below this discards before any other stage runs"
    )
    TYPE_DETECTION_MIN: float = Field(
        default=0.30,
        ge=0.0, le=1.0,
        description="Classifier confidence below this forces the 'Other' label"
    )
    EXTRACTION_MIN: float = Field(
        default=0.50,
        ge=0.0, le=1.0,
        description="Minimum extraction completeness to proceed"
    )
    NORMALIZATION_MIN: float = Field(
        default=0.30,
        ge=0.0, le=1.0,
        description="Minimum share of observations with a usable unit"
    )
    OVERALL_ACCEPT_MIN: float = Field(
        default=0.50,
        ge=0.0, le=1.0,
        description="Minimum of the three stage confidences to accept"
    )


threshold_settings = ThresholdSettings()
