# ============================================================================
# src/report_pipeline/config/extractor_config.py
# ============================================================================
"""
Structured Extraction Settings
- Ollama connection
- Generation parameters
- Bounded wait for the extraction call
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractorSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REPORT_PIPELINE_",
        env_file=".env",
        extra="ignore",
    )

    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL"
    )
    OLLAMA_MODEL: str = Field(
        default="MedAIBase/MedGemma1.5:4b-it-q8_0",
        description="Model used for structured lab extraction"
    )
    MAX_TOKENS: int = Field(
        default=8000,
        gt=0,
        description="Large lab reports need a generous output budget"
    )
    TEMPERATURE: float = Field(
        default=0.0,
        ge=0.0, le=2.0,
        description="Sampling temperature"
    )
    EXTRACTION_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        gt=0.0,
        description="Bounded wait on the extraction collaborator"
    )


extractor_settings = ExtractorSettings()
