# ============================================================================
# src/report_pipeline/extractors/ollama_extractor.py
# ============================================================================
"""
Ollama Lab Extractor

LLM-backed structured extraction collaborator for lab reports. Sends the
report text to an Ollama server in JSON mode and returns the raw model
text; decoding, repair and scoring happen in extractors.boundary.

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull the model configured in REPORT_PIPELINE_OLLAMA_MODEL
    3. Start server: ollama serve
"""

from typing import Any, Dict, Optional
import asyncio

import aiohttp

from .base import BaseStructuredExtractor
from ..config import extractor_settings
from ..constants import ReportType
from ..utils.exceptions import ExtractionError


SYSTEM_PROMPT = (
    "You are a medical data extraction system. Extract laboratory observations "
    "exactly as printed. Never invent values, units or reference ranges; use null "
    "when a field is not present."
)

LAB_EXTRACTION_PROMPT = """{system}

Extract lab observations from this report:

{text}

Return ONLY valid JSON matching this structure:
{{
  "panel_name": "string or null",
  "observations": [
    {{
      "code": "test code or abbreviation",
      "display": "full test name",
      "value": number or string,
      "unit": "measurement unit",
      "reference_range": {{
        "low": number or null,
        "high": number or null,
        "unit": "unit string or null"
      }},
      "collected_at": "ISO8601 timestamp or null",
      "flags": ["array of flag strings like 'high', 'low', 'abnormal'"]
    }}
  ]
}}"""


class OllamaLabExtractor(BaseStructuredExtractor):
    """
    Structured lab extraction through Ollama.

    Config options (override ExtractorSettings):
        ollama_host: Ollama server URL
        ollama_model: Model name
        max_tokens: Output token budget
        temperature: Sampling temperature
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.host = self.config.get('ollama_host', extractor_settings.OLLAMA_HOST)
        self.model_name = self.config.get('ollama_model', extractor_settings.OLLAMA_MODEL)
        self.max_tokens = self.config.get('max_tokens', extractor_settings.MAX_TOKENS)
        self.temperature = self.config.get('temperature', extractor_settings.TEMPERATURE)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

        self.logger.info(f"Initialized Ollama lab extractor: {self.host} / {self.model_name}")

    @property
    def report_type(self) -> ReportType:
        return ReportType.OBSERVATION_LABS

    def build_prompt(self, text: str) -> str:
        return LAB_EXTRACTION_PROMPT.format(system=SYSTEM_PROMPT, text=text)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()

            # The orchestrator bounds the whole call; only connect is capped here
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def extract(self, text: str, report_type: ReportType = ReportType.OBSERVATION_LABS) -> str:
        """
        Ask the model for structured observations.

        Returns:
            Raw model text (expected to be JSON)

        Raises:
            ExtractionError: Server unreachable or non-200 response
        """
        if report_type != self.report_type:
            raise ExtractionError(f"{self.__class__.__name__} cannot extract {report_type.value}")

        session = await self._get_session()

        payload = {
            "model": self.model_name,
            "prompt": self.build_prompt(text),
            "stream": False,
            "format": "json",
            "options": {
                "num_predict": self.max_tokens,
                "temperature": self.temperature,
            },
        }

        try:
            async with session.post(f"{self.host}/api/generate", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ExtractionError(f"Ollama error ({response.status}): {error_text[:200]}")
                data = await response.json()
        except aiohttp.ClientConnectorError as e:
            raise ExtractionError(
                f"Cannot connect to Ollama at {self.host}. "
                "Make sure Ollama is running: ollama serve"
            ) from e

        generated = data.get('response', '')
        self.logger.info(
            f"Extraction generated {data.get('eval_count', 0)} tokens "
            f"({len(generated)} chars)"
        )
        return generated
