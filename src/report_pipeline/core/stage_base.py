# ============================================================================
# src/report_pipeline/core/stage_base.py
# ============================================================================
"""
Abstract Base Stage Class

Classifier, normalizer, validator and interpreter inherit from this base.

Every stage must implement:
- execute(...): The stage's pure transformation
- get_name(): Stage identifier

Every stage gets:
- A named logger
- Timing + execution counters through run()
- The injected PipelineConfig
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging
import time

from .pipeline_config import PipelineConfig, load_pipeline_config


class Stage(ABC):
    """
    Base class for a pipeline stage.

    Stages hold configuration only. All per-report data flows through
    execute() arguments and return values, so one stage instance can
    serve any number of concurrent reports.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or load_pipeline_config()
        self.logger = logging.getLogger(f"{__name__}.{self.get_name()}")
        self._execution_count = 0
        self._total_duration = 0.0

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Stage logic. Returns the stage output; raises on unexpected errors."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Return stage name for logging.

        Example: "ReportClassifier"
        """
        pass

    def run(self, *args, **kwargs) -> Any:
        """
        Wrapper around execute() that handles logging and timing.

        Errors are logged and re-raised; the orchestrator owns the
        decision of what an error means for the report.
        """
        name = self.get_name()
        start = time.perf_counter()

        try:
            result = self.execute(*args, **kwargs)
        except Exception as e:
            self.logger.error(f"{name} failed: {e}")
            raise
        finally:
            duration = time.perf_counter() - start
            self._execution_count += 1
            self._total_duration += duration

        self.logger.debug(f"{name} completed in {duration * 1000:.1f}ms")
        return result

    def get_metrics(self) -> Dict[str, Any]:
        avg_duration = (
            self._total_duration / self._execution_count
            if self._execution_count > 0
            else 0.0
        )

        return {
            "stage_name": self.get_name(),
            "execution_count": self._execution_count,
            "total_duration_seconds": self._total_duration,
            "average_duration_seconds": avg_duration,
        }
