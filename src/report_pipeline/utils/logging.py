# ============================================================================
# src/report_pipeline/utils/logging.py
# ============================================================================
"""
Logging for the report pipeline.

Every record emitted while a report is in flight carries that report's
id, whichever stage logger emitted it. The id lives in a context
variable, so concurrent reports in process_batch() keep their own tags.

Usage:
    from report_pipeline.utils.logging import report_log_context

    with report_log_context(report_id):
        logger.info("Classified")   # -> "... [report_ab12...] Classified"
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator, Optional
from datetime import datetime, timezone
import json


NO_REPORT = "-"

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(report_id)s] %(message)s'

_current_report_id: ContextVar[str] = ContextVar("report_id", default=NO_REPORT)


def current_report_id() -> str:
    return _current_report_id.get()


@contextmanager
def report_log_context(report_id: str) -> Iterator[str]:
    """Tag every record logged inside the block with report_id"""
    token = _current_report_id.set(report_id)
    try:
        yield report_id
    finally:
        _current_report_id.reset(token)


class ReportContextFilter(logging.Filter):
    """Stamps records with the report id of the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, 'report_id', None):
            record.report_id = current_report_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with the report id when there is one."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }

        report_id = getattr(record, 'report_id', NO_REPORT)
        if report_id != NO_REPORT:
            log_data['report_id'] = report_id

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False
) -> None:
    """
    Configure the root logger with report-tagging handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file to log to as well as stdout
        format_json: Emit JSON lines instead of text
    """
    log_level = getattr(logging, level.upper())

    if format_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ReportContextFilter())

    logging.basicConfig(level=log_level, handlers=handlers, force=True)


def setup_logging_from_settings() -> None:
    """Configure logging from LoggingSettings / BaseSettingsConfig."""
    from ..config import base_settings, logging_settings

    setup_logging(
        level=logging_settings.LOG_LEVEL,
        log_file=base_settings.LOG_FILE,
        format_json=logging_settings.LOG_JSON,
    )
