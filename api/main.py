# ============================================================================
# api/main.py
# ============================================================================
"""
FastAPI Backend for the Report Interpretation Pipeline

Runs on port 8000.
Accepts OCR text and returns the accepted or discarded PipelineResult.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from report_pipeline import ReportPipeline, __version__
from report_pipeline.utils import setup_logging_from_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline once at startup; close extractor sessions on shutdown."""
    setup_logging_from_settings()
    app.state.pipeline = ReportPipeline()
    logger.info("Report pipeline ready")
    yield
    await app.state.pipeline.close()


app = FastAPI(
    title="Report Interpretation API",
    description="Confidence-gated interpretation of OCR'd medical lab reports",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Models
# ============================================================================

class InterpretRequest(BaseModel):
    text: str
    quality_score: float = Field(ge=0.0, le=1.0)
    pseudo_id: str = Field(min_length=1)
    source_format_hint: Optional[str] = None


def get_pipeline(request: Request) -> ReportPipeline:
    return request.app.state.pipeline


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/api/health")
async def health():
    """Health check for monitoring."""
    return {"status": "healthy", "version": __version__}


@app.post("/api/v1/interpret")
async def interpret_report(
    body: InterpretRequest,
    pipeline: ReportPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    """
    Interpret one report.

    Discards are normal outcomes and come back with status "discarded"
    and a user_feedback message, not as HTTP errors.
    """
    result = await pipeline.interpret(
        text=body.text,
        quality_score=body.quality_score,
        pseudo_id=body.pseudo_id,
        source_format_hint=body.source_format_hint,
    )
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
