"""API route definitions for the review service."""

import time
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from review_forge.api.models import MAX_DIFF_SIZE, LargeReviewBody
from review_forge.review.pipeline import LargeReviewPipeline, ReviewPipelineError

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_pipeline(request: Request) -> LargeReviewPipeline | None:
    """The pipeline built at startup, if startup has run."""
    return getattr(request.app.state, "pipeline", None)


# =============================================================================
# REVIEW ENDPOINTS
# =============================================================================


@router.post("/review/large", response_model=None)
async def review_large(body: LargeReviewBody, request: Request) -> JSONResponse:
    """Review a large diff with the chunked agent pipeline.

    Returns:
        Review markdown with run metadata and pipeline statistics
    """
    if not body.diff:
        return JSONResponse(status_code=400, content={"error": "Missing or invalid diff"})

    if len(body.diff) > MAX_DIFF_SIZE:
        return JSONResponse(
            status_code=413,
            content={
                "error": "Diff too large (max 5MB)",
                "size": len(body.diff),
                "maxSize": MAX_DIFF_SIZE,
            },
        )

    pipeline = get_pipeline(request) or LargeReviewPipeline()

    try:
        response = await pipeline.run(body.to_request())
    except ReviewPipelineError as e:
        logger.error("Large review failed", error=e.message)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Large review failed",
                "message": e.message,
                "timestamp": e.timestamp,
            },
        )

    return JSONResponse(content=response.to_dict())


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Health check endpoint."""
    pipeline = get_pipeline(request)
    return {
        "status": "healthy",
        "service": "review-forge",
        "providers": [b.name for b in pipeline.backends] if pipeline else [],
        "timestamp": int(time.time()),
    }
