"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coverwise.api import policies
from coverwise.config import AI_PROVIDER, APP_ENV, CORS_ORIGINS
from coverwise.errors import CoverwiseError, ExtractionFormatError
from coverwise.pipeline.llm_client import check_provider_status

logger = logging.getLogger(__name__)

app = FastAPI(
    title="CoverWise Policy Engine",
    description="Health insurance policy normalization and deterministic sufficiency verdicts",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(policies.router, prefix="/api", tags=["Policies"])


@app.exception_handler(CoverwiseError)
async def coverwise_error_handler(request: Request, exc: CoverwiseError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")

    body = {"error": exc.message}
    if APP_ENV == "development" and exc.details:
        body["details"] = exc.details
    if isinstance(exc, ExtractionFormatError):
        body["raw_response_preview"] = exc.payload_preview
    return JSONResponse(status_code=exc.status_code, content=body)


@app.get("/api/health")
async def health():
    return {
        "status": "operational",
        "platform": "CoverWise",
        "provider": await check_provider_status() if AI_PROVIDER else None,
    }
