"""Policy upload, extraction and verdict endpoints."""

import logging
from pathlib import Path, PurePosixPath

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from coverwise.config import ALLOWED_MIME_TYPES, MAX_UPLOAD_BYTES, MAX_UPLOAD_MB, get_city_tier_table
from coverwise.pipeline.ingestion import extract_document_text
from coverwise.pipeline.orchestrator import analyze_sufficiency, extract_policy
from coverwise.pipeline.verdict import VerdictContext, coerce_sum_insured, evaluate

router = APIRouter()
logger = logging.getLogger(__name__)


class VerdictRequest(BaseModel):
    sum_insured: int | float | str | None = None
    city: str = "Not mentioned"
    serious_gaps: list[str] = Field(default_factory=list)
    proposed_verdict: str | None = None


def _sanitize_filename(raw: str | None) -> str:
    """Strip path components and keep only the basename."""
    name = PurePosixPath(raw or "").name
    name = Path(name).name  # also handles backslashes
    return name or "policy.pdf"


async def _read_upload(file: UploadFile) -> tuple[bytes, str, str]:
    """Read an upload with the size and type limits applied."""
    safe_name = _sanitize_filename(file.filename)
    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    if mime_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type {mime_type or 'unknown'}. Allowed: {', '.join(ALLOWED_MIME_TYPES)}",
        )

    # Streaming read to avoid unbounded RAM
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > MAX_UPLOAD_BYTES:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: {safe_name} exceeds {MAX_UPLOAD_MB} MB limit",
            )
        chunks.append(chunk)
    content = b"".join(chunks)

    if not content:
        raise HTTPException(status_code=400, detail=f"Empty file: {safe_name}")

    logger.info(f"Received {safe_name} ({mime_type}, {len(content):,} bytes)")
    return content, safe_name, mime_type


@router.post("/analyze")
async def analyze(file: UploadFile = File(...)):
    """Sufficiency analysis of one policy document, with the verdict enforced."""
    content, name, mime_type = await _read_upload(file)
    text = await extract_document_text(content, name, mime_type)
    return await analyze_sufficiency(text)


@router.post("/extract-policy")
async def extract(policy_pdf: UploadFile = File(...)):
    """Evidence-based extraction of one policy into the canonical record."""
    content, name, mime_type = await _read_upload(policy_pdf)
    text = await extract_document_text(content, name, mime_type)
    return await extract_policy(text, name)


@router.post("/verdict")
async def verdict(request: VerdictRequest):
    """Re-run the verdict engine on caller-supplied facts (no LLM call)."""
    context = VerdictContext(
        sum_insured=coerce_sum_insured(request.sum_insured),
        city=request.city or "Not mentioned",
        serious_gaps=tuple(request.serious_gaps),
        proposed_verdict=request.proposed_verdict,
    )
    return evaluate(context, get_city_tier_table()).to_dict()
