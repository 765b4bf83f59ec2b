"""
GitHub summarizer endpoint, gated by bearer API keys.
"""
import json
import logging
import time

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from gitsum.core.auth import (
    authorize_credential,
    extract_credential,
    missing_api_key_response,
    rejected_api_key_response,
)
from gitsum.core.database import get_db
from gitsum.core.errors import GitHubFetchError
from gitsum.schemas.summarizer import SummarizeRequest, SummarizeResponse
from gitsum.services import github_service
from gitsum.services.summary_service import summary_service

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_BODY_ERROR = "Invalid request body. Expected JSON with { githubUrl: '...' }"
INVALID_URL_ERROR = (
    "Missing or invalid githubUrl parameter. Pass JSON: { githubUrl: 'https://github.com/owner/repo' } "
    "or { githubUrl: 'https://github.com/owner/repo/blob/main/path/to/file' }"
)


def _bad_request(error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": error, "valid": False, **extra},
    )


@router.post(
    "",
    response_model=SummarizeResponse,
    responses={
        400: {"description": "Malformed body or unsupported GitHub URL"},
        401: {"description": "Missing or invalid API key"},
        429: {"description": "API key usage limit exceeded"},
        502: {"description": "GitHub fetch or summary failed"},
    },
)
async def summarize_github(request: Request, db: Session = Depends(get_db)):
    """
    Summarize a GitHub repository README (or a single file).

    Authenticate with ``Authorization: Bearer <key>`` or ``X-API-Key: <key>``.
    Each accepted call consumes one unit of the key's usage before any GitHub
    or model work starts; the charge stands even if that work fails.
    """
    start_time = time.time()

    credential = extract_credential(request.headers)
    if not credential:
        logger.info("Summarizer request without an API key")
        return missing_api_key_response()

    # Body problems are rejected before touching the key store
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return _bad_request(INVALID_BODY_ERROR, details=str(e))
    if not isinstance(payload, dict):
        return _bad_request(INVALID_BODY_ERROR)
    try:
        body = SummarizeRequest.model_validate(payload)
    except ValidationError:
        return _bad_request(INVALID_URL_ERROR)

    decision = await run_in_threadpool(authorize_credential, db, credential)
    if not decision.authorized:
        return rejected_api_key_response(decision)

    raw_url = await run_in_threadpool(github_service.resolve_raw_url, body.githubUrl)
    if not raw_url:
        if github_service.is_repository_url(body.githubUrl):
            error = "Could not construct README.md URL for the repository."
        else:
            error = "Provided githubUrl is not a supported GitHub file URL (should be a blob or raw file URL)."
        return _bad_request(error)

    try:
        content = await run_in_threadpool(github_service.fetch_content, raw_url)
    except GitHubFetchError as e:
        logger.warning(f"GitHub fetch failed for {raw_url}: {e}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "error": "Failed to fetch content from GitHub",
                "githubUrl": body.githubUrl,
                "rawUrl": raw_url,
                "githubContentError": str(e),
                "valid": False,
            },
        )

    result = await run_in_threadpool(summary_service.summarize_readme, content)
    if not result or not result.summary:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"summary": None, "cool_facts": None},
        )

    latency_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"Summarized {body.githubUrl} for key {decision.key_id} "
        f"(usage {decision.usage}/{decision.limit if decision.limit is not None else 'unlimited'}, {latency_ms}ms)"
    )
    return SummarizeResponse(summary=result.summary, cool_facts=result.cool_facts)
