"""
Authentication dependencies: browser sessions for the dashboard, bearer API
keys for the summarizer endpoint.
"""
import logging
from typing import Mapping, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gitsum.core.database import get_db
from gitsum.core.session import resolve_user_id
from gitsum.services import key_gate
from gitsum.services.key_gate import GateDecision, GateOutcome

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
API_KEY_HINT = "Include API key in request header: Authorization: Bearer <key> or X-API-Key: <key>"


def get_current_user_id(request: Request, db: Session = Depends(get_db)) -> str:
    """
    Dependency returning the signed-in user's id.

    Raises:
        HTTPException: 401 if the request carries no usable session
    """
    user_id = resolve_user_id(request.headers, db)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required",
        )
    return user_id


def extract_credential(headers: Mapping[str, str]) -> Optional[str]:
    """
    Pull a bearer credential out of request headers.

    ``Authorization: Bearer <key>`` wins; a bare Authorization value is
    accepted too. Otherwise the X-API-Key header is used.
    """
    authorization = (headers.get("authorization") or "").strip()
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer":
            value = value.strip()
            if value:
                return value
        else:
            return authorization

    api_key = (headers.get(API_KEY_HEADER.lower()) or "").strip()
    return api_key or None


def missing_api_key_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "API key is required", "valid": False, "hint": API_KEY_HINT},
        headers={"WWW-Authenticate": "Bearer"},
    )


def rejected_api_key_response(decision: GateDecision) -> JSONResponse:
    """Map a negative gate decision to its HTTP response."""
    if decision.outcome is GateOutcome.RATE_LIMITED:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "API key usage limit exceeded",
                "valid": False,
                "usage": decision.usage,
                "limit": decision.limit,
            },
        )
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "Invalid API key", "valid": False},
        headers={"WWW-Authenticate": "Bearer"},
    )


def authorize_credential(db: Session, credential: str) -> GateDecision:
    """
    Run a summarizer credential through the gate, charging one unit.

    Raises:
        HTTPException: 503 if the key store cannot be reached
    """
    try:
        return key_gate.check_credential(db, credential, meter=True)
    except SQLAlchemyError as exc:
        logger.error(f"API key validation failed: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication unavailable",
        ) from exc
