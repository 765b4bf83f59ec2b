"""
Session endpoints for the dashboard.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from gitsum.core.auth import get_current_user_id
from gitsum.core.database import get_db
from gitsum.core.session import read_session_claims
from gitsum.schemas.user import UserResponse
from gitsum.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PROVIDER = "google"


@router.post("/sync", response_model=UserResponse)
async def sync_signed_in_user(request: Request, db: Session = Depends(get_db)):
    """
    Provision or refresh the user behind a freshly issued session.

    Called by the dashboard right after sign-in. The verified session token
    supplies email, name, picture, provider and the provider's subject id.
    """
    claims = read_session_claims(request.headers)
    if not claims or not claims.get("email"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign in required")

    email = claims["email"]
    try:
        user = await run_in_threadpool(
            user_service.sync_user,
            db,
            email=email,
            provider=claims.get("provider") or DEFAULT_PROVIDER,
            provider_account_id=str(claims.get("sub") or email),
            name=claims.get("name"),
            image=claims.get("picture"),
        )
    except SQLAlchemyError as e:
        logger.error(f"User sync failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User store unavailable",
        ) from e
    return user


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Profile of the signed-in user."""
    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign in required")
    return user
