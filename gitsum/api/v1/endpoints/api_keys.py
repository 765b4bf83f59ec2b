"""
API key management endpoints.

CRUD routes are scoped to the signed-in user; validate is keyed by the
credential itself.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gitsum.core.auth import get_current_user_id
from gitsum.core.database import get_db
from gitsum.core.errors import KeyConflictError, KeyStoreUnavailable, NotFoundOrForbidden
from gitsum.models.api_key import APIKey
from gitsum.services import api_key_service, key_gate
from gitsum.services.key_gate import GateOutcome
from gitsum.schemas.api_key import (
    APIKeyCreateRequest,
    APIKeyResponse,
    APIKeyUpdateRequest,
    APIKeyValidateRequest,
    APIKeyValidateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND_DETAIL = "API key not found"


def to_response(db_key: APIKey) -> APIKeyResponse:
    return APIKeyResponse(
        id=db_key.id,
        name=db_key.name,
        type=db_key.type,
        key=db_key.key,
        key_masked=api_key_service.mask_credential(db_key.key),
        usage=db_key.usage,
        limit=db_key.usage_limit,
        created_at=db_key.created_at,
        updated_at=db_key.updated_at,
    )


def _unavailable(exc: KeyStoreUnavailable) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("", response_model=List[APIKeyResponse])
async def list_api_keys(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    List the signed-in user's API keys, newest first.

    Credentials are returned in full; masking is left to the client
    (``key_masked`` is provided for convenience).
    """
    try:
        keys = api_key_service.list_keys(db, user_id)
    except KeyStoreUnavailable as e:
        raise _unavailable(e)

    logger.info(f"Listed {len(keys)} API keys for user {user_id}")
    return [to_response(key) for key in keys]


@router.post("", response_model=APIKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    request: APIKeyCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create a new API key for the signed-in user.

    The credential is generated server-side and starts with usage 0.
    """
    try:
        db_key = api_key_service.create_key(
            db,
            user_id=user_id,
            name=request.name,
            environment=request.type,
            monthly_limit=request.limit,
        )
    except KeyStoreUnavailable as e:
        raise _unavailable(e)

    return to_response(db_key)


@router.post("/validate", response_model=APIKeyValidateResponse, response_model_exclude_none=True)
async def validate_api_key(
    request: APIKeyValidateRequest,
    db: Session = Depends(get_db),
):
    """
    Report whether a credential is usable, without charging usage.

    Unknown credentials are a normal negative answer (200), never an error.
    """
    decision = key_gate.check_credential(db, request.key, meter=False)

    if decision.outcome is GateOutcome.INVALID:
        return APIKeyValidateResponse(valid=False, message="Invalid API key", reason=decision.reason)

    if decision.outcome is GateOutcome.RATE_LIMITED:
        return APIKeyValidateResponse(
            valid=False,
            message="API key usage limit exceeded",
            reason=decision.reason,
        )

    db_key = db.get(APIKey, decision.key_id)
    key_data = None
    if db_key is not None:
        key_data = {
            "id": db_key.id,
            "name": db_key.name,
            "type": db_key.type,
            "usage": db_key.usage,
            "limit": db_key.usage_limit,
        }
    return APIKeyValidateResponse(valid=True, message="Valid API key", keyData=key_data)


@router.put("/{key_id}", response_model=APIKeyResponse)
async def update_api_key(
    key_id: str,
    request: APIKeyUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Update name, environment class and credential of an owned key.

    Keys that do not exist and keys owned by someone else both answer 404.
    """
    try:
        db_key = api_key_service.update_key(
            db,
            user_id=user_id,
            key_id=key_id,
            name=request.name,
            environment=request.type,
            credential=request.key,
        )
    except NotFoundOrForbidden:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    except KeyConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except KeyStoreUnavailable as e:
        raise _unavailable(e)

    return to_response(db_key)


@router.delete("/{key_id}", status_code=status.HTTP_200_OK)
async def delete_api_key(
    key_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete an owned key."""
    try:
        api_key_service.delete_key(db, user_id=user_id, key_id=key_id)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    except KeyStoreUnavailable as e:
        raise _unavailable(e)

    return {"success": True}
