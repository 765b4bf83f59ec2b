"""
API key lifecycle: credential generation and owner-scoped create/update/delete/list.

Store exceptions never leave this module raw; callers get the typed failures
from gitsum.core.errors.
"""
import logging
import re
import secrets
import string
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gitsum.core.config import settings
from gitsum.core.errors import (
    DuplicateCredential,
    KeyConflictError,
    KeyStoreUnavailable,
    NotFoundOrForbidden,
)
from gitsum.models.api_key import APIKey, KeyEnvironment
from gitsum.services import api_key_store

logger = logging.getLogger(__name__)

CREDENTIAL_ALPHABET = string.ascii_letters + string.digits
MASKED_SUFFIX = "*" * 32

_PREFIX_PATTERN = re.compile(r"^([A-Za-z0-9_]+-[a-z]+-)")


def credential_prefix(environment: KeyEnvironment) -> str:
    """Advisory prefix for an environment class, e.g. ``gitsum-dev-``."""
    return f"{settings.API_KEY_PREFIX}-{environment.value}-"


def generate_credential(environment: KeyEnvironment) -> str:
    """Generate a fresh credential: prefix plus a random alphanumeric suffix."""
    suffix = "".join(
        secrets.choice(CREDENTIAL_ALPHABET) for _ in range(settings.API_KEY_SUFFIX_LENGTH)
    )
    return credential_prefix(environment) + suffix


def mask_credential(credential: str) -> str:
    """Display form of a credential: its prefix followed by asterisks."""
    match = _PREFIX_PATTERN.match(credential or "")
    if match:
        return match.group(1) + MASKED_SUFFIX
    return f"{settings.API_KEY_PREFIX}-{MASKED_SUFFIX}"


def realign_prefix(
    credential: str,
    old_environment: KeyEnvironment,
    new_environment: KeyEnvironment,
) -> str:
    """Swap the old environment's prefix for the new one's, if present."""
    if old_environment == new_environment:
        return credential
    old_prefix = credential_prefix(old_environment)
    if credential.startswith(old_prefix):
        return credential_prefix(new_environment) + credential[len(old_prefix):]
    return credential


def create_key(
    db: Session,
    user_id: str,
    name: str,
    environment: KeyEnvironment,
    monthly_limit: Optional[int] = None,
) -> APIKey:
    """
    Create a key for a user with a freshly generated credential.

    A credential collision is retried once with a new credential; a second
    collision is reported as KeyStoreUnavailable (transient).
    """
    for attempt in (1, 2):
        credential = generate_credential(environment)
        try:
            db_key = api_key_store.create(
                db,
                user_id=user_id,
                name=name,
                environment=environment,
                credential=credential,
                limit=monthly_limit,
            )
        except DuplicateCredential:
            logger.warning(f"Generated credential collided on attempt {attempt} for user {user_id}")
            continue
        except SQLAlchemyError as e:
            logger.error(f"Error creating API key for user {user_id}: {e}", exc_info=True)
            raise KeyStoreUnavailable("Failed to create API key") from e

        logger.info(f"Created API key: id={db_key.id}, user={user_id}, type={environment.value}")
        return db_key

    raise KeyStoreUnavailable("Failed to generate a unique API key")


def update_key(
    db: Session,
    user_id: str,
    key_id: str,
    name: str,
    environment: KeyEnvironment,
    credential: str,
) -> APIKey:
    """
    Update an owned key.

    When the environment class changes and the supplied credential still
    carries the old class's prefix, the prefix is rewritten to match.
    """
    try:
        current = api_key_store.get_by_owner(db, user_id, key_id)
        credential = realign_prefix(credential, current.environment, environment)
        db_key = api_key_store.update_by_owner(
            db,
            user_id=user_id,
            key_id=key_id,
            name=name,
            environment=environment,
            credential=credential,
        )
    except NotFoundOrForbidden:
        raise
    except DuplicateCredential as e:
        raise KeyConflictError("An API key with this value already exists") from e
    except SQLAlchemyError as e:
        logger.error(f"Error updating API key {key_id}: {e}", exc_info=True)
        raise KeyStoreUnavailable("Failed to update API key") from e

    logger.info(f"Updated API key: id={key_id}, user={user_id}")
    return db_key


def delete_key(db: Session, user_id: str, key_id: str) -> bool:
    """Delete an owned key."""
    try:
        deleted = api_key_store.delete_by_owner(db, user_id, key_id)
    except NotFoundOrForbidden:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Error deleting API key {key_id}: {e}", exc_info=True)
        db.rollback()
        raise KeyStoreUnavailable("Failed to delete API key") from e

    logger.info(f"Deleted API key: id={key_id}, user={user_id}")
    return deleted


def list_keys(db: Session, user_id: str) -> List[APIKey]:
    """List a user's keys, newest first."""
    try:
        return api_key_store.list_by_owner(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Error listing API keys for user {user_id}: {e}", exc_info=True)
        raise KeyStoreUnavailable("Failed to list API keys") from e
