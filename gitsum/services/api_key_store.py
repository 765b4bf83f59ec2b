"""
Store primitives for API key rows.

Every mutation is scoped by owner, except the metering increment which is
reached by possession of the credential itself.
"""
import logging
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gitsum.core.errors import DuplicateCredential, NotFoundOrForbidden
from gitsum.models.api_key import APIKey, KeyEnvironment

logger = logging.getLogger(__name__)


def list_by_owner(db: Session, user_id: str) -> List[APIKey]:
    """Return the owner's keys, newest first."""
    stmt = (
        select(APIKey)
        .where(APIKey.user_id == user_id)
        .order_by(APIKey.created_at.desc(), APIKey.id.desc())
    )
    return list(db.scalars(stmt).all())


def get_by_owner(db: Session, user_id: str, key_id: str) -> APIKey:
    """Fetch one key, raising NotFoundOrForbidden unless the owner matches."""
    key = db.scalars(
        select(APIKey).where(APIKey.id == key_id, APIKey.user_id == user_id)
    ).first()
    if key is None:
        raise NotFoundOrForbidden(key_id)
    return key


def find_by_credential(db: Session, credential: str) -> Optional[APIKey]:
    """Look a key up by its credential string, regardless of owner."""
    return db.scalars(select(APIKey).where(APIKey.key == credential)).first()


def create(
    db: Session,
    user_id: str,
    name: str,
    environment: KeyEnvironment,
    credential: str,
    limit: Optional[int] = None,
) -> APIKey:
    """Insert a new key with zero usage."""
    db_key = APIKey(
        user_id=user_id,
        name=name,
        type=environment.value,
        key=credential,
        usage=0,
        usage_limit=limit,
    )
    db.add(db_key)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if find_by_credential(db, credential) is not None:
            raise DuplicateCredential("Credential already in use")
        raise
    db.refresh(db_key)
    return db_key


def update_by_owner(
    db: Session,
    user_id: str,
    key_id: str,
    name: str,
    environment: KeyEnvironment,
    credential: str,
) -> APIKey:
    """Update name, environment class and credential of an owned key."""
    db_key = get_by_owner(db, user_id, key_id)

    db_key.name = name
    db_key.type = environment.value
    db_key.key = credential
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        clash = find_by_credential(db, credential)
        if clash is not None and clash.id != key_id:
            raise DuplicateCredential("Credential already in use")
        raise
    db.refresh(db_key)
    return db_key


def delete_by_owner(db: Session, user_id: str, key_id: str) -> bool:
    """Delete an owned key."""
    db_key = get_by_owner(db, user_id, key_id)
    db.delete(db_key)
    db.commit()
    return True


def increment_usage(db: Session, key_id: str, enforce_limit: bool = True) -> Optional[int]:
    """
    Atomically add one to a key's usage and return the new count.

    The limit check and the increment are a single conditional UPDATE, so
    concurrent callers can neither lose updates nor overshoot the limit.

    Returns:
        The new usage count, or None when no row was updated (the key is gone
        or, with enforce_limit, its limit has already been reached).
    """
    stmt = (
        update(APIKey)
        .where(APIKey.id == key_id)
        .values(usage=APIKey.usage + 1)
        .execution_options(synchronize_session=False)
    )
    if enforce_limit:
        stmt = stmt.where(or_(APIKey.usage_limit.is_(None), APIKey.usage < APIKey.usage_limit))

    try:
        result = db.execute(stmt)
        if result.rowcount != 1:
            db.rollback()
            return None
        # Still inside the writing transaction, so this is our own increment
        new_usage = db.execute(select(APIKey.usage).where(APIKey.id == key_id)).scalar_one()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.debug(f"Metered API key {key_id}: usage={new_usage}")
    return new_usage
