"""
User directory: lookup by email and provisioning on sign-in.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gitsum.models.user import User, utcnow

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Return the user with this email, or None."""
    return db.scalars(select(User).where(User.email == email)).first()


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def sync_user(
    db: Session,
    email: str,
    provider: str,
    provider_account_id: str,
    name: Optional[str] = None,
    image: Optional[str] = None,
) -> User:
    """
    Create or refresh a user after a successful sign-in.

    The first sign-in for an email creates the row. Later sign-ins only
    refresh the display name and avatar, and only with values actually
    supplied by the identity provider.

    Args:
        db: Database session
        email: Verified email from the identity provider
        provider: Identity provider name (e.g. "google")
        provider_account_id: Account id assigned by the provider
        name: Display name, if the provider supplied one
        image: Avatar URL, if the provider supplied one

    Returns:
        The created or updated User
    """
    if not email:
        raise ValueError("A verified email is required to provision a user")

    user = get_user_by_email(db, email)
    if user is None:
        user = User(
            email=email,
            name=name,
            image=image,
            provider=provider,
            provider_account_id=provider_account_id,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent first sign-in created the row first
            db.rollback()
            user = get_user_by_email(db, email)
            if user is None:
                raise
        else:
            db.refresh(user)
            logger.info(f"Created user {user.id} for provider {provider}")
            return user

    if name:
        user.name = name
    if image:
        user.image = image
    # Always touch the row so updated_at records the sign-in
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"Refreshed user {user.id} on sign-in")
    return user
