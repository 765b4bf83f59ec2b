"""
Tests for user provisioning on sign-in.
"""
import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import select

from gitsum.models.user import User
from gitsum.services import user_service


def _email():
    return f"signin-{uuid.uuid4().hex[:12]}@example.com"


def test_sync_user_creates_new_user(db_session):
    email = _email()

    user = user_service.sync_user(
        db_session,
        email=email,
        provider="google",
        provider_account_id="12345",
        name="Ada",
        image="https://example.com/ada.png",
    )

    assert user.id
    assert user.email == email
    assert user.name == "Ada"
    assert user.provider == "google"
    assert user_service.get_user_by_email(db_session, email).id == user.id


def test_sync_user_refreshes_existing_user(db_session):
    email = _email()
    created = user_service.sync_user(db_session, email=email, provider="google", provider_account_id="1", name="Old")

    updated = user_service.sync_user(
        db_session,
        email=email,
        provider="google",
        provider_account_id="1",
        name="New",
        image="https://example.com/new.png",
    )

    assert updated.id == created.id
    assert updated.name == "New"
    assert updated.image == "https://example.com/new.png"
    assert updated.updated_at is not None


def test_sync_user_keeps_name_when_provider_omits_it(db_session):
    email = _email()
    user_service.sync_user(db_session, email=email, provider="google", provider_account_id="1", name="Kept")

    user = user_service.sync_user(db_session, email=email, provider="google", provider_account_id="1")

    assert user.name == "Kept"


def test_sync_user_requires_email(db_session):
    with pytest.raises(ValueError):
        user_service.sync_user(db_session, email="", provider="google", provider_account_id="1")


def test_get_user_by_email_unknown(db_session):
    assert user_service.get_user_by_email(db_session, "missing@example.com") is None


def test_sync_user_survives_concurrent_first_sign_in(db_session, session_factory):
    """The row appears between our lookup and our insert."""
    email = _email()
    other = session_factory()
    try:
        winner = user_service.sync_user(other, email=email, provider="google", provider_account_id="1", name="First")
        winner_id = winner.id
    finally:
        other.close()

    real_lookup = user_service.get_user_by_email
    lookups = []

    def stale_then_real(db, address):
        lookups.append(address)
        return None if len(lookups) == 1 else real_lookup(db, address)

    with patch.object(user_service, "get_user_by_email", side_effect=stale_then_real):
        user = user_service.sync_user(db_session, email=email, provider="google", provider_account_id="1", name="Second")

    assert user.id == winner_id
    assert user.name == "Second"
    assert len(lookups) == 2
    assert db_session.scalars(select(User).where(User.email == email)).all() == [user]
