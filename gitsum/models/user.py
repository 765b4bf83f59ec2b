"""User database model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from gitsum.core.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """A person signed in through the external identity provider."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    image = Column(String(2048), nullable=True)  # Avatar URL
    provider = Column(String(50), nullable=False)  # e.g. "google"
    provider_account_id = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    api_keys = relationship(
        "APIKey",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
