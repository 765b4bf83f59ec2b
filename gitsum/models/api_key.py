"""API key database model."""
import enum
import uuid

from sqlalchemy import CheckConstraint, Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from gitsum.core.database import Base
from gitsum.models.user import utcnow


class KeyEnvironment(str, enum.Enum):
    """Environment class of a key, as sent on the wire."""
    DEVELOPMENT = "dev"
    PRODUCTION = "prod"


class APIKey(Base):
    """Bearer credential owned by a user, metered per summarizer call."""
    __tablename__ = "api_keys"
    __table_args__ = (
        CheckConstraint("usage >= 0", name="ck_api_keys_usage_non_negative"),
        CheckConstraint("usage_limit IS NULL OR usage_limit >= 0", name="ck_api_keys_limit_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    type = Column(String(10), nullable=False, default=KeyEnvironment.DEVELOPMENT.value)  # "dev" or "prod"
    key = Column(String(255), unique=True, nullable=False, index=True)  # The credential itself
    usage = Column(Integer, nullable=False, default=0)
    usage_limit = Column(Integer, nullable=True)  # None means unlimited
    # Python-side timestamps keep microsecond ordering on SQLite too
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="api_keys")

    @property
    def environment(self) -> KeyEnvironment:
        return KeyEnvironment(self.type)

    @property
    def is_exhausted(self) -> bool:
        """True once usage has reached a configured limit."""
        return self.usage_limit is not None and self.usage >= self.usage_limit
