"""
Validation and rate-limit gate for bearer credentials.

Every call is a short decision sequence: look the credential up, check the
quota, and (when metering) charge one unit before anything downstream runs.
A charge is final even if the downstream work later fails.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from gitsum.services import api_key_store

logger = logging.getLogger(__name__)


class GateOutcome(str, enum.Enum):
    AUTHORIZED = "authorized"
    INVALID = "invalid"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class GateDecision:
    """Result of running a credential through the gate."""
    outcome: GateOutcome
    key_id: Optional[str] = None
    owner_user_id: Optional[str] = None
    usage: Optional[int] = None
    limit: Optional[int] = None

    @property
    def authorized(self) -> bool:
        return self.outcome is GateOutcome.AUTHORIZED

    @property
    def reason(self) -> Optional[str]:
        return None if self.authorized else self.outcome.value


def _redact(credential: str) -> str:
    return f"{credential[:4]}..." if len(credential) > 4 else "***"


def check_credential(db: Session, credential: str, meter: bool = True) -> GateDecision:
    """
    Decide whether a credential may proceed.

    Args:
        db: Database session
        credential: Bearer credential presented by the caller
        meter: Charge one unit of usage when authorized. The dashboard's
            informational validation passes False.

    Returns:
        GateDecision; unknown and exhausted credentials are ordinary results,
        not exceptions.
    """
    key = api_key_store.find_by_credential(db, credential)
    if key is None:
        logger.info(f"Rejected unknown API key {_redact(credential)}")
        return GateDecision(outcome=GateOutcome.INVALID)

    key_id = key.id
    owner_user_id = key.user_id
    limit = key.usage_limit

    if not meter:
        if key.is_exhausted:
            return GateDecision(
                outcome=GateOutcome.RATE_LIMITED,
                key_id=key_id,
                owner_user_id=owner_user_id,
                usage=key.usage,
                limit=limit,
            )
        return GateDecision(
            outcome=GateOutcome.AUTHORIZED,
            key_id=key_id,
            owner_user_id=owner_user_id,
            usage=key.usage,
            limit=limit,
        )

    new_usage = api_key_store.increment_usage(db, key_id, enforce_limit=True)
    if new_usage is None:
        # Either the quota was exhausted or the key vanished since the lookup
        current = api_key_store.find_by_credential(db, credential)
        if current is None:
            logger.info(f"API key {key_id} was deleted before it could be metered")
            return GateDecision(outcome=GateOutcome.INVALID)
        logger.info(f"API key {key_id} is over its usage limit ({limit})")
        return GateDecision(
            outcome=GateOutcome.RATE_LIMITED,
            key_id=key_id,
            owner_user_id=owner_user_id,
            usage=current.usage,
            limit=limit,
        )

    return GateDecision(
        outcome=GateOutcome.AUTHORIZED,
        key_id=key_id,
        owner_user_id=owner_user_id,
        usage=new_usage,
        limit=limit,
    )
