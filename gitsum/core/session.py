"""
Session identity: turn a request's session cookie into an application user id.

The cookie is issued by the external sign-in provider. Verifying it is
delegated to a SessionTokenDecoder; the default one verifies a signed JWT
with PyJWT. Every "no usable session" case yields None, never an exception;
only a missing signing secret is raised, since that is misconfiguration.
"""
import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

import jwt
from sqlalchemy.orm import Session
from starlette.requests import cookie_parser

from gitsum.core.config import settings
from gitsum.core.errors import SessionConfigurationError
from gitsum.services import user_service

logger = logging.getLogger(__name__)


class SessionTokenDecoder(Protocol):
    """Capability to verify a session token and return its claims."""

    def decode(self, token: str, secret: str) -> Optional[Dict[str, Any]]:
        ...


class JWTSessionDecoder:
    """Verify HMAC-signed JWT session tokens (signature and expiry)."""

    def __init__(self, algorithms: Sequence[str] = ("HS256",)):
        self.algorithms = list(algorithms)

    def decode(self, token: str, secret: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=self.algorithms,
                options={"verify_aud": False},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Session token has expired")
        except jwt.InvalidTokenError as e:
            logger.info(f"Session token rejected: {type(e).__name__}")
        return None


default_decoder = JWTSessionDecoder(settings.SESSION_ALGORITHMS)


def extract_session_token(headers: Mapping[str, str]) -> Optional[str]:
    """Return the first configured session cookie present in the headers."""
    cookie_header = headers.get("cookie") or ""
    if not cookie_header:
        return None

    cookies = cookie_parser(cookie_header)
    for cookie_name in settings.SESSION_COOKIE_NAMES:
        token = cookies.get(cookie_name)
        if token:
            return token
    return None


def read_session_claims(
    headers: Mapping[str, str],
    decoder: Optional[SessionTokenDecoder] = None,
) -> Optional[Dict[str, Any]]:
    """
    Verify the request's session cookie and return its claims.

    Returns None when there is no session cookie or the token does not verify.

    Raises:
        SessionConfigurationError: If no signing secret is configured
    """
    token = extract_session_token(headers)
    if not token:
        logger.debug("No session cookie on request")
        return None

    secret = settings.session_secret
    if not secret:
        raise SessionConfigurationError("SESSION_SECRET is not configured")

    return (decoder or default_decoder).decode(token, secret)


def resolve_user_id(
    headers: Mapping[str, str],
    db: Session,
    decoder: Optional[SessionTokenDecoder] = None,
) -> Optional[str]:
    """
    Resolve the signed-in user's id from the request headers.

    Args:
        headers: Request headers (the Cookie header is read)
        db: Database session for the user lookup
        decoder: Token decoder; defaults to JWT verification

    Returns:
        The user's id, or None when there is no valid session, the token
        carries no email, or no user row matches the email.

    Raises:
        SessionConfigurationError: If no signing secret is configured
    """
    claims = read_session_claims(headers, decoder)
    if not claims:
        return None

    email = claims.get("email")
    if not email:
        # Sessions minted before email was added to the token
        logger.info("Session token has no email claim; user must sign in again")
        return None

    user = user_service.get_user_by_email(db, email)
    if user is None:
        logger.warning("No user row for a verified session email; sign-in sync has not run")
        return None

    return user.id
