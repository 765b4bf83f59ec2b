"""
Typed failures raised by the API key core and its collaborators.

Nothing here knows about HTTP; endpoints map these to status codes.
Expected negative outcomes (no session, unknown key, exhausted quota) are
return values, not exceptions.
"""
from typing import Optional


class ApiKeyError(Exception):
    """Base class for API key store and lifecycle failures."""


class NotFoundOrForbidden(ApiKeyError):
    """No key matches both the id and the owner.

    Deliberately covers "does not exist" and "belongs to someone else".
    """

    def __init__(self, key_id: str):
        super().__init__(f"API key {key_id} not found")
        self.key_id = key_id


class DuplicateCredential(ApiKeyError):
    """The credential string already belongs to another key."""


class KeyConflictError(ApiKeyError):
    """A write collided with existing data and was not retried further."""


class KeyStoreUnavailable(ApiKeyError):
    """The key store could not be reached or failed mid-operation."""


class SessionConfigurationError(RuntimeError):
    """Session verification is impossible because no signing secret is configured."""


class GitHubFetchError(Exception):
    """Content could not be fetched from GitHub."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
