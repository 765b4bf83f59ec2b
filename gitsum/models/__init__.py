"""Database models."""
from gitsum.models.user import User
from gitsum.models.api_key import APIKey, KeyEnvironment

__all__ = [
    "User",
    "APIKey",
    "KeyEnvironment",
]
