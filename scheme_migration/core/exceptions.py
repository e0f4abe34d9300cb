"""Custom exception hierarchy for the scheme migration service."""
from __future__ import annotations


class SchemeMigrationError(Exception):
    """Base exception for all scheme migration errors."""


class ConfigurationError(SchemeMigrationError):
    """Configuration-related errors."""


class DatabaseError(SchemeMigrationError):
    """Database operation errors."""


class ValidationError(SchemeMigrationError):
    """Input validation errors."""


class RedisConnectionError(ConfigurationError):
    """Redis connection failed."""


class StoreUnavailable(DatabaseError):
    """The lock or data cache store could not complete an operation."""


class BadRequestError(ValidationError):
    """A required request header or body field is missing or malformed."""


class CredIdNotFoundFromAuth(SchemeMigrationError):
    """The caller is authenticated but the auth service returned no credential id."""

    def __init__(self, message: str = "Not Authorised - Unable to retrieve credentials - credId") -> None:
        super().__init__(message)
        self.message = message


class LockHeldByOtherUser(SchemeMigrationError):
    """The scheme is locked by a different credential id."""

    def __init__(self, pstr: str) -> None:
        super().__init__(f"Scheme {pstr} is locked by another user")
        self.pstr = pstr
