"""Exceptions."""

from typing import Optional


class ConfigurationError(RuntimeError):
    """A client, authorizer or route is misconfigured; fatal at startup."""


class AuthenticationError(RuntimeError):
    """Login could not be completed with the identity provider."""

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason = reason or 'authentication_failed'


class InvalidToken(ValueError):
    """A token or cookie is malformed, forged, or otherwise invalid."""


class SessionDecodeError(InvalidToken):
    """A stored profile could not be decoded."""


class SessionStoreUnavailable(RuntimeError):
    """The distributed session store could not be reached."""
