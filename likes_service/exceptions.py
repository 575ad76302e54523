"""
Exception hierarchy for the likes service.

Refresh failures are deliberately absent: a failed refresh is reported as a
``None`` result so callers can skip the user instead of aborting.
"""


class LikesServiceError(Exception):
    """Base class for all service errors."""


class ConfigurationError(LikesServiceError):
    """Required configuration is missing or invalid. Fatal at startup."""


class AuthenticationError(LikesServiceError):
    """The OAuth login could not be completed.

    ``status_code`` is the HTTP status the callback route answers with.
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class TokenStoreError(LikesServiceError):
    """The credential document could not be written."""
