"""Error taxonomy for analysis creation.

Every error carries the HTTP status the API answers with. ``MalformedResponse``
never reaches the caller: the orchestrator recovers from it per category.
"""
from __future__ import annotations


class VisibilityError(Exception):
    """Base class for errors surfaced by the analysis pipeline."""

    status_code = 500


class ConfigurationError(VisibilityError):
    """Required configuration (e.g. the LLM API key) is missing."""


class AuthorizationError(VisibilityError):
    """Caller does not hold a valid session."""

    status_code = 401


class ValidationError(VisibilityError):
    """Request is missing required input."""

    status_code = 400


class GenerationFailed(VisibilityError):
    """Text-generation call failed at transport level or with a non-2xx status."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class MalformedResponse(VisibilityError):
    """Model output contained a bracketed section that is not valid JSON."""

    status_code = 502


class StorageError(VisibilityError):
    """A persistence operation failed."""
