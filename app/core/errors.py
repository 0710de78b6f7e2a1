from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ConfigError(AppError):
    """Missing or invalid configuration (env, policy file)."""
    status_code = 500


class NotFoundError(AppError):
    status_code = 404


class PreconditionError(AppError):
    """Input rejected before any side effect."""
    status_code = 422


class InvalidTransitionError(AppError):
    status_code = 409


class ValidationAgentError(AppError):
    """CCA agent unreachable or returned a non-success response."""
    status_code = 502


class ValidationAgentTimeout(ValidationAgentError):
    pass


class TransientReadError(AppError):
    status_code = 503


class DispatchError(AppError):
    """A background task could not be scheduled."""
    status_code = 500


class StorageError(AppError):
    status_code = 502
