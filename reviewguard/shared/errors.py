"""Error taxonomy for the anti-fraud engine.

Scoring itself never raises: verdicts are always returned. These errors cover
the cases where an evaluation cannot start (bad input, wrong caller, missing
submission) and lookup failures, which evaluators recover from locally.
"""

from __future__ import annotations


class AntifraudError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(AntifraudError):
    status_code = 404


class Unauthorized(AntifraudError):
    status_code = 401


class Forbidden(AntifraudError):
    status_code = 403


class ValidationError(AntifraudError):
    status_code = 400


class DependencyError(AntifraudError):
    """A supporting lookup failed. Evaluators substitute the documented default."""

    status_code = 503

    def __init__(self, operation: str, cause: Exception | None = None):
        super().__init__(f"{operation} failed: {cause}" if cause else f"{operation} failed")
        self.operation = operation
        self.cause = cause
