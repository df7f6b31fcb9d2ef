"""
Application errors.

``AppError`` carries an HTTP status and a stable ``code`` so the API layer can
translate it without inspecting messages. Collaborator failures that a Celery
task should retry have their own types.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Typed error raised from synchronous staff-facing operations."""

    def __init__(self, message: str, status_code: int, code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}

    @classmethod
    def bad_request(cls, message: str, code: str = "BAD_REQUEST", **details) -> "AppError":
        return cls(message, 400, code, details)

    @classmethod
    def not_found(cls, message: str, code: str = "NOT_FOUND", **details) -> "AppError":
        return cls(message, 404, code, details)

    @classmethod
    def conflict(cls, message: str, code: str = "CONFLICT", **details) -> "AppError":
        return cls(message, 409, code, details)

    @classmethod
    def internal(cls, message: str = "Internal server error", code: str = "INTERNAL_ERROR") -> "AppError":
        return cls(message, 500, code)

    def __repr__(self):
        return f"<AppError(code='{self.code}', status={self.status_code}, message='{self.message}')>"


class DeliveryFailedError(Exception):
    """The transport did not accept a scheduled message; the job is retried."""


class AnalysisError(Exception):
    """The AI collaborator failed or returned an unusable payload; the job is retried."""
