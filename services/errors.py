# services/errors.py
"""
Service-layer exceptions.

Services raise these instead of HTTPException so they stay callable from
scripts and tests; main.py registers one handler that renders them as
{"detail": message, **extra} with the matching status code.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message}
        body.update(self.extra)
        return body


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class PaymentRequiredError(ServiceError):
    """On-chain payment did not satisfy the expected transfer."""

    status_code = 402


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class ConfigurationError(ServiceError):
    status_code = 500
