"""
Recommate - Service Errors

Typed failures raised by the service layer. Routers translate them to
HTTPException using the status_code carried on each class.
"""
from typing import Dict, Optional


class RecommateError(Exception):
    """Base class for service failures surfaced to API callers."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RecommateError):
    """Entity does not exist or is not owned by the caller."""
    status_code = 404


class InvalidStateError(RecommateError):
    """Operation attempted outside its allowed status."""
    status_code = 400


class ValidationError(RecommateError):
    """Malformed input, with optional field-level detail."""
    status_code = 422

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}


class RenderingError(RecommateError):
    """PDF engine could not produce output."""
    status_code = 502


class DeliveryError(RecommateError):
    """Email dispatch failed."""
    status_code = 502


class AuthenticationError(RecommateError):
    """Bad credentials."""
    status_code = 401
