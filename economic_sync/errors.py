"""
Error taxonomy for the sync bridge.

Every error carries a machine-readable ``kind`` and the HTTP status an
outer API layer should answer with.
"""
from __future__ import annotations
from typing import Any, Optional


class EconomicSyncError(Exception):
    """Base class for all sync bridge errors."""

    kind = "internal"
    http_status = 500

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": str(self)}


class RemoteApiError(EconomicSyncError):
    """Raised when the remote API answers with a non-2xx status."""

    kind = "remote_api"
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["body"] = self.body
        return data


class TransportError(RemoteApiError):
    """Raised when the remote API could not be reached (timeout, DNS, reset)."""

    kind = "transport"
    http_status = 504


class ValidationError(EconomicSyncError):
    """Raised when a row or request lacks a required field."""

    kind = "validation"
    http_status = 400


class NotFoundError(EconomicSyncError):
    """Raised when a read finds no matching row."""

    kind = "not_found"
    http_status = 404
