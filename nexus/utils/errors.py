# nexus/utils/errors.py
from __future__ import annotations

from typing import Any, Optional


class NexusError(Exception):
    """Base error carrying the HTTP status and machine code used at the request boundary."""

    http_status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Any = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if code:
            self.code = code
        if http_status:
            self.http_status = http_status


class ValidationError(NexusError, ValueError):
    """Missing or malformed request fields. User-correctable.

    Also a ``ValueError`` so pydantic validators surface it as a field error.
    """

    http_status = 400
    code = "VALIDATION_ERROR"


class ConfigurationError(NexusError):
    """No usable active model; the UI should send the user to the model panel."""

    http_status = 409
    code = "NO_ACTIVE_MODEL"


class NotFound(NexusError):
    http_status = 404
    code = "NOT_FOUND"


class BackendError(NexusError):
    """Network failure or non-success response from the LLM backend."""

    http_status = 500
    code = "BACKEND_ERROR"


class StorageError(NexusError):
    """Disk read/write failure on config or report files. Not user-actionable."""

    http_status = 500
    code = "STORAGE_ERROR"
