# nexus/utils/human_response.py
from __future__ import annotations

from typing import Any, Optional

from quart import jsonify

from .errors import NexusError
from .helper import utc_now_iso


def make_response(
    status: str,
    message: str,
    http_status: int = 500,
    *,
    code: Optional[str] = None,
    details: Any = None,
):
    """Build the JSON error body the UI shows as a toast.

    Args:
        status (str): success | warning | error
        message (str): human readable message for the user.
        http_status (int, optional): HTTP status code. Defaults to 500.
        code (str, optional): machine readable error code.
        details (Any, optional): raw backend error body or field errors.

    Returns:
        tuple: (Response, http_status) with body {status, error, code?, details?, time}
    """
    body: dict[str, Any] = {"status": status, "error": message, "time": utc_now_iso()}
    if code:
        body["code"] = code
    if details is not None:
        body["details"] = details
    return jsonify(body), http_status


def error_response(exc: NexusError):
    return make_response(
        "error", exc.message, exc.http_status, code=exc.code, details=exc.details
    )
