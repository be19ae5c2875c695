# nexus/routes/analysis.py
from __future__ import annotations

from typing import AsyncIterator

from quart import Blueprint, Response, current_app, jsonify
from quart_schema import validate_request

from nexus.models.models import AnalysisRequest
from nexus.services.analysis.dispatcher import AnalysisDispatcher, AnalysisStream
from nexus.utils.errors import NexusError
from nexus.utils.helper import sse_event
from nexus.utils.logger import get_logger


logger = get_logger(__name__)
analysis_bp = Blueprint("analysis", __name__)

DONE_SENTINEL = "[DONE]"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _dispatcher() -> AnalysisDispatcher:
    return current_app.extensions["dispatcher"]


@analysis_bp.post("/start")
@validate_request(AnalysisRequest)
async def start_analysis(data: AnalysisRequest):
    """
    Run one analysis and wait for the full report.

    400 on invalid input, 409 when no usable active model is set, 500 with
    ``{error, details?}`` when the backend call fails. Errors are rendered by
    the app-level handlers.
    """
    logger.info(
        "[analysis] POST /start | domain=%s competitors=%s", data.domain, data.competitors
    )
    report = await _dispatcher().run(data)
    return jsonify(report.to_json_dict())


async def _sse_body(stream: AnalysisStream) -> AsyncIterator[bytes]:
    try:
        async for content in stream:
            yield sse_event({"content": content}).encode("utf-8")
        if stream.report is not None:
            yield sse_event({"reportId": stream.report.id}).encode("utf-8")
        yield sse_event(DONE_SENTINEL).encode("utf-8")
    except NexusError as e:
        logger.error("[analysis] stream failed | code=%s err=%s", e.code, e.message)
        yield sse_event({"error": e.message}).encode("utf-8")
    finally:
        # no-op after normal completion; on disconnect this releases the backend call
        await stream.aclose()


@analysis_bp.post("/stream")
@validate_request(AnalysisRequest)
async def stream_analysis(data: AnalysisRequest):
    """
    Server-sent events: ``{"content": ...}`` chunks, then ``{"reportId": ...}``
    and the literal ``[DONE]``. A backend failure mid-stream sends
    ``{"error": ...}`` and ends the stream. Preparation errors (no active
    model) are returned as plain JSON before the stream starts.
    """
    logger.info(
        "[analysis] POST /stream | domain=%s competitors=%s", data.domain, data.competitors
    )
    stream = await _dispatcher().open_stream(data)

    response = Response(_sse_body(stream), mimetype="text/event-stream", headers=SSE_HEADERS)
    response.timeout = None
    return response
