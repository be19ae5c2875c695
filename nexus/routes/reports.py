# nexus/routes/reports.py
from __future__ import annotations

from quart import Blueprint, Response, current_app, jsonify

from nexus.services.storage.report_store import ReportStore
from nexus.utils.logger import get_logger


logger = get_logger(__name__)
reports_bp = Blueprint("reports", __name__)


def _store() -> ReportStore:
    return current_app.extensions["report_store"]


@reports_bp.get("")
async def list_reports():
    """Report summaries, newest first. Content and additional info are left out."""
    summaries = await _store().list_summaries()
    return jsonify([s.to_json_dict() for s in summaries])


@reports_bp.get("/<report_id>")
async def get_report(report_id: str):
    report = await _store().get(report_id)
    return jsonify(report.to_json_dict())


@reports_bp.delete("/<report_id>")
async def delete_report(report_id: str):
    await _store().delete(report_id)
    return jsonify({"success": True})


@reports_bp.get("/<report_id>/export")
async def export_report(report_id: str):
    html = await _store().render_export_document(report_id)
    logger.info("[reports] exported | id=%s", report_id)
    return Response(html, content_type="text/html; charset=utf-8")
