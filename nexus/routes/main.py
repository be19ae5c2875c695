# nexus/routes/main.py
from __future__ import annotations

from quart import Blueprint, jsonify

from nexus.utils.helper import utc_now_iso
from nexus.utils.logger import get_logger


logger = get_logger(__name__)
main_bp = Blueprint("main", __name__)


@main_bp.get("/health")
async def health():
    return jsonify({"status": "ok", "timestamp": utc_now_iso()})
