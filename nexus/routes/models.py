# nexus/routes/models.py
from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from quart import Blueprint, current_app, jsonify, request
from quart_schema import validate_request

from nexus.models.models import ConnectionTestRequest, ModelConfigCreate, ModelConfigPatch
from nexus.services.llm_chain.ollama_tags import list_ollama_models
from nexus.services.storage.model_registry import ModelRegistry
from nexus.utils.errors import ValidationError
from nexus.utils.logger import get_logger


logger = get_logger(__name__)
models_bp = Blueprint("models", __name__)


def _registry() -> ModelRegistry:
    return current_app.extensions["model_registry"]


@models_bp.get("")
async def list_models():
    """All backend configs plus the active pointer."""
    state = await _registry().list()
    return jsonify(state.to_json_dict())


@models_bp.post("")
@validate_request(ModelConfigCreate)
async def add_model(data: ModelConfigCreate):
    model = await _registry().add(data)
    return jsonify(model.to_json_dict())


@models_bp.put("/<model_id>")
@validate_request(ModelConfigPatch)
async def update_model(model_id: str, data: ModelConfigPatch):
    model = await _registry().update(model_id, data)
    return jsonify(model.to_json_dict())


@models_bp.delete("/<model_id>")
async def delete_model(model_id: str):
    await _registry().remove(model_id)
    return jsonify({"success": True})


@models_bp.post("/active/<model_id>")
async def set_active_model(model_id: str):
    model = await _registry().set_active(model_id)
    return jsonify({"success": True, "activeModel": model.to_json_dict()})


@models_bp.post("/test/<model_id>")
async def test_model(model_id: str):
    """
    Send one chat turn through the stored credentials.

    The body ``{message?}`` is optional. Backend failures are reported as
    ``{success: false, error}`` with HTTP 200 so the UI can show them inline.
    """
    payload = await request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("JSON object expected")
    try:
        body = ConnectionTestRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("Invalid test message", details=str(e)) from e

    logger.info("[models] POST /test start | id=%s", model_id)
    result = await _registry().test_connection(model_id, body.message)
    return jsonify(result.to_json_dict())


@models_bp.get("/ollama/list")
async def list_local_ollama_models():
    cfg = current_app.extensions["service_configs"]
    models = await list_ollama_models(cfg.ollama_tags_url, timeout=cfg.ollama_timeout)
    return jsonify(models)
