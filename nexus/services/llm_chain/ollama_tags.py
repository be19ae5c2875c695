# nexus/services/llm_chain/ollama_tags.py
from __future__ import annotations

from typing import Any, Dict, List

import httpx

from nexus.utils.errors import BackendError
from nexus.utils.logger import get_logger


logger = get_logger(__name__)


async def list_ollama_models(
    tags_url: str, *, timeout: float = 10.0, client: httpx.AsyncClient | None = None
) -> List[Dict[str, Any]]:
    """Return the models a local Ollama daemon has pulled (``GET /api/tags``)."""
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as own:
                resp = await own.get(tags_url, headers={"Accept": "application/json"})
        else:
            resp = await client.get(tags_url, headers={"Accept": "application/json"})
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPError as e:
        logger.warning("[ollama] tags request failed | url=%s err=%s", tags_url, e)
        raise BackendError("Ollama not available", details=str(e), http_status=502) from e
    except ValueError as e:
        raise BackendError(
            "Ollama returned invalid JSON", details=str(e), http_status=502
        ) from e

    if not isinstance(payload, dict):
        return []
    return payload.get("models") or []
