# nexus/services/llm_chain/llm_utils.py
from __future__ import annotations

from typing import Any, Dict, Optional


def shape_system(content: str) -> Dict[str, Any]:
    return {"role": "system", "content": content}


def shape_user(content: str) -> Dict[str, Any]:
    return {"role": "user", "content": content}


# ---------------- Extractors (raw SDK) ----------------
def extract_assistant_text_chat(resp: Any) -> Optional[str]:
    """Text of the first choice, or None when the response carries no choices/content."""
    choice0 = (getattr(resp, "choices", None) or [None])[0]
    if not choice0:
        return None
    content = getattr(getattr(choice0, "message", None), "content", None)
    if content is None:
        return None
    return content.strip()


def extract_delta_text_chat(chunk: Any) -> str:
    choice0 = (getattr(chunk, "choices", None) or [None])[0]
    if not choice0:
        return ""
    return getattr(getattr(choice0, "delta", None), "content", None) or ""


def extract_usage(resp: Any) -> Optional[Dict[str, Any]]:
    usage = getattr(resp, "usage", None)
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    if hasattr(usage, "model_dump") and callable(getattr(usage, "model_dump")):
        return usage.model_dump(exclude_none=True)
    return None


def backend_error_details(exc: BaseException) -> Any:
    """Raw error body sent by the backend (OpenAI APIStatusError.body), if any."""
    return getattr(exc, "body", None)
