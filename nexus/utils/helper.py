# nexus/utils/helper.py
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso(timespec: str = "milliseconds") -> str:
    """Current UTC time as ISO-8601 with a trailing Z (e.g. 2026-10-18T01:55:12.345Z)."""
    return utc_now().isoformat(timespec=timespec).replace("+00:00", "Z")


def sse_event(payload: Any) -> str:
    """Frame one server-sent event. Strings go out verbatim (e.g. the [DONE] sentinel)."""
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n"
