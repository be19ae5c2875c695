import json

from nexus.models.models import AnalysisRequest
from nexus.routes.analysis import _sse_body
from nexus.utils.errors import BackendError


ANALYSIS_BODY = {
    "domain": "finance",
    "competitors": ["Alpha", "Beta"],
    "company": "Acme",
    "purpose": "market_entry",
    "region": "china",
    "additionalInfo": "关注移动端",
    "reportFormat": "standard",
}


async def add_active_model(client) -> dict:
    response = await client.post(
        "/api/models",
        json={"name": "Local", "provider": "ollama", "baseUrl": "http://x/v1", "model": "m1"},
    )
    model = await response.get_json()
    response = await client.post(f"/api/models/active/{model['id']}")
    assert response.status_code == 200
    return model


def sse_payloads(body: str) -> list:
    events = [block[len("data: "):] for block in body.split("\n\n") if block.startswith("data: ")]
    return [e if e == "[DONE]" else json.loads(e) for e in events]


async def test_health(client) -> None:
    response = await client.get("/api/health")
    data = await response.get_json()
    assert data["status"] == "ok"
    assert data["timestamp"].endswith("Z")


# * ---------------- models ----------------
async def test_models_defaults(client) -> None:
    response = await client.get("/api/models")
    data = await response.get_json()

    assert response.status_code == 200
    assert data["activeModelId"] is None
    assert [m["id"] for m in data["models"]] == ["ollama-default", "lmstudio-default", "openai-default"]
    assert data["models"][0]["baseUrl"] == "http://localhost:11434/v1"


async def test_models_lifecycle(client) -> None:
    model = await add_active_model(client)
    assert model["id"].startswith("custom-")
    assert model["enabled"] is True

    response = await client.put(f"/api/models/{model['id']}", json={"name": "Renamed"})
    assert (await response.get_json())["name"] == "Renamed"

    response = await client.delete(f"/api/models/{model['id']}")
    assert await response.get_json() == {"success": True}

    data = await (await client.get("/api/models")).get_json()
    assert data["activeModelId"] is None
    assert model["id"] not in [m["id"] for m in data["models"]]


async def test_models_update_refuses_unknown_fields(client) -> None:
    model = await add_active_model(client)

    response = await client.put(f"/api/models/{model['id']}", json={"id": "hijack"})
    assert response.status_code == 400
    assert (await response.get_json())["code"] == "VALIDATION_ERROR"


async def test_models_update_refuses_null_required_fields(client) -> None:
    model = await add_active_model(client)

    for field in ("name", "provider", "baseUrl", "model", "enabled"):
        response = await client.put(f"/api/models/{model['id']}", json={field: None})
        assert response.status_code == 400, field
        assert (await response.get_json())["code"] == "VALIDATION_ERROR"

    response = await client.put(f"/api/models/{model['id']}", json={"apiKey": None})
    assert response.status_code == 200

    data = await (await client.get("/api/models")).get_json()
    stored = next(m for m in data["models"] if m["id"] == model["id"])
    assert stored["name"] == "Local"
    assert stored["model"] == "m1"


async def test_models_unknown_id(client) -> None:
    assert (await client.put("/api/models/nope", json={"name": "x"})).status_code == 404
    assert (await client.delete("/api/models/nope")).status_code == 404
    assert (await client.post("/api/models/active/nope")).status_code == 404
    assert (await client.post("/api/models/test/nope", json={})).status_code == 404


async def test_models_connection_test(client, fake_llm) -> None:
    model = await add_active_model(client)
    fake_llm.text = "OK"

    response = await client.post(f"/api/models/test/{model['id']}", json={"message": "ping"})
    assert response.status_code == 200
    assert await response.get_json() == {
        "success": True,
        "message": "Connection successful",
        "response": "OK",
    }

    fake_llm.error = BackendError("Connection refused")
    response = await client.post(f"/api/models/test/{model['id']}")
    assert response.status_code == 200
    assert await response.get_json() == {"success": False, "error": "Connection refused"}


async def test_ollama_list(client, monkeypatch) -> None:
    async def fake_list(tags_url, *, timeout):
        return [{"name": "qwen2.5:7b"}]

    monkeypatch.setattr("nexus.routes.models.list_ollama_models", fake_list)
    response = await client.get("/api/models/ollama/list")
    assert await response.get_json() == [{"name": "qwen2.5:7b"}]


async def test_ollama_list_unavailable(client, monkeypatch) -> None:
    async def fake_list(tags_url, *, timeout):
        raise BackendError("Ollama not available", http_status=502)

    monkeypatch.setattr("nexus.routes.models.list_ollama_models", fake_list)
    response = await client.get("/api/models/ollama/list")
    assert response.status_code == 502
    assert (await response.get_json())["error"] == "Ollama not available"


# * ---------------- analysis ----------------
async def test_start_without_active_model_is_409(client) -> None:
    response = await client.post("/api/analysis/start", json=ANALYSIS_BODY)
    data = await response.get_json()

    assert response.status_code == 409
    assert data["code"] == "NO_ACTIVE_MODEL"
    assert await (await client.get("/api/reports")).get_json() == []


async def test_start_creates_report(client, fake_llm) -> None:
    model = await add_active_model(client)

    response = await client.post("/api/analysis/start", json=ANALYSIS_BODY)
    report = await response.get_json()

    assert response.status_code == 200
    assert report["content"] == fake_llm.text
    assert report["competitors"] == ["Alpha", "Beta"]
    assert report["analysisTime"] > 0
    assert report["model"] == {"id": model["id"], "name": "Local", "modelName": "m1"}
    assert report["tokens"] == fake_llm.usage

    summaries = await (await client.get("/api/reports")).get_json()
    assert [s["id"] for s in summaries] == [report["id"]]
    assert "content" not in summaries[0]

    fetched = await (await client.get(f"/api/reports/{report['id']}")).get_json()
    assert fetched == report


async def test_start_analysis_time_tracks_backend_call(client, fake_llm) -> None:
    await add_active_model(client)
    fake_llm.delay = 0.3

    response = await client.post("/api/analysis/start", json=ANALYSIS_BODY)
    report = await response.get_json()

    assert response.status_code == 200
    assert 250 <= report["analysisTime"] <= 1000


async def test_start_refuses_bad_competitor_lists(client) -> None:
    await add_active_model(client)

    duplicate = dict(ANALYSIS_BODY, competitors=["Alpha", "Alpha"])
    response = await client.post("/api/analysis/start", json=duplicate)
    data = await response.get_json()
    assert response.status_code == 400
    assert data["code"] == "VALIDATION_ERROR"
    assert any("already been added" in d["msg"] for d in data["details"])

    six = dict(ANALYSIS_BODY, competitors=["A", "B", "C", "D", "E", "F"])
    assert (await client.post("/api/analysis/start", json=six)).status_code == 400

    missing_domain = {k: v for k, v in ANALYSIS_BODY.items() if k != "domain"}
    assert (await client.post("/api/analysis/start", json=missing_domain)).status_code == 400

    assert await (await client.get("/api/reports")).get_json() == []


async def test_start_backend_failure(client, fake_llm) -> None:
    await add_active_model(client)
    fake_llm.error = BackendError("model 'm1' not found", details={"error": "not found"})

    response = await client.post("/api/analysis/start", json=ANALYSIS_BODY)
    data = await response.get_json()

    assert response.status_code == 500
    assert data["error"] == "model 'm1' not found"
    assert data["details"] == {"error": "not found"}
    assert await (await client.get("/api/reports")).get_json() == []


async def test_stream_sends_chunks_report_id_and_done(client, fake_llm) -> None:
    await add_active_model(client)

    response = await client.post("/api/analysis/stream", json=ANALYSIS_BODY)
    assert response.status_code == 200
    assert response.mimetype == "text/event-stream"
    events = sse_payloads(await response.get_data(as_text=True))

    assert events[: len(fake_llm.chunks)] == [{"content": c} for c in fake_llm.chunks]
    assert "reportId" in events[-2]
    assert events[-1] == "[DONE]"

    report = await (await client.get(f"/api/reports/{events[-2]['reportId']}")).get_json()
    assert report["content"] == "".join(fake_llm.chunks).strip()


async def test_stream_backend_failure_sends_error_event(client, fake_llm) -> None:
    await add_active_model(client)
    fake_llm.stream_error = BackendError("connection reset")

    response = await client.post("/api/analysis/stream", json=ANALYSIS_BODY)
    events = sse_payloads(await response.get_data(as_text=True))

    assert events[-1] == {"error": "connection reset"}
    assert "[DONE]" not in events
    assert await (await client.get("/api/reports")).get_json() == []


async def test_stream_client_disconnect_closes_backend(app, client, fake_llm) -> None:
    await add_active_model(client)
    stream = await app.extensions["dispatcher"].open_stream(AnalysisRequest(**ANALYSIS_BODY))
    body = _sse_body(stream)

    first = await body.__anext__()
    await body.aclose()

    assert sse_payloads(first.decode("utf-8")) == [{"content": fake_llm.chunks[0]}]
    assert fake_llm.stream_closed is True
    assert stream.report is None
    assert await (await client.get("/api/reports")).get_json() == []


async def test_stream_without_active_model_is_409(client) -> None:
    response = await client.post("/api/analysis/stream", json=ANALYSIS_BODY)
    assert response.status_code == 409
    assert (await response.get_json())["code"] == "NO_ACTIVE_MODEL"


# * ---------------- reports ----------------
async def test_delete_unknown_report_is_404(client) -> None:
    await add_active_model(client)
    await client.post("/api/analysis/start", json=ANALYSIS_BODY)
    before = await (await client.get("/api/reports")).get_json()

    response = await client.delete("/api/reports/does-not-exist")

    assert response.status_code == 404
    after = await (await client.get("/api/reports")).get_json()
    assert len(after) == len(before) == 1


async def test_delete_and_export_report(client) -> None:
    await add_active_model(client)
    report = await (await client.post("/api/analysis/start", json=ANALYSIS_BODY)).get_json()

    response = await client.get(f"/api/reports/{report['id']}/export")
    html = await response.get_data(as_text=True)
    assert response.status_code == 200
    assert response.content_type == "text/html; charset=utf-8"
    assert "Alpha、Beta" in html

    response = await client.delete(f"/api/reports/{report['id']}")
    assert await response.get_json() == {"success": True}
    assert (await client.get(f"/api/reports/{report['id']}")).status_code == 404
    assert (await client.get(f"/api/reports/{report['id']}/export")).status_code == 404
