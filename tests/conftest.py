import asyncio
import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_MODE", "stdout")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from nexus import create_app  # noqa: E402
from nexus.config import ServiceConfigs, TestingConfig  # noqa: E402
from nexus.models.models import AnalysisRequest, ModelConfigCreate  # noqa: E402
from nexus.services.analysis.dispatcher import AnalysisDispatcher  # noqa: E402
from nexus.services.llm_chain.llm_chains import ChatResult  # noqa: E402
from nexus.services.storage.model_registry import ModelRegistry  # noqa: E402
from nexus.services.storage.report_store import ReportStore  # noqa: E402


class FakeLLM:
    """Stands in for LLMChains; records every call it receives."""

    def __init__(self) -> None:
        self.text = "# 竞品分析报告\n\n## 一、核心发现\n- Alpha 领先"
        self.usage: Optional[Dict[str, Any]] = {"prompt_tokens": 10, "completion_tokens": 20}
        self.chunks: List[str] = ["# 报告", "\n", "Alpha 领先"]
        self.error: Optional[Exception] = None
        self.stream_error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []
        self.stream_closed = False
        self.delay = 0.0

    async def chat_completions_result(self, messages, *, max_tokens=None, temperature=None):
        self.calls.append(
            {"kind": "result", "messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return ChatResult(text=self.text, usage=self.usage)

    async def chat_completions_text(self, messages, *, max_tokens=None):
        return (await self.chat_completions_result(messages, max_tokens=max_tokens)).text

    async def chat_completions_stream(self, messages, *, max_tokens=None, temperature=None):
        self.calls.append(
            {"kind": "stream", "messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        )
        try:
            for chunk in self.chunks:
                yield chunk
            if self.stream_error:
                raise self.stream_error
        finally:
            self.stream_closed = True


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def llm_factory(fake_llm):
    seen = []

    def factory(config, request_timeout):
        seen.append((config.id, request_timeout))
        return fake_llm

    factory.seen = seen
    return factory


@pytest.fixture
def service_configs(tmp_path) -> ServiceConfigs:
    cfg = ServiceConfigs(data_dir=tmp_path / "data")
    cfg.reports_dir.mkdir(parents=True, exist_ok=True)
    return cfg


@pytest.fixture
def registry(service_configs, llm_factory) -> ModelRegistry:
    return ModelRegistry(
        service_configs.models_file,
        llm_factory=llm_factory,
        test_timeout=service_configs.test_timeout,
        test_max_tokens=service_configs.test_max_tokens,
    )


@pytest.fixture
def store(service_configs) -> ReportStore:
    return ReportStore(service_configs.reports_dir)


@pytest.fixture
def dispatcher(registry, store, service_configs, llm_factory) -> AnalysisDispatcher:
    return AnalysisDispatcher(registry, store, service_configs, llm_factory=llm_factory)


@pytest.fixture
async def active_model(registry):
    model = await registry.add(
        ModelConfigCreate(name="Local", provider="ollama", base_url="http://x/v1", model="m1")
    )
    await registry.set_active(model.id)
    return model


@pytest.fixture
def analysis_request() -> AnalysisRequest:
    return AnalysisRequest(
        domain="finance",
        competitors=["Alpha", "Beta"],
        company="Acme",
        purpose="market_entry",
        region="china",
        additional_info="关注移动端",
    )


@pytest.fixture
async def app(service_configs, llm_factory):
    return await create_app(
        TestingConfig, service_configs=service_configs, llm_factory=llm_factory
    )


@pytest.fixture
def client(app):
    return app.test_client()
