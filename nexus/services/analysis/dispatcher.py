# nexus/services/analysis/dispatcher.py
from __future__ import annotations

import time
import uuid
from contextlib import aclosing
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from nexus.config import ServiceConfigs
from nexus.models.models import AnalysisRequest, ModelConfig, ModelSnapshot, Report
from nexus.services.llm_chain.llm_chains import LLMFactory, default_llm_factory
from nexus.services.llm_chain.llm_utils import shape_system, shape_user
from nexus.services.storage.model_registry import ModelRegistry
from nexus.services.storage.report_store import ReportStore
from nexus.utils.errors import BackendError
from nexus.utils.helper import utc_now
from nexus.utils.logger import get_logger
from .prompt_instruction import (
    STREAM_SYSTEM_INSTRUCTION,
    SYSTEM_INSTRUCTION,
    build_analysis_prompt,
)


logger = get_logger(__name__)


class AnalysisState(str, Enum):
    PREPARING = "preparing"
    CALLING = "calling"
    COMPLETED = "completed"
    FAILED = "failed"


def _transition(state: AnalysisState, model: ModelConfig, **extra: Any) -> AnalysisState:
    logger.info(
        "[analysis] %s | model=%s %s",
        state.value,
        model.id,
        " ".join(f"{k}={v}" for k, v in extra.items()),
    )
    return state


def _elapsed_ms(started: float) -> int:
    return max(1, round((time.perf_counter() - started) * 1000))


def _new_report(
    request: AnalysisRequest,
    model: ModelConfig,
    *,
    content: str,
    analysis_time: int,
    tokens: Optional[Dict[str, Any]],
) -> Report:
    return Report(
        id=uuid.uuid4().hex,
        created_at=utc_now(),
        domain=request.domain,
        competitors=list(request.competitors),
        company=request.company,
        purpose=request.purpose,
        region=request.region,
        additional_info=request.additional_info,
        report_format=request.report_format,
        model=ModelSnapshot.of(model),
        analysis_time=analysis_time,
        content=content,
        tokens=tokens,
    )


class AnalysisStream:
    """
    Lazy, finite, non-restartable stream of report text fragments.

    Iterate once with ``async for``. When the backend finishes, the report is
    saved and exposed as :attr:`report`. Stopping early (``aclose()`` or the
    HTTP client going away) closes the backend stream and saves nothing.
    """

    def __init__(
        self,
        *,
        request: AnalysisRequest,
        model: ModelConfig,
        messages: List[Dict[str, Any]],
        dispatcher: "AnalysisDispatcher",
    ):
        self.request = request
        self.model = model
        self.messages = messages
        self.report: Optional[Report] = None
        self.state = AnalysisState.PREPARING
        self._dispatcher = dispatcher
        self._iterator: Optional[AsyncIterator[str]] = None

    def __aiter__(self) -> AsyncIterator[str]:
        if self._iterator is not None:
            raise RuntimeError("AnalysisStream can only be iterated once")
        self._iterator = self._run()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()  # type: ignore[attr-defined]

    async def _run(self) -> AsyncIterator[str]:
        d = self._dispatcher
        parts: List[str] = []
        started = time.perf_counter()
        self.state = _transition(AnalysisState.CALLING, self.model)
        finished = False
        try:
            llm = d.llm_factory(self.model, d.settings.analysis_timeout)
            chunks = llm.chat_completions_stream(
                self.messages,
                max_tokens=d.settings.stream_max_tokens,
                temperature=d.settings.stream_temperature,
            )
            async with aclosing(chunks):
                async for delta in chunks:
                    parts.append(delta)
                    yield delta
            finished = True
        except BackendError as e:
            self.state = _transition(AnalysisState.FAILED, self.model, error=e.message)
            raise
        finally:
            if not finished and self.state is AnalysisState.CALLING:
                logger.info("[analysis] stream closed early | model=%s chunks=%d", self.model.id, len(parts))
                self.state = AnalysisState.FAILED

        content = "".join(parts).strip()
        if not content:
            self.state = _transition(AnalysisState.FAILED, self.model, error="empty stream")
            raise BackendError("LLM stream contained no content")

        report = _new_report(
            self.request,
            self.model,
            content=content,
            analysis_time=_elapsed_ms(started),
            tokens=None,
        )
        await d.store.save(report)
        self.report = report
        self.state = _transition(AnalysisState.COMPLETED, self.model, report_id=report.id)


class AnalysisDispatcher:
    """
    Runs one analysis: PREPARING → CALLING → COMPLETED (or FAILED).

    Nothing is persisted until the backend call fully succeeds.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        store: ReportStore,
        settings: ServiceConfigs,
        *,
        llm_factory: LLMFactory = default_llm_factory,
    ):
        self.registry = registry
        self.store = store
        self.settings = settings
        self.llm_factory = llm_factory

    async def _prepare(self, request: AnalysisRequest) -> ModelConfig:
        logger.info(
            "[analysis] preparing | domain=%s purpose=%s competitors=%d",
            request.domain,
            request.purpose,
            len(request.competitors),
        )
        return await self.registry.resolve_active()

    async def run(self, request: AnalysisRequest) -> Report:
        """Blocking analysis. Returns the saved report or raises BackendError."""
        model = await self._prepare(request)
        messages = [
            shape_system(SYSTEM_INSTRUCTION),
            shape_user(build_analysis_prompt(request)),
        ]
        _transition(AnalysisState.CALLING, model)
        started = time.perf_counter()
        try:
            llm = self.llm_factory(model, self.settings.analysis_timeout)
            result = await llm.chat_completions_result(
                messages, max_tokens=self.settings.analysis_max_tokens
            )
        except BackendError as e:
            _transition(AnalysisState.FAILED, model, error=e.message)
            raise

        report = _new_report(
            request,
            model,
            content=result.text,
            analysis_time=_elapsed_ms(started),
            tokens=result.usage,
        )
        await self.store.save(report)
        _transition(AnalysisState.COMPLETED, model, report_id=report.id)
        return report

    async def open_stream(self, request: AnalysisRequest) -> AnalysisStream:
        """Prepare eagerly (errors surface here), then hand back the lazy stream."""
        model = await self._prepare(request)
        messages = [
            shape_system(STREAM_SYSTEM_INSTRUCTION),
            shape_user(build_analysis_prompt(request)),
        ]
        return AnalysisStream(request=request, model=model, messages=messages, dispatcher=self)
