# nexus/extensions.py
from __future__ import annotations

from quart import Quart

from .config import ServiceConfigs
from .utils.logger import get_logger
from .services.analysis.dispatcher import AnalysisDispatcher
from .services.llm_chain.llm_chains import LLMFactory, default_llm_factory
from .services.storage.model_registry import ModelRegistry
from .services.storage.report_store import ReportStore


async def init_extensions(
    app: Quart,
    service_configs: ServiceConfigs | None = None,
    llm_factory: LLMFactory | None = None,
) -> None:
    """Build the stores and the dispatcher and attach them to ``app.extensions``.

    This is also the storage bootstrap: the data and reports directories are
    created here, before any store touches them.
    """

    logger = get_logger(__name__)

    # Load service configuration from environment (via pydantic)
    service_configs = service_configs or ServiceConfigs()
    app.extensions["service_configs"] = service_configs

    service_configs.data_dir.mkdir(parents=True, exist_ok=True)
    service_configs.reports_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Data directory ready: %s", service_configs.data_dir)

    llm_factory = llm_factory or default_llm_factory

    registry = ModelRegistry(
        service_configs.models_file,
        llm_factory=llm_factory,
        test_timeout=service_configs.test_timeout,
        test_max_tokens=service_configs.test_max_tokens,
    )
    app.extensions["model_registry"] = registry

    store = ReportStore(service_configs.reports_dir)
    app.extensions["report_store"] = store

    app.extensions["dispatcher"] = AnalysisDispatcher(
        registry, store, service_configs, llm_factory=llm_factory
    )
    logger.info("Model registry, report store and dispatcher initialised")


async def shutdown_extensions(app: Quart) -> None:
    """Drop references on shutdown; stores hold no open handles between requests."""
    logger = get_logger(__name__)
    for key in ("dispatcher", "report_store", "model_registry"):
        app.extensions.pop(key, None)
    logger.info("Extensions released")
