# nexus/__init__.py
from __future__ import annotations

import os
from quart import Quart
from quart_schema import QuartSchema, RequestSchemaValidationError

from .config import ServiceConfigs, get_config
from .utils.errors import NexusError
from .utils.human_response import error_response, make_response
from .utils.logger import get_logger
from .extensions import init_extensions, shutdown_extensions
from .services.llm_chain.llm_chains import LLMFactory
from .routes.main import main_bp
from .routes.models import models_bp
from .routes.analysis import analysis_bp
from .routes.reports import reports_bp


def _schema_error_details(exc: RequestSchemaValidationError) -> list | str:
    errors = getattr(exc.validation_error, "errors", None)
    if not callable(errors):
        return str(exc.validation_error)
    return [
        {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
        for err in errors()
    ]


def register_error_handlers(app: Quart) -> None:
    logger = get_logger("quart.errors")

    @app.errorhandler(NexusError)
    async def _nexus_error(exc: NexusError):
        if exc.http_status >= 500:
            logger.error("[%s] %s", exc.code, exc.message)
        return error_response(exc)

    @app.errorhandler(RequestSchemaValidationError)
    async def _schema_error(exc: RequestSchemaValidationError):
        return make_response(
            "error",
            "Invalid request body",
            400,
            code="VALIDATION_ERROR",
            details=_schema_error_details(exc),
        )

    @app.errorhandler(500)
    async def _internal_error(exc):
        # Quart has already logged the traceback of the original exception
        return make_response("error", "Internal server error", 500)


async def create_app(
    config_object: object | None = None,
    *,
    service_configs: ServiceConfigs | None = None,
    llm_factory: LLMFactory | None = None,
) -> Quart:
    """Application factory for the Nexus competitive-analysis service.

    Args:
        config_object: Optional explicit configuration class.  If not
            provided, the value of the ``APP_ENV`` environment variable
            is used to determine which configuration class to load via
            :func:`get_config`.  See :mod:`nexus.config` for details.
        service_configs: Optional storage/LLM settings; read from the
            environment when omitted.
        llm_factory: Optional builder of LLM clients per model config,
            used by tests to stand in for a real backend.

    Returns:
        A fully configured :class:`quart.Quart` application instance.
    """

    app = Quart(__name__, instance_relative_config=True)

    QuartSchema(app)

    env = os.environ.get("APP_ENV", "default")
    if config_object:
        app.config.from_object(config_object)
    else:
        app.config.from_object(get_config(env))

    logger = get_logger("quart.app")
    logger.info(f"Starting Nexus app in {app.config['ENV']} mode")

    await init_extensions(app, service_configs=service_configs, llm_factory=llm_factory)
    logger.info("Extensions initialized successfully")

    @app.after_serving
    async def _cleanup():
        await shutdown_extensions(app)
        logger.info("Extensions shutdown successfully")

    register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(main_bp, url_prefix="/api")
    app.register_blueprint(models_bp, url_prefix="/api/models")
    app.register_blueprint(analysis_bp, url_prefix="/api/analysis")
    app.register_blueprint(reports_bp, url_prefix="/api/reports")
    logger.info("Blueprints registered")

    return app
