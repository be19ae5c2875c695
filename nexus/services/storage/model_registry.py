# nexus/services/storage/model_registry.py
from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from nexus.models.models import (
    ConnectionTestResult,
    ModelConfig,
    ModelConfigCreate,
    ModelConfigPatch,
    RegistryState,
)
from nexus.services.llm_chain.llm_chains import LLMFactory, default_llm_factory
from nexus.services.llm_chain.llm_utils import shape_user
from nexus.utils.errors import (
    BackendError,
    ConfigurationError,
    NotFound,
    StorageError,
    ValidationError,
)
from nexus.utils.logger import get_logger
from .json_files import read_json, write_json_atomic


logger = get_logger(__name__)

DEFAULT_TEST_MESSAGE = 'Hello, please respond with "OK"'


def default_models() -> List[ModelConfig]:
    """Starter backends offered before the user saves anything. None is active."""
    return [
        ModelConfig(
            id="ollama-default",
            name="Ollama (本地)",
            provider="ollama",
            base_url="http://localhost:11434/v1",
            api_key="ollama",
            model="qwen2.5:7b",
            enabled=True,
        ),
        ModelConfig(
            id="lmstudio-default",
            name="LM Studio (本地)",
            provider="lmstudio",
            base_url="http://localhost:1234/v1",
            api_key="lm-studio",
            model="local-model",
            enabled=True,
        ),
        ModelConfig(
            id="openai-default",
            name="OpenAI",
            provider="openai",
            base_url="https://api.openai.com/v1",
            api_key="",
            model="gpt-4o-mini",
            enabled=False,
        ),
    ]


class ModelRegistry:
    """
    File-backed list of LLM backend configurations plus the active pointer.

    Each operation is one read-modify-write of the registry file; concurrent
    writers are last-writer-wins. File I/O runs in a worker thread.
    """

    def __init__(
        self,
        path: Path,
        *,
        llm_factory: LLMFactory = default_llm_factory,
        test_timeout: float = 120.0,
        test_max_tokens: int = 1000,
    ):
        self.path = Path(path)
        self.llm_factory = llm_factory
        self.test_timeout = test_timeout
        self.test_max_tokens = test_max_tokens

    # * --------------------------------------------------
    # * persistence
    # * --------------------------------------------------
    def _load_sync(self) -> RegistryState:
        if not self.path.exists():
            return RegistryState(models=default_models(), active_model_id=None)
        try:
            return RegistryState.model_validate(read_json(self.path))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.exception("[registry] failed to read %s", self.path)
            raise StorageError("Failed to read model configuration") from e

    def _save_sync(self, state: RegistryState) -> None:
        try:
            write_json_atomic(self.path, state.to_json_dict())
        except OSError as e:
            logger.exception("[registry] failed to write %s", self.path)
            raise StorageError("Failed to save model configuration") from e

    async def _load(self) -> RegistryState:
        return await asyncio.to_thread(self._load_sync)

    async def _save(self, state: RegistryState) -> None:
        await asyncio.to_thread(self._save_sync, state)

    # * --------------------------------------------------
    # * operations
    # * --------------------------------------------------
    async def list(self) -> RegistryState:
        return await self._load()

    async def add(self, data: ModelConfigCreate) -> ModelConfig:
        state = await self._load()
        model = ModelConfig(
            id=self._new_id(state),
            **data.model_dump(),
            enabled=True,
        )
        state.models.append(model)
        await self._save(state)
        logger.info("[registry] added model | id=%s provider=%s", model.id, model.provider)
        return model

    async def update(self, model_id: str, patch: ModelConfigPatch) -> ModelConfig:
        state = await self._load()
        for i, current in enumerate(state.models):
            if current.id == model_id:
                updated = current.model_copy(update=patch.changes())
                try:
                    state.models[i] = ModelConfig.model_validate(updated.model_dump())
                except PydanticValidationError as e:
                    raise ValidationError(
                        "Invalid model update",
                        details=[{"loc": ".".join(map(str, err["loc"])), "msg": err["msg"]} for err in e.errors()],
                    ) from e
                await self._save(state)
                logger.info("[registry] updated model | id=%s fields=%s", model_id, sorted(patch.changes()))
                return state.models[i]
        raise NotFound(f"Model '{model_id}' not found")

    async def remove(self, model_id: str) -> None:
        state = await self._load()
        if state.find(model_id) is None:
            raise NotFound(f"Model '{model_id}' not found")
        state.models = [m for m in state.models if m.id != model_id]
        if state.active_model_id == model_id:
            state.active_model_id = None
        await self._save(state)
        logger.info("[registry] removed model | id=%s", model_id)

    async def set_active(self, model_id: str) -> ModelConfig:
        state = await self._load()
        model = state.find(model_id)
        if model is None:
            raise NotFound(f"Model '{model_id}' not found")
        state.active_model_id = model_id
        await self._save(state)
        logger.info("[registry] active model set | id=%s", model_id)
        return model

    async def resolve_active(self) -> ModelConfig:
        state = await self._load()
        if not state.active_model_id:
            raise ConfigurationError(
                "No active model. Select one in the model panel first.",
                code="NO_ACTIVE_MODEL",
            )
        model = state.find(state.active_model_id)
        if model is None:
            raise ConfigurationError(
                f"Active model '{state.active_model_id}' no longer exists.",
                code="STALE_ACTIVE_MODEL",
            )
        return model

    async def get(self, model_id: str) -> ModelConfig:
        model = (await self._load()).find(model_id)
        if model is None:
            raise NotFound(f"Model '{model_id}' not found")
        return model

    async def test_connection(
        self, model_id: str, message: Optional[str] = None
    ) -> ConnectionTestResult:
        """Send one user turn to the backend. Backend failures come back as a result, not an exception."""
        model = await self.get(model_id)
        started = time.perf_counter()
        try:
            llm = self.llm_factory(model, self.test_timeout)
            reply = await llm.chat_completions_text(
                [shape_user(message or DEFAULT_TEST_MESSAGE)],
                max_tokens=self.test_max_tokens,
            )
        except BackendError as e:
            logger.warning("[registry] connection test failed | id=%s err=%s", model_id, e.message)
            return ConnectionTestResult(success=False, error=e.message)
        except Exception as e:
            logger.exception("[registry] connection test crashed | id=%s", model_id)
            return ConnectionTestResult(success=False, error=str(e))

        logger.info(
            "[registry] connection test ok | id=%s elapsed=%.2fs",
            model_id,
            time.perf_counter() - started,
        )
        return ConnectionTestResult(
            success=True, message="Connection successful", response=reply
        )

    @staticmethod
    def _new_id(state: RegistryState) -> str:
        taken = {m.id for m in state.models}
        stamp = int(time.time() * 1000)
        while f"custom-{stamp}" in taken:
            stamp += 1
        return f"custom-{stamp}"
