# nexus/models/models.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from nexus.services.analysis.competitors import CompetitorList


Provider = Literal["ollama", "lmstudio", "openai", "custom"]


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire and in the JSON files."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# * --------------------------------------------------
# * model registry
# * --------------------------------------------------
class ModelConfig(CamelModel):
    id: str
    name: str
    provider: Provider = "custom"
    base_url: str
    api_key: Optional[str] = ""
    model: str
    enabled: bool = True
    is_default: bool = False


class ModelConfigCreate(CamelModel):
    """Fields a user submits to register a backend."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    provider: Provider = "custom"
    base_url: str = Field(min_length=1)
    api_key: Optional[str] = ""
    model: str = Field(min_length=1)


class ModelConfigPatch(CamelModel):
    """Partial update. Only fields explicitly sent are merged; unknown keys are refused."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1)
    provider: Optional[Provider] = None
    base_url: Optional[str] = Field(default=None, min_length=1)
    api_key: Optional[str] = None
    model: Optional[str] = Field(default=None, min_length=1)
    enabled: Optional[bool] = None

    @model_validator(mode="after")
    def _no_null_required_fields(self) -> "ModelConfigPatch":
        # apiKey may be cleared; every other field must keep a value
        nulled = sorted(
            k for k, v in self.model_dump(exclude_unset=True).items()
            if v is None and k != "api_key"
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class RegistryState(CamelModel):
    models: List[ModelConfig] = Field(default_factory=list)
    active_model_id: Optional[str] = None

    def find(self, model_id: str) -> Optional[ModelConfig]:
        return next((m for m in self.models if m.id == model_id), None)


class ConnectionTestRequest(CamelModel):
    message: Optional[str] = None


class ConnectionTestResult(CamelModel):
    success: bool
    message: Optional[str] = None
    response: Optional[str] = None
    error: Optional[str] = None

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# * --------------------------------------------------
# * analysis & reports
# * --------------------------------------------------
class AnalysisRequest(CamelModel):
    domain: str = Field(min_length=1)
    competitors: List[str]
    company: Optional[str] = None
    purpose: str = Field(min_length=1)
    region: Optional[str] = None
    additional_info: Optional[str] = None
    report_format: Optional[str] = "standard"

    @field_validator("competitors")
    @classmethod
    def _competitors_policy(cls, value: List[str]) -> List[str]:
        names = CompetitorList(value)
        if not len(names):
            raise ValueError("At least one competitor is required.")
        return names.as_list()


class ModelSnapshot(CamelModel):
    id: str
    name: str
    model_name: str

    @classmethod
    def of(cls, config: ModelConfig) -> "ModelSnapshot":
        return cls(id=config.id, name=config.name, model_name=config.model)


class ReportSummary(CamelModel):
    id: str
    created_at: datetime
    domain: str
    competitors: List[str]
    company: Optional[str] = None
    purpose: str
    region: Optional[str] = None
    report_format: Optional[str] = None
    model: ModelSnapshot
    analysis_time: int
    tokens: Optional[Dict[str, Any]] = None


class Report(ReportSummary):
    additional_info: Optional[str] = None
    content: str

    def summary(self) -> ReportSummary:
        return ReportSummary.model_validate(
            self.model_dump(exclude={"content", "additional_info"})
        )
