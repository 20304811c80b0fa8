"""Shared request/record bases for the Ollama wire format."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator


class ThinkMode(Enum):
    """Value of the ``think`` request flag. Newer models accept an effort level."""

    DISABLED = False
    ENABLED = True
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OllamaRequest(BaseModel):
    """Fields common to /api/generate and /api/chat requests."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    model: str
    format: Optional[str | dict[str, Any]] = None
    options: Optional[dict[str, Any]] = None
    template: Optional[str] = None
    stream: bool = False
    keep_alive: Optional[str | int] = None
    think: Optional[ThinkMode] = None

    @field_validator("format", mode="before")
    @classmethod
    def _schema_from_model(cls, v: Any) -> Any:
        # A pydantic model class asks for structured output matching its schema
        if isinstance(v, type) and issubclass(v, BaseModel):
            return v.model_json_schema()
        return v

    @field_validator("think", mode="before")
    @classmethod
    def _coerce_think(cls, v: Any) -> Any:
        if isinstance(v, (bool, str)):
            return ThinkMode(v)
        return v

    @field_serializer("think")
    def _serialize_think(self, think: Optional[ThinkMode]) -> Any:
        return None if think is None else think.value

    @property
    def thinking_enabled(self) -> bool:
        return self.think is not None and self.think is not ThinkMode.DISABLED

    def to_body(self) -> dict[str, Any]:
        """JSON body for the request, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StreamRecord(BaseModel):
    """One decoded line of a generate/chat response body.

    Only the record with ``done == True`` carries the timing and count fields.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    model: Optional[str] = None
    created_at: Optional[str] = None
    done: bool = False
    done_reason: Optional[str] = None
    context: Optional[list[int]] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    prompt_eval_duration: Optional[int] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None

    def thinking_fragment(self) -> str:
        return ""

    def response_fragment(self) -> str:
        return ""

    def record_tool_calls(self) -> list:
        return []


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: str = ""
