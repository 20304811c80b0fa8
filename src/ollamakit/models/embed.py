"""Embedding request/response models."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EmbedRequest(BaseModel):
    """Request body for POST /api/embed."""

    model_config = ConfigDict(populate_by_name=True)

    model: str
    input: list[str]
    truncate: Optional[bool] = None
    options: Optional[dict[str, Any]] = None
    keep_alive: Optional[str | int] = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EmbedResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    model: str = ""
    embeddings: list[list[float]] = Field(default_factory=list)
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None


class EmbedRequestBuilder:
    def __init__(self, model: str):
        self.model = model
        self._input: list[str] = []
        self._truncate: Optional[bool] = None
        self._options: Optional[dict[str, Any]] = None
        self._keep_alive: Optional[str | int] = None

    def with_input(self, *texts: str) -> "EmbedRequestBuilder":
        self._input.extend(texts)
        return self

    def with_truncate(self, truncate: bool = True) -> "EmbedRequestBuilder":
        self._truncate = truncate
        return self

    def with_options(self, options: dict[str, Any]) -> "EmbedRequestBuilder":
        self._options = options
        return self

    def with_keep_alive(self, keep_alive: str | int) -> "EmbedRequestBuilder":
        self._keep_alive = keep_alive
        return self

    def build(self) -> EmbedRequest:
        if not self._input:
            raise ValueError("EmbedRequest needs at least one input text")
        return EmbedRequest(
            model=self.model,
            input=list(self._input),
            truncate=self._truncate,
            options=self._options,
            keep_alive=self._keep_alive,
        )
