"""Generate request/response models and the generate request builder."""

import base64
from typing import Annotated, Any, Iterable, Optional

from pydantic import Field, SkipValidation

from ..config import get_config
from ..tools.registry import Tool
from .chat import ImageSource, load_image
from .common import OllamaRequest, StreamRecord, ThinkMode


class GenerateRequest(OllamaRequest):
    """Request body for POST /api/generate.

    ``images`` are base64 strings as sent on the wire. With ``use_tools`` the
    client routes the prompt through /api/chat so tools can be resolved.
    """

    prompt: str = ""
    suffix: Optional[str] = None
    system: Optional[str] = None
    context: Optional[list[int]] = None
    raw: Optional[bool] = None
    images: Optional[list[str]] = None
    tools: Annotated[list[Tool], SkipValidation] = Field(default_factory=list, exclude=True)
    use_tools: bool = Field(default=False, exclude=True)


class GenerateResponse(StreamRecord):
    """One line of an /api/generate response."""

    response: str = ""
    thinking: Optional[str] = None

    def thinking_fragment(self) -> str:
        return self.thinking or ""

    def response_fragment(self) -> str:
        return self.response


class GenerateRequestBuilder:
    def __init__(self, model: Optional[str] = None, image_url_timeout_s: Optional[float] = None):
        config = get_config()
        self.model = model or config.ollama.model
        self.image_url_timeout_s = config.image.url_timeout_s if image_url_timeout_s is None else image_url_timeout_s
        self._fields: dict[str, Any] = {}

    def _set(self, key: str, value: Any) -> "GenerateRequestBuilder":
        self._fields[key] = value
        return self

    def with_prompt(self, prompt: str) -> "GenerateRequestBuilder":
        return self._set("prompt", prompt)

    def with_suffix(self, suffix: str) -> "GenerateRequestBuilder":
        return self._set("suffix", suffix)

    def with_system(self, system: str) -> "GenerateRequestBuilder":
        return self._set("system", system)

    def with_context(self, context: list[int]) -> "GenerateRequestBuilder":
        return self._set("context", list(context))

    def with_raw(self, raw: bool = True) -> "GenerateRequestBuilder":
        return self._set("raw", raw)

    def with_images(self, images: Iterable[ImageSource]) -> "GenerateRequestBuilder":
        encoded = [
            base64.b64encode(load_image(img, self.image_url_timeout_s)).decode("ascii")
            for img in images
        ]
        return self._set("images", encoded)

    def with_options(self, options: dict[str, Any]) -> "GenerateRequestBuilder":
        return self._set("options", options)

    def with_format(self, fmt: Any) -> "GenerateRequestBuilder":
        return self._set("format", fmt)

    def with_json_format(self) -> "GenerateRequestBuilder":
        return self._set("format", "json")

    def with_template(self, template: str) -> "GenerateRequestBuilder":
        return self._set("template", template)

    def with_streaming(self, stream: bool = True) -> "GenerateRequestBuilder":
        return self._set("stream", stream)

    def with_keep_alive(self, keep_alive: str | int) -> "GenerateRequestBuilder":
        return self._set("keep_alive", keep_alive)

    def with_thinking(self, think: ThinkMode | bool | str = ThinkMode.ENABLED) -> "GenerateRequestBuilder":
        return self._set("think", think)

    def with_tools(self, tools: Iterable[Tool]) -> "GenerateRequestBuilder":
        return self._set("tools", list(tools))

    def with_use_tools(self, use_tools: bool) -> "GenerateRequestBuilder":
        return self._set("use_tools", use_tools)

    def build(self) -> GenerateRequest:
        return GenerateRequest(model=self.model, **self._fields)
