"""Async client for the Ollama REST API."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

import httpx

from ..codec import decode_line, error_detail
from ..config import AppConfig, get_config
from ..errors import OllamaKitError, ServerError, StreamError, TransportError
from ..models.chat import ChatMessage, ChatRequest, ChatResponse, ChatRole
from ..models.common import StreamRecord
from ..models.embed import EmbedRequest, EmbedResponse
from ..models.generate import GenerateRequest, GenerateResponse
from ..models.response import ChatResult, GenerationResult, Model, ModelDetail, ModelPullStatus, RunningModel
from ..streaming import ResultStreamer, Sink, StreamAssembler
from ..tools.loader import load_tools
from ..tools.registry import Tool, ToolFunction, ToolRegistry
from ..tools.resolver import ToolCallResolver
from .mcp_bridge import MCPToolset

log = logging.getLogger("ollamakit.client.api")


def _is_model_not_found(err: ServerError) -> bool:
    detail = err.detail.lower()
    return err.is_not_found and "model" in detail and "not found" in detail


class OllamaClient:
    """Wraps the Ollama REST API endpoints with async httpx.

    Each client owns its tool registry. Use as an async context manager or
    call ``close()`` when done.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        config: Optional[AppConfig] = None,
        auth: Optional[httpx.Auth] = None,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tools: Iterable[Tool] = (),
    ):
        self.config = config or get_config()
        cfg = self.config.ollama
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(cfg.timeout_s, connect=cfg.connect_timeout_s),
            auth=auth,
            headers=headers,
            transport=transport,
        )
        self.registry = ToolRegistry(tools)
        self._toolsets: list[MCPToolset] = []

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self):
        for toolset in self._toolsets:
            await toolset.aclose()
        self._toolsets.clear()
        await self.client.aclose()

    # ── Transport ───────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self.client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        if resp.status_code != 200:
            detail = error_detail(resp.status_code, resp.text.splitlines(), resp.reason_phrase)
            log.warning("%s %s returned %d: %s", method, path, resp.status_code, detail[:200])
            raise ServerError(resp.status_code, detail)
        return resp

    @asynccontextmanager
    async def _stream(self, path: str, body: dict[str, Any]) -> AsyncIterator[httpx.Response]:
        log.debug("POST %s model=%s stream=%s", path, body.get("model"), body.get("stream"))
        try:
            async with self.client.stream("POST", path, json=body) as resp:
                yield resp
        except httpx.TransportError as e:
            raise TransportError(f"POST {path} failed: {e}") from e

    async def _assemble(
        self,
        path: str,
        body: dict[str, Any],
        record_type: type[StreamRecord],
        thinking_sink: Optional[Sink],
        response_sink: Optional[Sink],
        cancel_event: Optional[asyncio.Event],
    ) -> GenerationResult:
        assembler = StreamAssembler(record_type, thinking_sink, response_sink)
        async with self._stream(path, body) as resp:
            return await assembler.consume(resp, cancel_event)

    # ── System ──────────────────────────────────────────────

    async def ping(self) -> bool:
        try:
            resp = await self.client.get("/api/tags")
        except httpx.TransportError as e:
            raise TransportError(f"Ollama at {self.base_url} is unreachable: {e}") from e
        return resp.status_code == 200

    async def version(self) -> str:
        resp = await self._request("GET", "/api/version")
        return resp.json().get("version", "")

    # ── Models ──────────────────────────────────────────────

    async def list_models(self) -> list[Model]:
        resp = await self._request("GET", "/api/tags")
        return [Model.model_validate(m) for m in resp.json().get("models", [])]

    async def ps(self) -> list[RunningModel]:
        resp = await self._request("GET", "/api/ps")
        return [RunningModel.model_validate(m) for m in resp.json().get("models", [])]

    async def show_model(self, name: str) -> ModelDetail:
        resp = await self._request("POST", "/api/show", json={"model": name})
        return ModelDetail.model_validate(resp.json())

    async def pull_model(self, name: str) -> None:
        """Pull ``name``, retrying with exponential backoff when configured."""
        retries = self.config.pull.retries
        for attempt in range(retries + 1):
            try:
                await self._pull_once(name)
                return
            except (ServerError, StreamError, TransportError) as e:
                if attempt >= retries:
                    if retries == 0:
                        raise
                    log.error("Pulling %s failed after %d attempts: %s", name, attempt + 1, e)
                    raise OllamaKitError(f"Failed to pull model {name} after {attempt + 1} attempts") from e
                delay = self.config.pull.base_delay_s * 2 ** attempt
                log.warning("Pulling %s failed (%s), retrying in %.1fs", name, e, delay)
                await asyncio.sleep(delay)

    async def _pull_once(self, name: str) -> None:
        body = {"model": name, "stream": True}
        async with self._stream("/api/pull", body) as resp:
            if resp.status_code != 200:
                lines = [line async for line in resp.aiter_lines()]
                raise ServerError(resp.status_code, error_detail(resp.status_code, lines, resp.reason_phrase))
            last_status = None
            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                status = decode_line(line, ModelPullStatus)
                if status.error:
                    raise ServerError(resp.status_code, status.error)
                if status.status != last_status:
                    log.info("Pulling %s: %s", name, status.status)
                    last_status = status.status
                if status.status == "success":
                    return
        raise StreamError(f"Pull of {name} ended without a success status")

    async def delete_model(self, name: str, ignore_if_missing: bool = False) -> None:
        try:
            await self._request("DELETE", "/api/delete", json={"model": name})
        except ServerError as e:
            if ignore_if_missing and _is_model_not_found(e):
                log.debug("Model %s not present, nothing to delete", name)
                return
            raise

    async def unload_model(self, name: str) -> None:
        """Evict ``name`` from memory (generate with keep_alive=0)."""
        try:
            await self._request(
                "POST", "/api/generate", json={"model": name, "keep_alive": 0, "stream": False}
            )
        except ServerError as e:
            if _is_model_not_found(e):
                log.debug("Model %s not present, nothing to unload", name)
                return
            raise

    # ── Embeddings ──────────────────────────────────────────

    async def embed(self, request: EmbedRequest) -> EmbedResponse:
        resp = await self._request("POST", "/api/embed", json=request.to_body())
        return EmbedResponse.model_validate(resp.json())

    # ── Generation ──────────────────────────────────────────

    async def generate(
        self,
        request: GenerateRequest,
        thinking_sink: Optional[Sink] = None,
        response_sink: Optional[Sink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """POST /api/generate. Passing any sink switches to streaming."""
        if request.use_tools:
            return await self._generate_with_tools(request, thinking_sink, response_sink, cancel_event)
        body = request.to_body()
        body["stream"] = request.stream or thinking_sink is not None or response_sink is not None
        return await self._assemble(
            "/api/generate", body, GenerateResponse, thinking_sink, response_sink, cancel_event
        )

    async def _generate_with_tools(
        self,
        request: GenerateRequest,
        thinking_sink: Optional[Sink],
        response_sink: Optional[Sink],
        cancel_event: Optional[asyncio.Event],
    ) -> GenerationResult:
        messages = []
        if request.system:
            messages.append(ChatMessage(role=ChatRole.SYSTEM, content=request.system))
        messages.append(ChatMessage(role=ChatRole.USER, content=request.prompt, images=request.images))
        chat_request = ChatRequest(
            model=request.model,
            messages=messages,
            format=request.format,
            options=request.options,
            template=request.template,
            stream=request.stream,
            keep_alive=request.keep_alive,
            think=request.think,
            tools=request.tools,
            use_tools=True,
        )
        reply = await self.chat(chat_request, thinking_sink, response_sink, cancel_event)
        return reply.result

    async def chat(
        self,
        request: ChatRequest,
        thinking_sink: Optional[Sink] = None,
        response_sink: Optional[Sink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChatResult:
        """POST /api/chat, resolving tool calls when ``request.use_tools`` is set.

        Assistant and tool messages are appended to ``request.messages``,
        which is returned as ``ChatResult.history``.
        """
        registered = self.registry.snapshot()

        async def send(req: ChatRequest) -> ChatResult:
            return await self._chat_once(req, registered, thinking_sink, response_sink, cancel_event)

        reply = await send(request)
        if request.use_tools:
            resolver = ToolCallResolver(send, registered, self.config.tools.max_tool_rounds)
            reply = await resolver.resolve(request, reply)
        return reply

    async def _chat_once(
        self,
        request: ChatRequest,
        registered: Mapping[str, Tool],
        thinking_sink: Optional[Sink],
        response_sink: Optional[Sink],
        cancel_event: Optional[asyncio.Event],
    ) -> ChatResult:
        local = {t.name for t in request.tools}
        advertised = list(request.tools) + [t for name, t in registered.items() if name not in local]
        body = request.to_body(advertised)
        body["stream"] = request.stream or thinking_sink is not None or response_sink is not None

        result = await self._assemble(
            "/api/chat", body, ChatResponse, thinking_sink, response_sink, cancel_event
        )
        message = ChatMessage(
            role=ChatRole.ASSISTANT,
            content=result.response,
            thinking=result.thinking,
            tool_calls=list(result.tool_calls) or None,
        )
        request.messages.append(message)
        return ChatResult(result=result, message=message, history=request.messages)

    def generate_async(self, request: GenerateRequest) -> ResultStreamer:
        """Start ``generate`` on a background task. Must be called from a running loop."""

        async def call(thinking_sink, response_sink, cancel_event) -> GenerationResult:
            return await self.generate(request, thinking_sink, response_sink, cancel_event)

        return ResultStreamer(call, self.config.stream.queue_size).start()

    def chat_async(self, request: ChatRequest) -> ResultStreamer:
        async def call(thinking_sink, response_sink, cancel_event) -> GenerationResult:
            reply = await self.chat(request, thinking_sink, response_sink, cancel_event)
            return reply.result

        return ResultStreamer(call, self.config.stream.queue_size).start()

    # ── Tools ───────────────────────────────────────────────

    def register_tool(self, tool: Tool) -> None:
        self.registry.register(tool)

    def register_tools(self, tools: Iterable[Tool]) -> None:
        self.registry.register_all(tools)

    def registered_tools(self) -> list[Tool]:
        return self.registry.list()

    def deregister_tools(self) -> None:
        self.registry.clear()

    def load_tools_from_file(
        self, path: str | Path, functions: Optional[Mapping[str, ToolFunction]] = None
    ) -> list[Tool]:
        tools = load_tools(path, functions)
        self.register_tools(tools)
        return tools

    async def load_mcp_tools(self, config_path: str | Path) -> list[Tool]:
        """Connect to every server in an ``mcpServers`` file and register their tools."""
        toolset = await MCPToolset.from_config(config_path, self.config.mcp.request_timeout_s)
        self._toolsets.append(toolset)
        self.register_tools(toolset.tools)
        return toolset.tools
