"""Shared pytest configuration and fixtures for the ollamakit test suite."""

import json
from typing import Callable

import httpx
import pytest
import pytest_asyncio

from ollamakit.client.api import OllamaClient
from ollamakit.config import AppConfig, OllamaConfig, PullConfig
from ollamakit.models.chat import ChatMessage, ChatRole, ToolCall, ToolCallFunction
from ollamakit.models.response import ChatResult, GenerationResult, StreamState

BASE_URL = "http://ollama.test"


# ---------------------------------------------------------------------------
# NDJSON helpers
# ---------------------------------------------------------------------------
def ndjson(*records: dict) -> bytes:
    """Encode records as a newline-delimited JSON body."""
    return b"".join(json.dumps(r).encode() + b"\n" for r in records)


def gen_line(response: str = "", thinking: str | None = None, done: bool = False, **extra) -> dict:
    rec = {"model": "m", "created_at": "2024-01-01T00:00:00Z", "response": response, "done": done}
    if thinking is not None:
        rec["thinking"] = thinking
    rec.update(extra)
    return rec


def chat_line(
    content: str = "",
    thinking: str | None = None,
    done: bool = False,
    tool_calls: list[dict] | None = None,
    **extra,
) -> dict:
    message: dict = {"role": "assistant", "content": content}
    if thinking is not None:
        message["thinking"] = thinking
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    rec = {"model": "m", "created_at": "2024-01-01T00:00:00Z", "message": message, "done": done}
    rec.update(extra)
    return rec


def tool_call(name: str, **arguments) -> dict:
    return {"function": {"name": name, "arguments": arguments}}


# ---------------------------------------------------------------------------
# Fake Ollama server
# ---------------------------------------------------------------------------
class FakeOllama:
    """MockTransport handler that replays queued responses per path.

    Each queued response is either an ``httpx.Response`` or a callable taking
    the request. Every request body is recorded in ``calls``.
    """

    def __init__(self):
        self.routes: dict[str, list] = {}
        self.calls: list[tuple[str, str, dict | None]] = []

    def add(self, path: str, *responses) -> "FakeOllama":
        self.routes.setdefault(path, []).extend(responses)
        return self

    def bodies(self, path: str) -> list[dict]:
        return [body for _, p, body in self.calls if p == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})
        # The last queued response is replayed for every further request
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(resp):
            return resp(request)
        return httpx.Response(resp.status_code, headers=resp.headers, content=resp.content)


@pytest.fixture()
def fake() -> FakeOllama:
    return FakeOllama()


@pytest.fixture()
def config() -> AppConfig:
    """Config independent of the caller's environment."""
    cfg = AppConfig()
    cfg.ollama = OllamaConfig(base_url=BASE_URL, model="m", timeout_s=5.0, connect_timeout_s=1.0)
    cfg.pull = PullConfig(retries=0, base_delay_s=0.0)
    cfg.tools.max_tool_rounds = 3
    cfg.stream.queue_size = 256
    return cfg


@pytest_asyncio.fixture()
async def client(fake, config):
    """OllamaClient wired to the fake server."""
    c = OllamaClient(config=config, transport=httpx.MockTransport(fake))
    yield c
    await c.close()


# ---------------------------------------------------------------------------
# Resolver helpers
# ---------------------------------------------------------------------------
def chat_result(content: str = "", calls: list[dict] | None = None, history=None) -> ChatResult:
    tool_calls = tuple(
        ToolCall(function=ToolCallFunction(**c["function"])) for c in (calls or [])
    )
    message = ChatMessage(role=ChatRole.ASSISTANT, content=content, tool_calls=list(tool_calls) or None)
    result = GenerationResult(
        response=content, done=True, state=StreamState.DONE, tool_calls=tool_calls
    )
    return ChatResult(result=result, message=message, history=history if history is not None else [])


class ScriptedSender:
    """Stub ``send`` coroutine returning queued replies and appending them to history."""

    def __init__(self, *replies: ChatResult):
        self.replies = list(replies)
        self.requests: list[list[ChatMessage]] = []

    async def __call__(self, request) -> ChatResult:
        self.requests.append(list(request.messages))
        reply = self.replies.pop(0)
        request.messages.append(reply.message)
        reply.history = request.messages
        return reply


@pytest.fixture()
def scripted() -> Callable[..., ScriptedSender]:
    return ScriptedSender
