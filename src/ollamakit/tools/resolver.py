"""Bounded tool-calling loop for chat."""

import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Mapping

from ..errors import ToolInvocationError, ToolNotFoundError
from ..models.chat import ChatMessage, ChatRequest, ChatRole, ToolCall
from ..models.response import ChatResult
from .registry import Tool

log = logging.getLogger("ollamakit.tools.resolver")

ChatSender = Callable[[ChatRequest], Awaitable[ChatResult]]


def format_tool_result(name: str, arguments: dict[str, Any], result: Any) -> str:
    """Content of the tool message fed back to the model."""
    if not isinstance(result, str):
        result = json.dumps(result, default=str)
    return f"[TOOL_RESULTS] {name}({', '.join(arguments)}): {result} [/TOOL_RESULTS]"


class ToolCallResolver:
    """Executes tool calls requested by the model and re-invokes it.

    ``send`` performs one chat call and appends the assistant reply to
    ``request.messages``; the resolver appends one tool message per call.
    Tools passed on the request take precedence over registered ones.
    """

    def __init__(self, send: ChatSender, registered: Mapping[str, Tool], max_rounds: int = 3):
        self.send = send
        self.registered = registered
        self.max_rounds = max_rounds

    def lookup(self, request: ChatRequest, name: str) -> Tool:
        for tool in request.tools:
            if tool.name == name:
                return tool
        tool = self.registered.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    async def invoke(self, tool: Tool, call: ToolCall) -> Any:
        arguments = call.function.arguments
        log.info("Tool call: %s(%s)", tool.name, json.dumps(arguments, default=str)[:200])
        try:
            result = tool.function(arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise ToolInvocationError(tool.name, arguments) from e
        return result

    async def resolve(self, request: ChatRequest, reply: ChatResult) -> ChatResult:
        """Run tool rounds until the model stops asking or the limit is hit."""
        rounds = 0
        while reply.result.tool_calls and rounds < self.max_rounds:
            log.debug("Tool round %d/%d", rounds + 1, self.max_rounds)
            for call in reply.result.tool_calls:
                tool = self.lookup(request, call.function.name)
                result = await self.invoke(tool, call)
                request.messages.append(ChatMessage(
                    role=ChatRole.TOOL,
                    content=format_tool_result(tool.name, call.function.arguments, result),
                    tool_name=tool.name,
                ))
            rounds += 1
            reply = await self.send(request)

        if reply.result.tool_calls:
            log.warning("Stopped after %d tool rounds with tool calls still pending", rounds)
        return reply
