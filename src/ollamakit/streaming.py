"""Stream assembly for /api/generate and /api/chat response bodies.

Ollama answers with newline-delimited JSON. Each line carries a fragment of
the reply (``response`` / ``message.content``) and, for reasoning models, a
fragment of the model's thinking. The last line has ``done: true`` and the
timing metadata.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from .codec import decode_line, error_detail
from .errors import DecodeError, ServerError, StreamCancelledError, StreamError
from .models.common import StreamRecord
from .models.response import GenerationResult, StreamState

log = logging.getLogger("ollamakit.streaming")

Sink = Callable[[str], Any]


async def _dispatch(sink: Optional[Sink], fragment: str) -> None:
    if sink is None:
        return
    ret = sink(fragment)
    if inspect.isawaitable(ret):
        await ret


def console_sink(fragment: str) -> None:
    """Sink that echoes fragments to stdout as they arrive."""
    print(fragment, end="", flush=True)


class StreamAssembler:
    """Turns decoded records into sink callbacks and one GenerationResult.

    A record with thinking text and no response text goes to the thinking
    sink. Otherwise any response text goes to the response sink; thinking
    text on the same record is still accumulated. The ``done`` record is
    handled like every other record, then reading stops.
    """

    def __init__(
        self,
        record_type: type[StreamRecord],
        thinking_sink: Optional[Sink] = None,
        response_sink: Optional[Sink] = None,
    ):
        self.record_type = record_type
        self.thinking_sink = thinking_sink
        self.response_sink = response_sink
        self.state = StreamState.PENDING
        self.http_status = 200
        self._response: list[str] = []
        self._thinking: list[str] = []
        self._tool_calls: list = []
        self._model: Optional[str] = None
        self._terminal: Optional[StreamRecord] = None
        self._started = time.monotonic()

    @property
    def finished(self) -> bool:
        return self.state in (StreamState.DONE, StreamState.FAILED)

    async def feed(self, record: StreamRecord) -> None:
        if self.finished:
            raise RuntimeError(f"Cannot feed a record to a {self.state.value} stream")
        self.state = StreamState.STREAMING
        if record.model:
            self._model = record.model

        thinking = record.thinking_fragment()
        response = record.response_fragment()
        if thinking and not response:
            self._thinking.append(thinking)
            await _dispatch(self.thinking_sink, thinking)
        elif response:
            if thinking:
                self._thinking.append(thinking)
            self._response.append(response)
            await _dispatch(self.response_sink, response)

        self._tool_calls.extend(record.record_tool_calls())

        if record.done:
            self._terminal = record
            self.state = StreamState.DONE

    def result(self) -> GenerationResult:
        """Snapshot of everything accumulated so far."""
        t = self._terminal
        return GenerationResult(
            response="".join(self._response),
            thinking="".join(self._thinking) or None,
            http_status=self.http_status,
            elapsed_seconds=time.monotonic() - self._started,
            done=self.state is StreamState.DONE,
            state=self.state,
            model=self._model,
            created_at=t.created_at if t else None,
            done_reason=t.done_reason if t else None,
            context=tuple(t.context) if t and t.context is not None else None,
            total_duration=t.total_duration if t else None,
            load_duration=t.load_duration if t else None,
            prompt_eval_count=t.prompt_eval_count if t else None,
            prompt_eval_duration=t.prompt_eval_duration if t else None,
            eval_count=t.eval_count if t else None,
            eval_duration=t.eval_duration if t else None,
            tool_calls=tuple(self._tool_calls),
        )

    def _fail(self, error_cls: type[StreamError], message: str) -> StreamError:
        self.state = StreamState.FAILED
        return error_cls(message, partial=self.result())

    async def consume(
        self,
        response: httpx.Response,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Read ``response`` line by line until the ``done`` record."""
        self.http_status = response.status_code
        if response.status_code != 200:
            raise await self._server_error(response)

        try:
            async for line in response.aiter_lines():
                if cancel_event is not None and cancel_event.is_set():
                    raise self._fail(StreamCancelledError, "Stream cancelled by caller")
                if not line.strip():
                    continue
                await self.feed(decode_line(line, self.record_type))
                if self.state is StreamState.DONE:
                    break
        except DecodeError as e:
            raise self._fail(DecodeError, str(e)) from e
        except httpx.TransportError as e:
            raise self._fail(StreamError, f"Stream interrupted: {e}") from e
        except BaseException:
            self.state = StreamState.FAILED
            raise

        if self.state is not StreamState.DONE:
            raise self._fail(StreamError, "Stream ended before the final record")
        log.debug(
            "Stream done: %d chars in %.2fs (%s)",
            len("".join(self._response)),
            time.monotonic() - self._started,
            self._terminal.done_reason if self._terminal else None,
        )
        return self.result()

    async def _server_error(self, response: httpx.Response) -> ServerError:
        self.state = StreamState.FAILED
        lines = [line async for line in response.aiter_lines()]
        detail = error_detail(response.status_code, lines, response.reason_phrase)
        log.warning("Ollama returned %d: %s", response.status_code, detail[:200])
        return ServerError(response.status_code, detail)


@dataclass(frozen=True)
class StreamChunk:
    kind: str  # "thinking" | "response"
    text: str


StreamCall = Callable[[Sink, Sink, asyncio.Event], Awaitable[GenerationResult]]

_END = object()


class ResultStreamer:
    """Runs one streaming call on a background task.

    Fragments are published as StreamChunk items on a bounded queue; a full
    queue suspends the reader until the consumer catches up.

    Usage::

        streamer = client.generate_async(request)
        async for chunk in streamer:
            print(chunk.text, end="")
        result = await streamer.result()
    """

    def __init__(self, call: StreamCall, queue_size: int = 256):
        self._call = call
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._cancel = asyncio.Event()
        self._finished = asyncio.Event()
        self._exhausted = False
        self._task: Optional[asyncio.Task] = None
        self._thinking: list[str] = []
        self._response: list[str] = []
        self._result: Optional[GenerationResult] = None
        self.error: Optional[BaseException] = None

    def start(self) -> "ResultStreamer":
        if self._task is not None:
            raise RuntimeError("Streamer already started")
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._on_done)
        return self

    async def _on_thinking(self, fragment: str) -> None:
        self._thinking.append(fragment)
        await self._queue.put(StreamChunk("thinking", fragment))

    async def _on_response(self, fragment: str) -> None:
        self._response.append(fragment)
        await self._queue.put(StreamChunk("response", fragment))

    async def _run(self) -> None:
        try:
            self._result = await self._call(self._on_thinking, self._on_response, self._cancel)
        except Exception as e:
            log.debug("Streaming call failed: %s", e)
            self.error = e
        await self._queue.put(_END)

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            if self.error is None and self._result is None:
                self.error = StreamCancelledError("Streaming call cancelled", partial=self._partial())
            # Unread chunks are dropped so the end marker always fits
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(_END)
        self._finished.set()

    def _partial(self) -> GenerationResult:
        return GenerationResult(
            response="".join(self._response),
            thinking="".join(self._thinking) or None,
            done=False,
            state=StreamState.FAILED,
        )

    def __aiter__(self) -> "ResultStreamer":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        return item

    async def result(self) -> GenerationResult:
        """Wait for the call to finish, discarding unread chunks."""
        async for _ in self:
            pass
        await self._finished.wait()
        if self.error is not None:
            raise self.error
        return self._result

    def cancel(self) -> None:
        self._cancel.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def is_alive(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def succeeded(self) -> bool:
        return self._finished.is_set() and self.error is None and self._result is not None and self._result.done

    @property
    def http_status(self) -> Optional[int]:
        if self._result is not None:
            return self._result.http_status
        if isinstance(self.error, ServerError):
            return self.error.status
        partial = getattr(self.error, "partial", None)
        return partial.http_status if partial is not None else None

    @property
    def response_text(self) -> str:
        """Response text received so far."""
        return "".join(self._response)

    @property
    def thinking_text(self) -> str:
        return "".join(self._thinking)
