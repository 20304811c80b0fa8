"""Tests for StreamAssembler and ResultStreamer."""

import asyncio

import httpx
import pytest

from ollamakit.errors import DecodeError, ServerError, StreamCancelledError, StreamError
from ollamakit.models.chat import ChatResponse
from ollamakit.models.generate import GenerateResponse
from ollamakit.models.response import GenerationResult, StreamState
from ollamakit.streaming import ResultStreamer, StreamAssembler, StreamChunk

from .conftest import chat_line, gen_line, ndjson, tool_call


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
class BrokenStream(httpx.AsyncByteStream):
    """Yields some body bytes, then fails like a dropped connection."""

    def __init__(self, body: bytes):
        self.body = body

    async def __aiter__(self):
        yield self.body
        raise httpx.ReadError("connection reset")


def body(*records, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=ndjson(*records))


class Collector:
    def __init__(self):
        self.fragments: list[str] = []

    def __call__(self, fragment: str) -> None:
        self.fragments.append(fragment)

    @property
    def text(self) -> str:
        return "".join(self.fragments)


# ---------------------------------------------------------------------------
# Dispatch and accumulation
# ---------------------------------------------------------------------------
class TestDispatch:
    @pytest.mark.asyncio
    async def test_generate_fragments_reach_sinks_in_order(self):
        """Thinking-only records go to the thinking sink, the rest to the response sink."""
        thinking, response = Collector(), Collector()
        asm = StreamAssembler(GenerateResponse, thinking, response)
        result = await asm.consume(body(
            gen_line(thinking="Let me "),
            gen_line(thinking="think."),
            gen_line("Hello"),
            gen_line(", world"),
            gen_line("", done=True, done_reason="stop"),
        ))
        assert thinking.fragments == ["Let me ", "think."]
        assert response.fragments == ["Hello", ", world"]
        assert result.response == response.text == "Hello, world"
        assert result.thinking == thinking.text == "Let me think."

    @pytest.mark.asyncio
    async def test_response_wins_dispatch_when_both_present(self):
        """A record with both fragments is dispatched to the response sink only."""
        thinking, response = Collector(), Collector()
        asm = StreamAssembler(GenerateResponse, thinking, response)
        result = await asm.consume(body(
            gen_line("answer", thinking="aside"),
            gen_line("", done=True),
        ))
        assert response.fragments == ["answer"]
        assert thinking.fragments == []
        assert result.thinking == "aside"
        assert result.response == "answer"

    @pytest.mark.asyncio
    async def test_terminal_generate_fragment_is_dispatched_and_kept(self):
        response = Collector()
        asm = StreamAssembler(GenerateResponse, response_sink=response)
        result = await asm.consume(body(gen_line("Hel"), gen_line("lo", done=True)))
        assert response.fragments == ["Hel", "lo"]
        assert result.response == "Hello"

    @pytest.mark.asyncio
    async def test_terminal_chat_fragment_is_dispatched_and_kept(self):
        response = Collector()
        asm = StreamAssembler(ChatResponse, response_sink=response)
        result = await asm.consume(body(chat_line("Hel"), chat_line("lo", done=True)))
        assert response.fragments == ["Hel", "lo"]
        assert result.response == "Hello"

    @pytest.mark.asyncio
    async def test_accumulates_without_sinks(self):
        asm = StreamAssembler(GenerateResponse)
        result = await asm.consume(body(gen_line("a"), gen_line("b"), gen_line("c", done=True)))
        assert result.response == "abc"
        assert result.thinking is None

    @pytest.mark.asyncio
    async def test_async_sink_is_awaited(self):
        seen = []

        async def sink(fragment):
            await asyncio.sleep(0)
            seen.append(fragment)

        asm = StreamAssembler(GenerateResponse, response_sink=sink)
        await asm.consume(body(gen_line("x"), gen_line("y", done=True)))
        assert seen == ["x", "y"]

    @pytest.mark.asyncio
    async def test_terminal_metadata_copied(self):
        asm = StreamAssembler(GenerateResponse)
        result = await asm.consume(body(
            gen_line("hi"),
            gen_line(
                "", done=True, done_reason="stop", context=[1, 2, 3],
                total_duration=100, load_duration=10, prompt_eval_count=4,
                prompt_eval_duration=20, eval_count=5, eval_duration=30,
            ),
        ))
        assert result.done is True
        assert result.state is StreamState.DONE
        assert result.model == "m"
        assert result.done_reason == "stop"
        assert result.context == (1, 2, 3)
        assert result.total_duration == 100
        assert result.eval_count == 5
        assert result.http_status == 200
        assert result.elapsed_seconds >= 0

    @pytest.mark.asyncio
    async def test_tool_calls_collected_in_arrival_order(self):
        asm = StreamAssembler(ChatResponse)
        result = await asm.consume(body(
            chat_line(tool_calls=[tool_call("a", x=1)]),
            chat_line(tool_calls=[tool_call("b"), tool_call("a", x=2)]),
            chat_line(done=True),
        ))
        assert [c.function.name for c in result.tool_calls] == ["a", "b", "a"]
        assert result.tool_calls[2].function.arguments == {"x": 2}

    @pytest.mark.asyncio
    async def test_lines_after_done_are_not_read(self):
        """Reading stops at the done record, so trailing garbage is never decoded."""
        resp = httpx.Response(200, content=ndjson(gen_line("ok", done=True)) + b"not json\n")
        result = await StreamAssembler(GenerateResponse).consume(resp)
        assert result.response == "ok"

    @pytest.mark.asyncio
    async def test_blank_lines_skipped(self):
        resp = httpx.Response(200, content=b"\n" + ndjson(gen_line("a")) + b"\n\n" + ndjson(gen_line("b", done=True)))
        result = await StreamAssembler(GenerateResponse).consume(resp)
        assert result.response == "ab"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------
class TestFailures:
    @pytest.mark.asyncio
    async def test_non_200_concatenates_error_text(self):
        asm = StreamAssembler(GenerateResponse)
        resp = httpx.Response(500, content=ndjson({"error": "model crashed"}, {"error": ", try again"}))
        with pytest.raises(ServerError) as exc_info:
            await asm.consume(resp)
        assert exc_info.value.status == 500
        assert exc_info.value.detail == "model crashed, try again"
        assert asm.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_non_200_non_json_line_kept_verbatim(self):
        resp = httpx.Response(502, content=b"Bad Gateway from proxy\n")
        with pytest.raises(ServerError, match="Bad Gateway from proxy"):
            await StreamAssembler(GenerateResponse).consume(resp)

    @pytest.mark.asyncio
    async def test_401_without_body(self):
        with pytest.raises(ServerError) as exc_info:
            await StreamAssembler(GenerateResponse).consume(httpx.Response(401))
        assert exc_info.value.detail == "Unauthorized"

    @pytest.mark.asyncio
    async def test_decode_error_carries_partial(self):
        response = Collector()
        asm = StreamAssembler(GenerateResponse, response_sink=response)
        resp = httpx.Response(200, content=ndjson(gen_line("Hel"), gen_line("lo")) + b"{broken\n")
        with pytest.raises(DecodeError) as exc_info:
            await asm.consume(resp)
        partial = exc_info.value.partial
        assert partial.response == "Hello" == response.text
        assert partial.done is False
        assert partial.state is StreamState.FAILED
        assert asm.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_transport_error_mid_stream(self):
        resp = httpx.Response(200, stream=BrokenStream(ndjson(gen_line("par"), gen_line("tial"))))
        with pytest.raises(StreamError) as exc_info:
            await StreamAssembler(GenerateResponse).consume(resp)
        assert exc_info.value.partial.response == "partial"
        assert isinstance(exc_info.value.__cause__, httpx.ReadError)

    @pytest.mark.asyncio
    async def test_body_without_done_record(self):
        with pytest.raises(StreamError) as exc_info:
            await StreamAssembler(GenerateResponse).consume(body(gen_line("cut")))
        assert exc_info.value.partial.response == "cut"
        assert exc_info.value.partial.done is False

    @pytest.mark.asyncio
    async def test_cancel_event_stops_reading(self):
        cancel = asyncio.Event()

        def sink(fragment):
            cancel.set()

        asm = StreamAssembler(GenerateResponse, response_sink=sink)
        with pytest.raises(StreamCancelledError) as exc_info:
            await asm.consume(body(gen_line("first"), gen_line("second"), gen_line("", done=True)), cancel)
        assert exc_info.value.partial.response == "first"
        assert asm.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_feed_after_done_raises(self):
        asm = StreamAssembler(GenerateResponse)
        await asm.feed(GenerateResponse(response="x", done=True))
        with pytest.raises(RuntimeError):
            await asm.feed(GenerateResponse(response="y"))
        assert asm.result().response == "x"


# ---------------------------------------------------------------------------
# ResultStreamer
# ---------------------------------------------------------------------------
def _done(text: str) -> GenerationResult:
    return GenerationResult(response=text, done=True, state=StreamState.DONE)


class TestResultStreamer:
    @pytest.mark.asyncio
    async def test_chunks_then_result(self):
        async def call(thinking_sink, response_sink, cancel_event):
            await thinking_sink("hmm")
            await response_sink("a")
            await response_sink("b")
            return _done("ab")

        streamer = ResultStreamer(call).start()
        chunks = [chunk async for chunk in streamer]
        assert chunks == [
            StreamChunk("thinking", "hmm"),
            StreamChunk("response", "a"),
            StreamChunk("response", "b"),
        ]
        result = await streamer.result()
        assert result.response == "ab"
        assert streamer.succeeded
        assert streamer.http_status == 200
        assert streamer.response_text == "ab"

    @pytest.mark.asyncio
    async def test_full_queue_blocks_producer(self):
        produced = []

        async def call(thinking_sink, response_sink, cancel_event):
            for i in range(3):
                await response_sink(str(i))
                produced.append(i)
            return _done("012")

        streamer = ResultStreamer(call, queue_size=1).start()
        for _ in range(5):
            await asyncio.sleep(0)
        assert produced == [0]

        texts = [chunk.text async for chunk in streamer]
        assert texts == ["0", "1", "2"]
        assert produced == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_failure_surfaces_in_result(self):
        async def call(thinking_sink, response_sink, cancel_event):
            await response_sink("x")
            raise ServerError(404, "model 'nope' not found")

        streamer = ResultStreamer(call).start()
        with pytest.raises(ServerError):
            await streamer.result()
        assert not streamer.succeeded
        assert streamer.http_status == 404
        assert isinstance(streamer.error, ServerError)

    @pytest.mark.asyncio
    async def test_result_without_iterating(self):
        async def call(thinking_sink, response_sink, cancel_event):
            for ch in "abcdef":
                await response_sink(ch)
            return _done("abcdef")

        streamer = ResultStreamer(call, queue_size=2).start()
        result = await streamer.result()
        assert result.response == "abcdef"

    @pytest.mark.asyncio
    async def test_cancel(self):
        started = asyncio.Event()

        async def call(thinking_sink, response_sink, cancel_event):
            await response_sink("a")
            started.set()
            await asyncio.Event().wait()

        streamer = ResultStreamer(call).start()
        await started.wait()
        assert streamer.is_alive
        streamer.cancel()
        with pytest.raises(StreamCancelledError) as exc_info:
            await streamer.result()
        assert exc_info.value.partial.response == "a"
        assert not streamer.is_alive
        assert not streamer.succeeded

    @pytest.mark.asyncio
    async def test_cancel_after_call_finished_keeps_result(self):
        async def call(thinking_sink, response_sink, cancel_event):
            await response_sink("a")
            return _done("a")

        # The chunk fills the queue, so the task is parked on the end marker
        streamer = ResultStreamer(call, queue_size=1).start()
        for _ in range(5):
            await asyncio.sleep(0)
        assert streamer.is_alive
        streamer.cancel()
        result = await streamer.result()
        assert result.response == "a"
        assert streamer.error is None
        assert streamer.succeeded

    @pytest.mark.asyncio
    async def test_start_twice(self):
        async def call(thinking_sink, response_sink, cancel_event):
            return _done("")

        streamer = ResultStreamer(call).start()
        with pytest.raises(RuntimeError):
            streamer.start()
        await streamer.result()
