"""Tests for the streaming path of ChatOrchestrator."""

import asyncio
import json
from contextlib import aclosing

import httpx
import pytest

from hunyuan.errors import APIError, ToolCallDepthExceeded
from hunyuan.llm.api import HunyuanApi
from hunyuan.llm.retry import RetryPolicy, RetryTemplate
from hunyuan.llm.signer import RequestSigner
from hunyuan.llm.types import ChatCompletionChunk, ChatOptions, Conversation
from hunyuan.orchestrator.core import ChatOrchestrator
from hunyuan.tools.registry import ToolRegistry
from tests.mock_api import MockApi, chunk, text_chunks, tool_call_wire
from tests.mock_tools import EchoTool

ECHO_ON = ChatOptions(tool_names=frozenset({"echo"}))


def _orchestrator(api, **kwargs):
    registry = ToolRegistry()
    registry.register(EchoTool())
    kwargs.setdefault("retry", RetryTemplate(RetryPolicy(initial_delay_s=0, jitter=False)))
    return ChatOrchestrator(api, registry=registry, **kwargs)


def _echo_fragments(response_id="s1", call_id="call_1"):
    """An echo call split over two fragments, then the finishing fragment."""
    return [
        chunk(role="assistant", response_id=response_id,
              tool_calls=[tool_call_wire(call_id, "echo", '{"message":', index=0)]),
        chunk(response_id=response_id,
              tool_calls=[tool_call_wire(None, "", ' "hi"}', index=0)]),
        chunk(finish_reason="tool_calls", response_id=response_id),
    ]


async def _collect(orch, conversation):
    final = []
    results = [r async for r in orch.stream(conversation, on_complete=final.append)]
    return results, final


class TestRolePropagation:

    async def test_role_carried_to_every_fragment(self):
        api = MockApi(streams=[[
            chunk("Hi", role="assistant"),
            chunk(" there"),
            chunk("", finish_reason="stop"),
        ]])
        results, final = await _collect(_orchestrator(api), Conversation.from_text("hello"))

        assert [r.text for r in results] == ["Hi", " there", ""]
        assert all(r.result.role == "assistant" for r in results)
        assert results[1].result.metadata == {"id": "stream-1", "role": "assistant", "finish_reason": ""}
        assert results[2].result.finish_reason == "stop"

        assert final[0].text == "Hi there"
        assert final[0].result.role == "assistant"
        assert final[0].result.finish_reason == "stop"

    async def test_missing_delta_becomes_empty_assistant_message(self):
        api = MockApi(streams=[[chunk(no_delta=True, finish_reason="stop")]])
        results, _ = await _collect(_orchestrator(api), Conversation.from_text("hello"))
        gen = results[0].result
        assert gen.text == ""
        assert gen.role == "assistant"

    async def test_role_cache_not_shared_between_exchanges(self):
        api = MockApi(streams=[
            [chunk("a", role="assistant", response_id="same")],
            [chunk("b", response_id="same")],
        ])
        orch = _orchestrator(api)
        first, _ = await _collect(orch, Conversation.from_text("one"))
        second, _ = await _collect(orch, Conversation.from_text("two"))
        assert first[0].result.role == "assistant"
        assert second[0].result.role == ""

    async def test_single_fragment_aggregates_to_itself(self):
        api = MockApi(streams=[[chunk("Hello", role="assistant", finish_reason="stop")]])
        results, final = await _collect(_orchestrator(api), Conversation.from_text("hi"))
        assert len(results) == 1
        only, agg = results[0].result, final[0].result
        assert (agg.text, agg.role, agg.finish_reason) == (only.text, only.role, only.finish_reason)
        assert agg.metadata == only.metadata


class TestMalformedFragments:

    async def test_bad_fragment_becomes_empty_result(self):
        broken = ChatCompletionChunk(id="stream-1", choices=[None])
        api = MockApi(streams=[[
            chunk("A", role="assistant"),
            broken,
            chunk("B"),
            chunk("", finish_reason="stop"),
        ]])
        results, final = await _collect(_orchestrator(api), Conversation.from_text("hi"))

        assert len(results) == 4
        assert results[1].generations == []
        assert final[0].text == "AB"


class TestOverHttp:
    """Wrong-shaped payloads coming through the real client stay isolated."""

    @staticmethod
    def _api(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HunyuanApi(RequestSigner("AKIDtest", "secret"), client=client)

    async def test_wrong_shape_fragment_becomes_empty_result(self):
        frames = [
            {"Id": "s", "Choices": [{"Index": 0, "Delta": {"Role": "assistant", "Content": "A"}, "FinishReason": ""}]},
            {"Id": "s", "Choices": [None]},
            {"Id": "s", "Choices": [{"Index": 0, "Delta": {"Content": "B"}, "FinishReason": "stop"}]},
        ]
        body = "".join(f"data: {json.dumps(f)}\n\n" for f in frames).encode("utf-8")
        api = self._api(lambda r: httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))

        results, final = await _collect(_orchestrator(api), Conversation.from_text("hi"))

        assert [r.text for r in results] == ["A", "", "B"]
        assert results[1].generations == []
        assert results[2].result.role == "assistant"
        assert final[0].text == "AB"
        assert final[0].result.finish_reason == "stop"

    async def test_wrong_shape_completion_becomes_empty_result(self):
        body = {"Response": {"Id": "r", "Choices": [None], "RequestId": "q"}}
        api = self._api(lambda r: httpx.Response(200, json=body))
        result = await _orchestrator(api).call(Conversation.from_text("hi"))
        assert result.generations == []
        assert result.text == ""


class TestParallelToolCalls:

    @staticmethod
    def _interleaved(response_id="s1"):
        """Two calls whose fragments arrive interleaved, keyed by their Index."""
        return [
            chunk(role="assistant", response_id=response_id,
                  tool_calls=[tool_call_wire("c0", "echo", '{"message":', index=0)]),
            chunk(response_id=response_id,
                  tool_calls=[tool_call_wire("c1", "echo", '{"message": "b"}', index=1)]),
            chunk(response_id=response_id,
                  tool_calls=[tool_call_wire(None, "", ' "a"}', index=0)]),
            chunk(finish_reason="tool_calls", response_id=response_id),
        ]

    async def test_proxy_mode_aggregates_each_call(self):
        api = MockApi(streams=[self._interleaved()])
        options = ChatOptions(tool_names=frozenset({"echo"}), proxy_tool_calls=True)

        _, final = await _collect(_orchestrator(api), Conversation.from_text("hi", options))

        calls = final[0].result.tool_calls
        assert [tc.id for tc in calls] == ["c0", "c1"]
        assert [json.loads(tc.arguments) for tc in calls] == [{"message": "a"}, {"message": "b"}]

    async def test_stream_complete_returns_each_call(self):
        api = MockApi(streams=[self._interleaved()])
        orch = _orchestrator(api, default_options=ChatOptions(proxy_tool_calls=True))
        result = await orch.stream_complete(Conversation.from_text("hi", ECHO_ON))
        assert [tc.id for tc in result.result.tool_calls] == ["c0", "c1"]

    async def test_resolved_calls_answer_each_id(self):
        api = MockApi(streams=[self._interleaved(), text_chunks("both done", response_id="s2")])
        await _collect(_orchestrator(api), Conversation.from_text("hi", ECHO_ON))
        tool_msgs = api.requests[1].messages[2:]
        assert [(m.tool_call_id, m.content) for m in tool_msgs] == [("c0", "a"), ("c1", "b")]


class TestToolContinuation:

    async def test_text_on_tool_call_fragment_is_kept(self):
        first = [
            chunk(role="assistant", response_id="s1",
                  tool_calls=[tool_call_wire("call_1", "echo", '{"message": "hi"}', index=0)]),
            chunk("Let me check.", finish_reason="tool_calls", response_id="s1"),
        ]
        api = MockApi(streams=[first, text_chunks("Echo said hi", response_id="s2")])

        results, final = await _collect(_orchestrator(api), Conversation.from_text("echo hi", ECHO_ON))

        assert [r.text for r in results] == ["", "Let me check.", "Echo ", "said ", "hi", ""]
        spoken = results[1].result
        assert spoken.tool_calls == []
        assert spoken.finish_reason == ""
        assert spoken.role == "assistant"
        assert final[0].text == "Let me check.Echo said hi"
        assert api.requests[1].messages[1].content == "Let me check."

    async def test_continuation_streams_in_place(self):
        api = MockApi(streams=[_echo_fragments(), text_chunks("Echo said hi", response_id="s2")])
        orch = _orchestrator(api)

        results, final = await _collect(orch, Conversation.from_text("echo hi", ECHO_ON))

        # Two unfinished tool fragments, then the whole continuation.
        assert len(results) == 2 + 4
        assert "".join(r.text for r in results) == "Echo said hi"
        assert all(r.result.finish_reason != "tool_calls" for r in results)

        assert final[0].text == "Echo said hi"
        assert final[0].result.tool_calls == []
        assert final[0].metadata.id == "s2"

        follow_up = api.requests[1].messages
        assert [m.role for m in follow_up] == ["user", "assistant", "tool"]
        assert follow_up[1].tool_calls[0].arguments == '{"message": "hi"}'
        assert follow_up[2].content == "hi"
        assert follow_up[2].tool_call_id == "call_1"
        assert all(r.stream for r in api.requests)

    async def test_both_responses_are_closed(self):
        api = MockApi(streams=[_echo_fragments(), text_chunks("done", response_id="s2")])
        await _collect(_orchestrator(api), Conversation.from_text("echo hi", ECHO_ON))
        assert [s.closed for s in api.opened] == [True, True]

    async def test_proxy_mode_streams_tool_calls_through(self):
        api = MockApi(streams=[_echo_fragments()])
        options = ChatOptions(tool_names=frozenset({"echo"}), proxy_tool_calls=True)

        results, final = await _collect(_orchestrator(api), Conversation.from_text("hi", options))

        assert len(results) == 3
        assert api.call_count == 1
        assembled = final[0].result.tool_calls
        assert len(assembled) == 1
        assert assembled[0].id == "call_1"
        assert assembled[0].arguments == '{"message": "hi"}'
        assert final[0].result.finish_reason == "tool_calls"

    async def test_depth_exceeded(self):
        api = MockApi(streams=[_echo_fragments(f"s{i}", f"c{i}") for i in range(3)])
        orch = _orchestrator(api, max_tool_rounds=1)
        with pytest.raises(ToolCallDepthExceeded):
            await _collect(orch, Conversation.from_text("loop", ECHO_ON))
        assert api.call_count == 2
        assert all(s.closed for s in api.opened)


class TestCancellation:

    async def test_early_close_closes_response(self):
        api = MockApi(streams=[text_chunks("one two three four")])
        final = []
        async with aclosing(_orchestrator(api).stream(Conversation.from_text("hi"), final.append)) as results:
            async for _ in results:
                break

        stream = api.opened[0]
        assert stream.closed
        assert stream.delivered == 1
        assert final == []

    async def test_task_cancel_closes_response(self):
        gate = asyncio.Event()
        api = MockApi(streams=[text_chunks("one two three four")], gate=gate)
        orch = _orchestrator(api)
        received = []

        async def consume():
            async for r in orch.stream(Conversation.from_text("hi")):
                received.append(r)

        task = asyncio.create_task(consume())
        gate.set()
        while not received:
            await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert api.opened[0].closed
        assert len(received) == 1


class TestStreamRetry:

    async def test_open_is_retried(self):
        api = MockApi(streams=[
            APIError("RequestLimitExceeded: slow down", code="RequestLimitExceeded", retryable=True),
            text_chunks("ok"),
        ])
        results, final = await _collect(_orchestrator(api), Conversation.from_text("hi"))
        assert final[0].text == "ok"
        assert api.call_count == 2

    async def test_stream_complete(self):
        api = MockApi(streams=[text_chunks("all of it")])
        result = await _orchestrator(api).stream_complete(Conversation.from_text("hi"))
        assert result.text == "all of it"
        assert result.metadata.model == "hunyuan-pro"
