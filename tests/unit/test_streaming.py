"""
Unit tests for SSE stream decoding and tool-call accumulation.
"""

import json

import pytest

from agentloop.streaming import (
    FinishReasonEvent,
    StreamDone,
    StreamError,
    StreamErrorKind,
    StreamEventParser,
    TextDelta,
    ToolCallAccumulator,
    ToolCallDelta,
    UsageEvent,
)


def data(chunk: dict) -> str:
    return f"data: {json.dumps(chunk)}"


# =============================================================================
# Parser Tests
# =============================================================================


class TestParseLine:
    """Tests for StreamEventParser.parse_line."""

    @pytest.mark.parametrize("line", ["", "   ", ": keep-alive", "event: message", "id: 42"])
    def test_ignored_lines(self, line):
        """Blank lines, comments and non-data fields carry no events."""
        assert StreamEventParser.parse_line(line) == []

    def test_done_sentinel(self):
        """The [DONE] sentinel ends the stream."""
        assert StreamEventParser.parse_line("data: [DONE]") == [StreamDone()]

    def test_data_prefix_without_space(self):
        """The space after 'data:' is optional."""
        line = 'data:{"choices":[{"delta":{"content":"hi"}}]}'
        assert StreamEventParser.parse_line(line) == [TextDelta(text="hi")]

    def test_text_delta(self):
        """Content deltas become TextDelta events."""
        line = data({"choices": [{"delta": {"content": "Hello"}}]})
        assert StreamEventParser.parse_line(line) == [TextDelta(text="Hello")]

    def test_empty_content_is_skipped(self):
        """Empty or null content produces no text event."""
        line = data({"choices": [{"delta": {"role": "assistant", "content": ""}}]})
        assert StreamEventParser.parse_line(line) == []

    def test_malformed_json_is_decoding_error(self):
        """Invalid JSON yields a decoding error instead of raising."""
        events = StreamEventParser.parse_line("data: {not json")

        assert len(events) == 1
        assert isinstance(events[0], StreamError)
        assert events[0].kind == StreamErrorKind.DECODING_ERROR

    def test_non_object_payload_is_decoding_error(self):
        """A JSON payload that is not an object is a decoding error."""
        events = StreamEventParser.parse_line("data: [1, 2, 3]")

        assert events[0].kind == StreamErrorKind.DECODING_ERROR
        assert "list" in events[0].message

    def test_text_tool_call_finish_and_usage_in_order(self):
        """Events within one chunk keep wire order, usage last."""
        line = data(
            {
                "choices": [
                    {
                        "delta": {
                            "content": "Checking",
                            "tool_calls": [
                                {
                                    "index": 0,
                                    "id": "call_1",
                                    "function": {"name": "search", "arguments": '{"q":'},
                                }
                            ],
                        },
                        "finish_reason": "tool_calls",
                    }
                ],
                "usage": {"prompt_tokens": 10, "completion_tokens": 5},
            }
        )

        events = StreamEventParser.parse_line(line)

        assert events == [
            TextDelta(text="Checking"),
            ToolCallDelta(index=0, id="call_1", name="search", arguments='{"q":'),
            FinishReasonEvent(reason="tool_calls"),
            UsageEvent(prompt_tokens=10, completion_tokens=5),
        ]
        assert events[-1].total_tokens == 15

    def test_tool_call_index_defaults_to_position(self):
        """Fragments without an index use their position in the list."""
        line = data(
            {
                "choices": [
                    {
                        "delta": {
                            "tool_calls": [
                                {"function": {"arguments": "a"}},
                                {"function": {"arguments": "b"}},
                            ]
                        }
                    }
                ]
            }
        )

        events = StreamEventParser.parse_line(line)

        assert [e.index for e in events] == [0, 1]
        assert [e.arguments for e in events] == ["a", "b"]

    def test_non_integer_index_falls_back_to_position(self):
        """A null or non-integer index uses the fragment's position."""
        line = data(
            {
                "choices": [
                    {
                        "delta": {
                            "tool_calls": [
                                {"index": 1, "id": "b", "function": {"name": "second"}},
                                {"index": None, "id": "a", "function": {"name": "first"}},
                            ]
                        }
                    }
                ]
            }
        )

        events = StreamEventParser.parse_line(line)

        assert [e.index for e in events] == [1, 1]

    @pytest.mark.parametrize(
        "chunk",
        [
            {"choices": [None]},
            {"choices": "nope"},
            {"choices": [{"delta": "oops"}]},
            {"choices": [{"delta": {"content": 42}}]},
            {"choices": [{"delta": {"tool_calls": [None]}}]},
            {"choices": [{"delta": {"tool_calls": {"index": 0}}}]},
            {"choices": [{"delta": {"tool_calls": [{"function": "search"}]}}]},
            {"choices": [{"delta": {"function_call": ["lookup"]}}]},
            {"choices": [{"delta": {}, "finish_reason": 1}]},
            {"usage": [1, 2]},
        ],
    )
    def test_wrongly_shaped_chunk_is_decoding_error(self, chunk):
        """Valid JSON with the wrong field types is a decoding error, not a crash."""
        events = StreamEventParser.parse_line(data(chunk))

        assert len(events) == 1
        assert events[0].kind == StreamErrorKind.DECODING_ERROR

    def test_legacy_function_call(self):
        """The legacy function_call field maps to index 0."""
        line = data(
            {"choices": [{"delta": {"function_call": {"name": "lookup", "arguments": "{}"}}}]}
        )

        assert StreamEventParser.parse_line(line) == [
            ToolCallDelta(index=0, id=None, name="lookup", arguments="{}")
        ]

    def test_legacy_function_call_ignored_when_tool_calls_present(self):
        """tool_calls wins over function_call."""
        line = data(
            {
                "choices": [
                    {
                        "delta": {
                            "tool_calls": [],
                            "function_call": {"name": "lookup", "arguments": "{}"},
                        }
                    }
                ]
            }
        )

        assert StreamEventParser.parse_line(line) == []

    @pytest.mark.parametrize(
        "error,kind",
        [
            ({"type": "authentication_error"}, StreamErrorKind.AUTHENTICATION_FAILED),
            ({"code": "invalid_api_key"}, StreamErrorKind.AUTHENTICATION_FAILED),
            ({"type": "invalid_request_error"}, StreamErrorKind.INVALID_REQUEST),
            ({"type": "rate_limit_error"}, StreamErrorKind.RATE_LIMITED),
            ({"code": "context_length_exceeded"}, StreamErrorKind.CONTEXT_LENGTH),
            ({"type": "content_filter"}, StreamErrorKind.CONTENT_FILTERED),
            ({"type": "invalid_request_error", "code": "model_not_found"}, StreamErrorKind.MODEL_NOT_FOUND),
            ({"type": "something_else"}, StreamErrorKind.UNKNOWN),
        ],
    )
    def test_error_payloads(self, error, kind):
        """Error objects map onto stream error kinds."""
        events = StreamEventParser.parse_line(data({"error": {"message": "nope", **error}}))

        assert events == [StreamError(kind=kind, message="nope")]


class TestParseLines:
    """Tests for parsing whole streams."""

    def test_stops_after_done(self):
        """Lines after [DONE] are not parsed."""
        lines = [
            data({"choices": [{"delta": {"content": "a"}}]}),
            "",
            "data: [DONE]",
            data({"choices": [{"delta": {"content": "ignored"}}]}),
        ]

        events = list(StreamEventParser.parse_lines(lines))

        assert events == [TextDelta(text="a"), StreamDone()]

    def test_keep_alive_and_blank_lines(self):
        """Comments and blank lines between data lines are skipped."""
        lines = [
            'data: {"choices":[{"delta":{"content":"Hi"}}]}',
            "",
            ": keep-alive",
            "data: [DONE]",
        ]

        assert list(StreamEventParser.parse_lines(lines)) == [TextDelta(text="Hi"), StreamDone()]

    def test_malformed_chunk_does_not_end_stream(self):
        """A wrongly shaped chunk is reported and later lines still parse."""
        lines = [
            data({"choices": [None]}),
            data({"choices": [{"delta": {"content": "ok"}}]}),
            "data: [DONE]",
        ]

        events = list(StreamEventParser.parse_lines(lines))

        assert events[0].kind == StreamErrorKind.DECODING_ERROR
        assert events[1:] == [TextDelta(text="ok"), StreamDone()]

    @pytest.mark.asyncio
    async def test_async_stream(self):
        """aparse_lines consumes an async line source."""

        async def source():
            yield data({"choices": [{"delta": {"content": "Hel"}}]})
            yield data({"choices": [{"delta": {"content": "lo"}}]})
            yield "data: [DONE]"

        events = [event async for event in StreamEventParser.aparse_lines(source())]

        assert "".join(e.text for e in events if isinstance(e, TextDelta)) == "Hello"
        assert isinstance(events[-1], StreamDone)


# =============================================================================
# Accumulator Tests
# =============================================================================


class TestToolCallAccumulator:
    """Tests for ToolCallAccumulator."""

    def test_arguments_are_concatenated(self):
        """Argument fragments append in arrival order."""
        acc = ToolCallAccumulator()
        acc.accumulate(0, id="call_1", name="search")
        acc.accumulate(0, arguments='{"q": ')
        acc.accumulate(0, arguments='"cats"}')

        [completed] = acc.get_completed_tool_calls()

        assert completed.id == "call_1"
        assert completed.name == "search"
        assert json.loads(completed.arguments) == {"q": "cats"}

    def test_empty_values_do_not_overwrite(self):
        """Later fragments without id or name keep earlier values."""
        acc = ToolCallAccumulator()
        acc.accumulate(0, id="call_1", name="search")
        acc.accumulate(0, id="", name=None, arguments="{}")

        call = acc.tool_call_at(0)

        assert call.id == "call_1"
        assert call.name == "search"

    def test_interleaved_indices_sorted(self):
        """Interleaved fragments for several calls come back sorted by index."""
        acc = ToolCallAccumulator()
        acc.accumulate(1, id="b", name="second", arguments="{")
        acc.accumulate(0, id="a", name="first", arguments="{")
        acc.accumulate(1, arguments="}")
        acc.accumulate(0, arguments="}")

        calls = acc.get_completed_tool_calls()

        assert [c.index for c in calls] == [0, 1]
        assert [c.name for c in calls] == ["first", "second"]
        assert all(c.arguments == "{}" for c in calls)

    def test_incomplete_calls_excluded(self):
        """Completed calls need both id and name."""
        acc = ToolCallAccumulator()
        acc.accumulate(0, id="call_1", name="search")
        acc.accumulate(1, name="no_id", arguments="{}")

        assert [c.index for c in acc.get_completed_tool_calls()] == [0]

        all_calls = acc.get_all_tool_calls()
        assert len(all_calls) == 2
        assert all_calls[1].id == ""

    def test_accumulate_delta(self):
        """Parser deltas feed straight into the accumulator."""
        acc = ToolCallAccumulator()
        acc.accumulate_delta(ToolCallDelta(index=0, id="x", name="echo", arguments='{"a":1}'))

        assert acc.has_tool_calls
        assert len(acc) == 1

    def test_null_index_from_stream_sorts(self):
        """Deltas with a null index still accumulate and sort."""
        acc = ToolCallAccumulator()
        second = {"index": 1, "id": "b", "function": {"name": "second"}}
        first = {"index": None, "id": "a", "function": {"name": "first"}}
        lines = [data({"choices": [{"delta": {"tool_calls": [call]}}]}) for call in (second, first)]

        for event in StreamEventParser.parse_lines(lines):
            acc.accumulate_delta(event)

        assert [c.index for c in acc.get_completed_tool_calls()] == [0, 1]
        assert [c.name for c in acc.get_all_tool_calls()] == ["first", "second"]

    def test_reset(self):
        """reset() discards all state."""
        acc = ToolCallAccumulator()
        acc.accumulate(0, id="x", name="echo")
        acc.reset()

        assert not acc.has_tool_calls
        assert acc.get_all_tool_calls() == []
