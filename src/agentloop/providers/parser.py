"""Parser for extracting tool calls from chat-completion responses."""

import json
import logging
from typing import Any

from agentloop.providers.models import FinishReason, InferenceResponse, TokenUsage
from agentloop.streaming.accumulator import CompletedToolCall
from agentloop.tools.models import ToolCall

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "stop": FinishReason.COMPLETED,
    "tool_calls": FinishReason.TOOL_CALL,
    "function_call": FinishReason.TOOL_CALL,
    "length": FinishReason.MAX_TOKENS,
    "content_filter": FinishReason.CONTENT_FILTER,
}


class ToolCallParser:
    """Parses OpenAI-format chat-completion responses.

    The response format:
    {
        "choices": [{
            "message": {
                "role": "assistant",
                "content": "I'll check...",
                "tool_calls": [{
                    "id": "call_123",
                    "type": "function",
                    "function": {"name": "lookup", "arguments": "{\\"q\\": \\"x\\"}"}
                }]
            },
            "finish_reason": "tool_calls"
        }],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5}
    }
    """

    @staticmethod
    def parse_response(response: dict[str, Any]) -> InferenceResponse:
        """Parse a full chat-completion response.

        Args:
            response: Response dictionary in OpenAI format

        Returns:
            InferenceResponse with content, tool calls, finish reason and usage
        """
        choices = response.get("choices") or []
        message: dict[str, Any] = {}
        finish_reason = None
        if choices:
            message = choices[0].get("message") or {}
            finish_reason = choices[0].get("finish_reason")

        tool_calls = ToolCallParser.parse_tool_calls(message)
        usage = ToolCallParser.parse_usage(response.get("usage"))

        return InferenceResponse(
            content=ToolCallParser.extract_text_content(message),
            tool_calls=tool_calls,
            finish_reason=ToolCallParser.map_finish_reason(finish_reason),
            usage=usage,
        )

    @staticmethod
    def parse_tool_calls(message: dict[str, Any]) -> list[ToolCall]:
        """Parse tool calls from an assistant message.

        Falls back to the legacy single `function_call` field when no
        `tool_calls` are present.
        """
        tool_calls = []
        raw_calls = message.get("tool_calls")

        if raw_calls is None and message.get("function_call"):
            function = message["function_call"]
            raw_calls = [{"id": "call_0", "function": function}]

        for raw in raw_calls or []:
            if not isinstance(raw, dict):
                continue

            function = raw.get("function") or {}
            tool_id = raw.get("id")
            tool_name = function.get("name")

            if not tool_id or not tool_name:
                logger.warning(f"Invalid tool call entry: {raw}")
                continue

            tool_calls.append(
                ToolCall(
                    id=tool_id,
                    name=tool_name,
                    arguments=ToolCallParser.parse_arguments(function.get("arguments")),
                )
            )

        return tool_calls

    @staticmethod
    def parse_arguments(raw: Any) -> dict[str, Any]:
        """Decode tool-call arguments.

        Arguments usually arrive as a JSON string; text that is not a JSON
        object is kept under `raw_input`.
        """
        if raw is None or raw == "":
            return {}
        if isinstance(raw, dict):
            return raw
        if not isinstance(raw, str):
            return {"raw_input": raw}

        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse tool arguments as JSON: {raw}")
            return {"raw_input": raw}

        if not isinstance(arguments, dict):
            return {"raw_input": arguments}
        return arguments

    @staticmethod
    def from_accumulated(calls: list[CompletedToolCall]) -> list[ToolCall]:
        """Convert accumulated stream fragments into tool calls."""
        return [
            ToolCall(id=call.id, name=call.name, arguments=ToolCallParser.parse_arguments(call.arguments))
            for call in calls
        ]

    @staticmethod
    def extract_text_content(message: dict[str, Any]) -> str | None:
        """Extract text content from an assistant message.

        Returns:
            The text, or None when the message carries no text
        """
        content = message.get("content")
        if not content:
            return None

        if isinstance(content, str):
            return content

        # Content-part lists
        if isinstance(content, list):
            parts = [
                block.get("text", "")
                for block in content
                if isinstance(block, dict) and block.get("type") == "text"
            ]
            text = "\n".join(part for part in parts if part)
            return text or None

        return None

    @staticmethod
    def map_finish_reason(reason: str | None) -> FinishReason:
        if reason is None:
            return FinishReason.COMPLETED
        return _FINISH_REASONS.get(reason, FinishReason.COMPLETED)

    @staticmethod
    def parse_usage(usage: dict[str, Any] | None) -> TokenUsage | None:
        if not usage:
            return None
        return TokenUsage(
            prompt_tokens=usage.get("prompt_tokens") or 0,
            completion_tokens=usage.get("completion_tokens") or 0,
            total_tokens=usage.get("total_tokens") or 0,
        )
