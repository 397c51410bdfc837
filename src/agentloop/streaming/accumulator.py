"""Reassembly of tool calls streamed as index-keyed fragments."""

from dataclasses import dataclass
from typing import Optional

from agentloop.streaming.events import ToolCallDelta


@dataclass
class AccumulatingToolCall:
    """A tool call under construction."""

    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.id) and bool(self.name)


@dataclass(frozen=True)
class CompletedToolCall:
    """A fully assembled tool call with its raw JSON arguments."""

    index: int
    id: str
    name: str
    arguments: str


class ToolCallAccumulator:
    """Merges tool-call fragments keyed by index.

    Identifier and name are overwritten by any non-empty fragment value;
    argument text is always appended, never replaced.
    """

    def __init__(self):
        self._calls: dict[int, AccumulatingToolCall] = {}

    def accumulate(
        self,
        index: int,
        id: Optional[str] = None,
        name: Optional[str] = None,
        arguments: str = "",
    ) -> None:
        """Merge one fragment into the call at `index`.

        Args:
            index: Position of the tool call in the response
            id: Call identifier, if carried by this fragment
            name: Function name, if carried by this fragment
            arguments: Argument text fragment
        """
        call = self._calls.setdefault(index, AccumulatingToolCall())
        if id:
            call.id = id
        if name:
            call.name = name
        call.arguments += arguments or ""

    def accumulate_delta(self, delta: ToolCallDelta) -> None:
        self.accumulate(delta.index, delta.id, delta.name, delta.arguments)

    def get_completed_tool_calls(self) -> list[CompletedToolCall]:
        """Calls with both id and name, sorted by index."""
        return [
            CompletedToolCall(index=index, id=call.id, name=call.name, arguments=call.arguments)
            for index, call in sorted(self._calls.items())
            if call.is_complete
        ]

    def get_all_tool_calls(self) -> list[CompletedToolCall]:
        """Every call sorted by index, with missing id or name as ''."""
        return [
            CompletedToolCall(
                index=index,
                id=call.id or "",
                name=call.name or "",
                arguments=call.arguments,
            )
            for index, call in sorted(self._calls.items())
        ]

    def tool_call_at(self, index: int) -> Optional[AccumulatingToolCall]:
        return self._calls.get(index)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self._calls)

    def reset(self) -> None:
        self._calls.clear()

    def __len__(self) -> int:
        return len(self._calls)
