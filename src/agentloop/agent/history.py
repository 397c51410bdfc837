"""Conversation history for a single agent run."""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MessageRole(str, Enum):
    """Valid message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ConversationMessage:
    """One entry of the conversation."""

    role: MessageRole
    content: str
    tool_name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def tool_result(cls, tool_name: str, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.TOOL, content=content, tool_name=tool_name)

    def format(self) -> str:
        """Render as a prompt block."""
        if self.role == MessageRole.SYSTEM:
            return f"[System]: {self.content}"
        if self.role == MessageRole.USER:
            return f"[User]: {self.content}"
        if self.role == MessageRole.ASSISTANT:
            return f"[Assistant]: {self.content}"
        return f"[Tool Result - {self.tool_name or 'unknown'}]: {self.content}"


class ConversationHistory:
    """Append-only ordered list of conversation messages."""

    def __init__(self, messages: Optional[list[ConversationMessage]] = None):
        self._messages: list[ConversationMessage] = list(messages or [])

    def append(self, message: ConversationMessage) -> None:
        self._messages.append(message)

    def extend(self, messages: list[ConversationMessage]) -> None:
        self._messages.extend(messages)

    @property
    def messages(self) -> list[ConversationMessage]:
        return list(self._messages)

    def last_user_message(self) -> Optional[str]:
        for message in reversed(self._messages):
            if message.role == MessageRole.USER:
                return message.content
        return None

    def build_prompt(self) -> str:
        """Render the whole history as blank-line separated blocks."""
        return "\n\n".join(message.format() for message in self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(list(self._messages))
