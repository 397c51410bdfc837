"""Session storage contract.

A session carries conversation turns across runs. Storage is supplied by
the caller; the agent loop only reads recent items and appends new ones.
"""

from abc import ABC, abstractmethod
from typing import Optional

from agentloop.agent.history import ConversationMessage


class Session(ABC):
    """Conversation memory shared between runs."""

    @property
    def session_id(self) -> str:
        return str(id(self))

    @abstractmethod
    async def get_items(self, limit: Optional[int] = None) -> list[ConversationMessage]:
        """Return the most recent `limit` items in chronological order."""
        pass

    @abstractmethod
    async def add_items(self, items: list[ConversationMessage]) -> None:
        """Append items to the session."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every item."""
        pass
