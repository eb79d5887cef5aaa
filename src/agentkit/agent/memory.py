"""Bounded conversational memory."""

import threading
from typing import Protocol

from agentkit.llm.client import Message


class Memory(Protocol):
    """Ordered, role-tagged message history."""

    def add_message(self, message: Message) -> None:
        ...

    def get_messages(self) -> list[Message]:
        ...

    def clear(self) -> None:
        ...


class SimpleMemory:
    """FIFO message buffer with an optional size bound.

    Once ``max_size`` messages are held, adding a message evicts the oldest
    one. ``max_size=0`` means unbounded. All operations are serialized by a
    lock, and reads return a copy of the list.
    """

    def __init__(self, max_size: int = 100):
        if max_size < 0:
            msg = "max_size must be >= 0"
            raise ValueError(msg)
        self.max_size = max_size
        self._messages: list[Message] = []
        self._lock = threading.Lock()

    def add_message(self, message: Message) -> None:
        with self._lock:
            if self.max_size > 0 and len(self._messages) >= self.max_size:
                del self._messages[0]
            self._messages.append(message)

    def get_messages(self) -> list[Message]:
        with self._lock:
            return list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages = []

    def last_user_message(self) -> Message:
        """Return the most recent user message.

        Raises:
            LookupError: If no user message is stored
        """
        return self._last_with_role("user")

    def last_assistant_message(self) -> Message:
        """Return the most recent assistant message.

        Raises:
            LookupError: If no assistant message is stored
        """
        return self._last_with_role("assistant")

    def _last_with_role(self, role: str) -> Message:
        with self._lock:
            for message in reversed(self._messages):
                if message.role == role:
                    return message
        msg = f"No {role} message found"
        raise LookupError(msg)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
