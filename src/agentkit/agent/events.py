"""Runtime events emitted by an agent while it handles a turn."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Agent state transitions.

    A turn moves through ``start -> thinking -> (tool_call -> tool_result)*
    -> thinking -> complete``; ``error`` can be reached from any state.
    ``token`` is only emitted while streaming.
    """

    START = "start"
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    TOKEN = "token"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class AgentEvent:
    """A single runtime event."""

    type: EventType
    agent_id: str
    timestamp: int  # milliseconds since the epoch
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type.value,
            "agent_id": self.agent_id,
            "timestamp": self.timestamp,
        }
        if self.data is not None:
            payload["data"] = self.data
        return payload


EventCallback = Callable[[AgentEvent], None]


@dataclass
class AgentRuntime:
    """Streaming flag plus registered event callbacks.

    Callbacks run inline on the agent's task, in registration order, so a
    slow callback delays the turn.
    """

    streaming: bool = False
    callbacks: list[EventCallback] = field(default_factory=list)

    def emit(self, agent_id: str, event_type: EventType, data: dict[str, Any] | None = None) -> None:
        if not self.callbacks:
            return
        event = AgentEvent(
            type=event_type,
            agent_id=agent_id,
            timestamp=time.time_ns() // 1_000_000,
            data=data,
        )
        for callback in list(self.callbacks):
            callback(event)
