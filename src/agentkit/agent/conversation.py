"""Multi-session conversations layered over agents and memory."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from agentkit.agent.loop import Agent
from agentkit.agent.memory import Memory, SimpleMemory
from agentkit.errors import ConversationNotFoundError
from agentkit.llm.client import Message

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Feedback(BaseModel):
    """User rating of a single message."""

    rating: int = Field(ge=1, le=5)
    comment: str = ""
    submitted_at: datetime = Field(default_factory=_now)


class ConversationMessage(BaseModel):
    """An entry in a conversation's message log."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    role: str
    content: str
    tool_calls: list[dict[str, Any]] | None = None
    tool_results: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_now)
    feedback: Feedback | None = None


@dataclass
class Conversation:
    """A chat session bound to one agent.

    The conversation owns its memory and its ordered message log; both are
    dropped when the conversation is deleted.
    """

    agent_id: str
    agent: Agent
    title: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    memory: Memory = field(default_factory=lambda: SimpleMemory(100))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": self.metadata,
        }


class ConversationManager:
    """In-memory registry of conversations and their message logs.

    One lock guards both maps. ``add_message`` holds it across the log
    append and the memory write, so a message is never visible in one store
    but not the other. ``send_message`` releases it while the agent runs.
    """

    def __init__(self, memory_size: int = 100) -> None:
        self.memory_size = memory_size
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[ConversationMessage]] = {}
        self._lock = threading.RLock()

    def create_conversation(
        self,
        agent: Agent,
        title: str = "",
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        """Start a conversation with an agent.

        Args:
            agent: Agent that answers in this conversation
            title: Display title
            agent_id: Owning agent id, defaults to ``agent.id``
            metadata: Free-form metadata

        Returns:
            The new conversation
        """
        if agent is None:
            msg = "agent must not be None"
            raise ValueError(msg)

        conversation = Conversation(
            agent_id=agent_id or agent.id,
            agent=agent,
            title=title,
            memory=SimpleMemory(self.memory_size),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._conversations[conversation.id] = conversation
            self._messages[conversation.id] = []

        logger.debug("Created conversation %s for agent %s", conversation.id, conversation.agent_id)
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation:
        """Look up a conversation.

        Raises:
            ConversationNotFoundError: If the id is unknown
        """
        with self._lock:
            conversation = self._conversations.get(conversation_id)
        if conversation is None:
            msg = f"Conversation not found: {conversation_id}"
            raise ConversationNotFoundError(msg)
        return conversation

    def list_conversations(self, agent_id: str | None = None) -> list[Conversation]:
        """List conversations, optionally only those of one agent."""
        with self._lock:
            conversations = list(self._conversations.values())
        if agent_id is None:
            return conversations
        return [c for c in conversations if c.agent_id == agent_id]

    def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation with its memory and message log.

        Raises:
            ConversationNotFoundError: If the id is unknown
        """
        with self._lock:
            if conversation_id not in self._conversations:
                msg = f"Conversation not found: {conversation_id}"
                raise ConversationNotFoundError(msg)
            del self._conversations[conversation_id]
            del self._messages[conversation_id]

    def add_message(self, conversation_id: str, role: str, content: str) -> ConversationMessage:
        """Append a message to the log and to the conversation memory.

        Raises:
            ConversationNotFoundError: If the id is unknown
        """
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                msg = f"Conversation not found: {conversation_id}"
                raise ConversationNotFoundError(msg)

            message = ConversationMessage(conversation_id=conversation_id, role=role, content=content)
            conversation.memory.add_message(Message(role=role, content=content))
            self._messages[conversation_id].append(message)
            conversation.updated_at = message.created_at

        return message

    def get_messages(self, conversation_id: str) -> list[ConversationMessage]:
        """Return a copy of the conversation's message log.

        Raises:
            ConversationNotFoundError: If the id is unknown
        """
        with self._lock:
            messages = self._messages.get(conversation_id)
            if messages is None:
                msg = f"Conversation not found: {conversation_id}"
                raise ConversationNotFoundError(msg)
            return list(messages)

    async def send_message(self, conversation_id: str, content: str) -> ConversationMessage:
        """Record a user message, ask the agent, and record its reply.

        Returns:
            The stored assistant message

        Raises:
            ConversationNotFoundError: If the id is unknown
            ProviderError: If the agent's provider fails; the user message stays logged
        """
        self.add_message(conversation_id, "user", content)
        conversation = self.get_conversation(conversation_id)
        reply = await conversation.agent.chat(content)
        return self.add_message(conversation_id, "assistant", reply)

    def add_feedback(self, conversation_id: str, message_id: str, rating: int, comment: str = "") -> Feedback:
        """Attach a 1-5 rating to a message.

        Raises:
            ValueError: If the rating is out of range
            ConversationNotFoundError: If the conversation is unknown
            LookupError: If the message is not in the conversation
        """
        if rating < 1 or rating > 5:
            msg = "rating must be between 1 and 5"
            raise ValueError(msg)

        feedback = Feedback(rating=rating, comment=comment)
        with self._lock:
            messages = self._messages.get(conversation_id)
            if messages is None:
                msg = f"Conversation not found: {conversation_id}"
                raise ConversationNotFoundError(msg)
            for index, message in enumerate(messages):
                if message.id == message_id:
                    messages[index] = message.model_copy(update={"feedback": feedback})
                    return feedback

        msg = f"Message not found: {message_id}"
        raise LookupError(msg)
