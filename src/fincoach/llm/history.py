"""Conversation history for the streaming chat client.

Created: 2026-10-02

A ``ConversationHistory`` is the ordered list of role-tagged messages sent
with every streaming request. It keeps at most one system message, always at
index 0, and carries the in-flight flag that stops two sends from racing on
the same history.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from fincoach.errors import ConversationBusyError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Message author."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ConversationHistory:
    """Ordered message log owned by a single chat session.

    The optional ``system_prompt`` is seeded as the first message and
    re-seeded by ``clear()``.
    """

    def __init__(self, system_prompt: str | None = None):
        self._system_prompt = system_prompt
        self._messages: list[Message] = []
        self._in_flight = False
        if system_prompt:
            self._messages.append(Message(Role.SYSTEM, system_prompt))

    # -- reads --

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def system_prompt(self) -> str | None:
        if self._messages and self._messages[0].role is Role.SYSTEM:
            return self._messages[0].content
        return None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def to_payload(self) -> list[dict[str, str]]:
        """Messages in the shape the chat-completions API expects."""
        return [m.to_dict() for m in self._messages]

    # -- writes --

    def add_user(self, content: str) -> Message:
        return self._append(Message(Role.USER, content))

    def add_assistant(self, content: str) -> Message:
        return self._append(Message(Role.ASSISTANT, content))

    def set_system_prompt(self, content: str) -> None:
        """Replace any system message and put the new one first."""
        self._messages = [m for m in self._messages if m.role is not Role.SYSTEM]
        self._messages.insert(0, Message(Role.SYSTEM, content))
        self._system_prompt = content

    def clear(self) -> None:
        """Drop every turn and re-seed the system prompt."""
        self._messages = []
        if self._system_prompt:
            self._messages.append(Message(Role.SYSTEM, self._system_prompt))

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    # -- in-flight guard --

    def acquire(self) -> None:
        """Mark a send as in flight. Raises if one already is."""
        if self._in_flight:
            raise ConversationBusyError("A response is still streaming for this conversation")
        self._in_flight = True

    def release(self) -> None:
        self._in_flight = False


class ConversationStore:
    """Per-session histories for the HTTP API, keyed by session id."""

    def __init__(self, system_prompt: str | None = None):
        self._system_prompt = system_prompt
        self._histories: dict[str, ConversationHistory] = {}

    def get_or_create(self, session_id: str) -> ConversationHistory:
        history = self._histories.get(session_id)
        if history is None:
            history = ConversationHistory(self._system_prompt)
            self._histories[session_id] = history
            logger.debug("Created conversation %s", session_id)
        return history

    def get(self, session_id: str) -> ConversationHistory | None:
        return self._histories.get(session_id)

    def drop(self, session_id: str) -> bool:
        return self._histories.pop(session_id, None) is not None

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._histories

    def __len__(self) -> int:
        return len(self._histories)
