"""LLM package for FinCoach."""

from fincoach.llm.dispatch import OwnerDispatcher, WorkerPool
from fincoach.llm.frames import TERMINAL_MARKER, is_terminal, parse_frame
from fincoach.llm.history import ConversationHistory, ConversationStore, Message, Role
from fincoach.llm.streaming import ChatStream, StreamingChatClient, StreamOutcome
from fincoach.llm.transport import ChatTransport

__all__ = [
    "TERMINAL_MARKER",
    "ChatStream",
    "ChatTransport",
    "ConversationHistory",
    "ConversationStore",
    "Message",
    "OwnerDispatcher",
    "Role",
    "StreamOutcome",
    "StreamingChatClient",
    "WorkerPool",
    "is_terminal",
    "parse_frame",
]
