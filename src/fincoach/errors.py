"""Exception hierarchy for FinCoach.

Created: 2026-10-02

These are raised inside the package and turned into degraded results at the
service boundaries (error delta + terminal marker for streams, the keyword
simulator or "Other" for categorization). Only ``ConversationBusyError``
reaches callers, and it does so synchronously from ``send()``.
"""

from __future__ import annotations


class FinCoachError(Exception):
    """Base class for all FinCoach errors."""


class TransportError(FinCoachError):
    """The chat-completions request failed (connect, timeout, non-2xx, bad body)."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConversationBusyError(FinCoachError):
    """A second send was attempted while one is still in flight on the same history."""


class CategoryValidationError(FinCoachError):
    """The model answered with a label outside the allowed category set."""

    def __init__(self, answer: str):
        super().__init__(f"Category {answer!r} is not in the allowed set")
        self.answer = answer


class BatchParseError(FinCoachError):
    """A batch categorization response could not be turned into a JSON object."""


def format_transport_error(error: Exception) -> str:
    """Return the user-facing text delivered as the error delta of a failed stream."""
    if isinstance(error, TransportError) and error.status_code is not None:
        detail = error.body or str(error)
        return f"Error: {error.status_code} - {detail}"
    return f"Error communicating with AI service: {error}"
