# Stream frame parsing for chat-completions SSE bodies.
# Created: 2026-10-03
#
# One call per body line. Blank lines yield None; everything else becomes a
# StreamFrame the client can act on without try/except of its own.

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_FRAME = "data: [DONE]"
DONE_SENTINEL = "__STREAM_DONE__"
TERMINAL_MARKER = "\n\n" + DONE_SENTINEL


class FrameKind(str, Enum):
    DELTA = "delta"  # valid JSON frame; content may be empty
    DONE = "done"  # the literal done frame
    SALVAGED = "salvaged"  # malformed JSON recovered as literal text
    DROPPED = "dropped"  # malformed JSON with nothing usable
    UNRECOGNIZED = "unrecognized"  # line without the data prefix


@dataclass(frozen=True)
class StreamFrame:
    kind: FrameKind
    raw: str
    content: str = ""

    @property
    def has_content(self) -> bool:
        return self.kind in (FrameKind.DELTA, FrameKind.SALVAGED) and bool(self.content)


def is_terminal(chunk: str) -> bool:
    """True when a delivered chunk is the terminal marker.

    Matches on the sentinel substring, so model output that happens to contain
    it is indistinguishable from the real end of stream.
    """
    return DONE_SENTINEL in chunk


def extract_delta_content(data: object) -> str:
    """Return ``choices[0].delta.content`` or "" when the shape doesn't match."""
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def _salvage(payload: str) -> StreamFrame:
    # A payload that still carries a data prefix (a doubled "data: data: ...")
    # is literal text; anything else that fails to parse is noise.
    if "data:" in payload and "[DONE]" not in payload and DONE_SENTINEL not in payload:
        text = payload.replace("data:", "").strip()
        if text:
            return StreamFrame(FrameKind.SALVAGED, payload, text)
    return StreamFrame(FrameKind.DROPPED, payload)


def parse_frame(line: str) -> StreamFrame | None:
    line = line.strip()
    if not line:
        return None

    if line == DONE_FRAME:
        return StreamFrame(FrameKind.DONE, line, TERMINAL_MARKER)

    if not line.startswith(DATA_PREFIX):
        logger.debug("Unexpected response line: %s", line[:100])
        return StreamFrame(FrameKind.UNRECOGNIZED, line)

    payload = line[len(DATA_PREFIX) :]
    try:
        data = json.loads(payload)
    except ValueError:
        frame = _salvage(payload)
        logger.warning("Malformed stream frame (%s): %s", frame.kind.value, payload[:100])
        return frame

    return StreamFrame(FrameKind.DELTA, payload, extract_delta_content(data))
