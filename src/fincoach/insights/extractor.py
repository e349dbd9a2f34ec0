# Insight extraction: assistant text -> ordered bullet list.
# Created: 2026-10-04
#
# Three layers, each tried only when the previous one found nothing:
#   1. split on the bullet character, dropping any preamble before the first one
#   2. one insight per non-blank line (bullet/dash/numbered lines kept as-is)
#   3. the whole text as a single insight

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

BULLET = "•"
BULLET_PREFIX = BULLET + " "

_NUMBERED_RE = re.compile(r"^\d+\.")


def _split_on_bullets(text: str) -> list[str]:
    segments = text.split(BULLET)[1:]
    return [BULLET_PREFIX + s.strip() for s in segments if s.strip()]


def _split_on_lines(text: str) -> list[str]:
    insights = []
    for line in text.split("\n"):
        line = line.strip()
        # bare markers carry no insight
        if not line.lstrip(BULLET + "-").strip():
            continue
        if line.startswith((BULLET, "-")) or _NUMBERED_RE.match(line):
            insights.append(line)
        else:
            insights.append(BULLET_PREFIX + line)
    return insights


def extract_insights(text: str) -> list[str]:
    """Split *text* into insights. Empty or blank input yields ``[]``."""
    if not text or not text.strip():
        return []

    insights = _split_on_bullets(text)
    if insights:
        return insights

    logger.debug("No bullet points found, splitting by lines")
    insights = _split_on_lines(text)
    if insights:
        return insights

    return [BULLET_PREFIX + text.strip()]


class InsightExtractor:
    """Callable wrapper so the extractor can be injected and swapped in tests."""

    def extract(self, text: str) -> list[str]:
        return extract_insights(text)

    __call__ = extract
