"""Budget advisor: streamed insights and seasonal plans.

Created: 2026-10-05

Each request runs in a fresh ``ConversationHistory`` seeded with the advisor
system prompt. Raw chunks go to ``on_chunk`` as they arrive (for immediate
display); once the stream terminates the full text goes through the insight
extractor and the list is returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from decimal import Decimal

from fincoach.insights.extractor import InsightExtractor
from fincoach.insights.prompts import build_general_prompt, build_seasonal_prompt
from fincoach.llm.dispatch import OwnerDispatcher
from fincoach.llm.frames import is_terminal
from fincoach.llm.history import ConversationHistory
from fincoach.llm.streaming import StreamingChatClient, StreamOutcome

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]

NO_INSIGHTS = "• No insights generated. Please try again."


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class BudgetAdvisor:
    """Generates bulleted budget advice through the streaming client."""

    def __init__(
        self,
        client: StreamingChatClient,
        *,
        system_prompt: str | None = None,
        extractor: InsightExtractor | None = None,
        dispatcher: OwnerDispatcher | None = None,
    ):
        self.client = client
        self.system_prompt = system_prompt or client.settings.advisor_system_prompt
        self.extractor = extractor or InsightExtractor()
        self.dispatcher = dispatcher

    async def generate_general_insights(
        self,
        total_budget: Decimal | float,
        spent_amount: Decimal | float,
        category_breakdown: Mapping[str, Decimal | float],
        on_chunk: ChunkCallback | None = None,
    ) -> list[str]:
        prompt = build_general_prompt(
            _to_decimal(total_budget), _to_decimal(spent_amount), category_breakdown
        )
        return await self._run(prompt, on_chunk, label="insights")

    async def generate_seasonal_plan(
        self,
        occasion: str,
        previous_spending: Decimal | float,
        current_budget: Decimal | float,
        on_chunk: ChunkCallback | None = None,
    ) -> list[str]:
        prompt = build_seasonal_prompt(
            occasion, _to_decimal(previous_spending), _to_decimal(current_budget)
        )
        return await self._run(prompt, on_chunk, label="holiday recommendations")

    async def _run(self, prompt: str, on_chunk: ChunkCallback | None, *, label: str) -> list[str]:
        logger.info("Requesting %s: %s...", label, prompt[:200])
        history = ConversationHistory(self.system_prompt)

        forward = on_chunk
        if on_chunk is not None and self.dispatcher is not None:
            forward = self.dispatcher.wrap(on_chunk)

        def _on_delta(chunk: str) -> None:
            if forward is not None and not is_terminal(chunk):
                forward(chunk)

        stream = self.client.send(history, prompt, on_delta=_on_delta)
        try:
            outcome = await stream.wait()
        except asyncio.CancelledError:
            stream.cancel()
            raise

        if outcome is StreamOutcome.FAILED:
            return [f"• Error generating {label}: {stream.error}. Please try again later."]

        insights = self.extractor.extract(stream.text)
        if outcome is StreamOutcome.CANCELLED:
            return insights
        logger.info("Parsed %d %s from response", len(insights), label)
        return insights or [NO_INSIGHTS]
