"""Single-transaction categorizer.

Created: 2026-10-05
Changes:
  2026-10-08 - Added categorize_local_first: try the keyword simulator before
               spending an API call.

Order of resolution:
  1. description equals a category name (case-insensitive): no network call
  2. (optional) keyword simulator match
  3. closed-set prompt, non-streaming completion, validated answer
  4. on any failure in 3: keyword simulator, "Other" when nothing matches
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal

from fincoach.categorize.categories import CATEGORIES, CategoryValidator
from fincoach.categorize.keywords import match_keywords, simulate_category
from fincoach.config import Settings
from fincoach.errors import FinCoachError
from fincoach.llm.dispatch import WorkerPool
from fincoach.llm.transport import ChatTransport

logger = logging.getLogger(__name__)

CATEGORIZE_PROMPT = """\
Categorize the following transaction: '{description}' (amount: {amount:.2f}).
Choose EXACTLY ONE category from this list: {options}.
Consider these examples to guide your decision:
- 'Monthly rent payment' -> Housing
- 'Grocery shopping at local market' -> Food
- 'Uber ride to airport' -> Transportation
- 'Netflix subscription' -> Entertainment
- 'Utility bill payment' -> Utilities
Respond with ONLY the category name, no explanation or additional text. \
If unsure, choose the most likely category based on similar real-world transactions."""


def build_categorize_prompt(
    description: str, amount: Decimal, categories: Iterable[str] = CATEGORIES
) -> str:
    return CATEGORIZE_PROMPT.format(
        description=description,
        amount=Decimal(str(amount)),
        options=", ".join(categories),
    )


class TransactionCategorizer:
    """Assigns exactly one category to a transaction.

    The result is always in the category set or ``"Other"``; failures are
    logged and resolved by the keyword simulator, never raised.
    """

    def __init__(
        self,
        transport: ChatTransport,
        settings: Settings,
        *,
        pool: WorkerPool | None = None,
        categories: Iterable[str] = CATEGORIES,
    ):
        self.transport = transport
        self.settings = settings
        self.pool = pool or WorkerPool(settings.max_concurrent_requests)
        self.categories = tuple(categories)

    async def categorize(
        self,
        description: str,
        amount: Decimal | float = Decimal("0"),
        categories: Iterable[str] | None = None,
    ) -> str:
        category_set = tuple(categories) if categories is not None else self.categories
        validator = CategoryValidator(category_set)

        direct = validator.canonical(description)
        if direct is not None:
            logger.debug("Direct category match: %s", direct)
            return direct

        if self.settings.categorize_local_first:
            local = match_keywords(description, category_set)
            if local is not None:
                logger.debug("Local pattern match for %r: %s", description, local)
                return local

        try:
            answer = await self.pool.run(
                self._ask(description, Decimal(str(amount)), category_set),
                name="categorize",
            )
            category = validator.require(answer)
        except FinCoachError as e:
            fallback = simulate_category(description, category_set)
            logger.warning("Categorization of %r fell back to %s: %s", description, fallback, e)
            return fallback
        except Exception:
            logger.exception("Unexpected categorization error for %r", description)
            return simulate_category(description, category_set)

        logger.info("Categorized %r as %s", description, category)
        return category

    async def _ask(self, description: str, amount: Decimal, categories: tuple[str, ...]) -> str:
        messages = [
            {"role": "system", "content": self.settings.categorizer_system_prompt},
            {"role": "user", "content": build_categorize_prompt(description, amount, categories)},
        ]
        return await self.transport.complete(
            messages,
            temperature=self.settings.categorize_temperature,
            max_tokens=self.settings.categorize_max_tokens,
        )
