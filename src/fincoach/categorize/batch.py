# Batch categorization: one prompt, one JSON object, N categories.
# Created: 2026-10-05
#
# The response is parsed strictly first; if that fails, the text between the
# first "{" and the last "}" is tried. Any failure turns the whole batch into
# "Other" so a partially parsed answer is never mixed with guesses.

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from fincoach.categorize.categories import CATEGORIES, CategoryValidator, Transaction
from fincoach.config import Settings
from fincoach.errors import BatchParseError, FinCoachError
from fincoach.llm.dispatch import WorkerPool
from fincoach.llm.transport import ChatTransport

logger = logging.getLogger(__name__)

BATCH_HEADER = (
    "Categorize each of the following transactions into one of the predefined categories.\n"
    "Available categories: {options}.\n"
    "For each transaction, respond with the category name.\n\n"
)
BATCH_FOOTER = (
    "Respond with a JSON object where the keys are transaction numbers and values are "
    'categories, like: {"1": "Food", "2": "Transportation"}'
)


def build_batch_prompt(
    transactions: Sequence[Transaction], categories: Iterable[str] = CATEGORIES
) -> str:
    parts = [BATCH_HEADER.format(options=", ".join(categories))]
    for i, txn in enumerate(transactions, start=1):
        parts.append(
            f"Transaction {i}:\nDescription: {txn.description}\nAmount: {txn.amount:.2f}\n\n"
        )
    parts.append(BATCH_FOOTER)
    return "".join(parts)


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse *text* as a JSON object or raise ``BatchParseError``."""
    try:
        data = json.loads(text)
    except (ValueError, TypeError) as e:
        raise BatchParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BatchParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def extract_json_object(text: str) -> str:
    """Return the substring from the first ``{`` to the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise BatchParseError("No JSON object found in response")
    return text[start : end + 1]


def parse_batch_response(
    text: str, count: int, categories: Iterable[str] = CATEGORIES
) -> list[str]:
    """Map ordinals 1..count to categories; all "Other" if *text* can't be parsed."""
    validator = CategoryValidator(categories)
    try:
        try:
            mapping = parse_json_object(text)
        except BatchParseError:
            mapping = parse_json_object(extract_json_object(text))
    except BatchParseError as e:
        logger.warning("Batch response unparsable (%s): %s", e, text[:200])
        return [validator.fallback] * count

    results = []
    for i in range(1, count + 1):
        value = mapping.get(str(i))
        results.append(validator.validate(value if isinstance(value, str) else None))
    return results


def _coerce(item: Transaction | Mapping[str, Any]) -> Transaction:
    return item if isinstance(item, Transaction) else Transaction.model_validate(item)


class BatchCategorizer:
    """Categorizes many transactions with a single completion request."""

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

    async def categorize_all(
        self, transactions: Sequence[Transaction | Mapping[str, Any]]
    ) -> list[str]:
        """Return one category per transaction, in order."""
        count = len(transactions)
        if count == 0:
            return []
        validator = CategoryValidator(self.categories)
        try:
            txns = [_coerce(t) for t in transactions]
            messages = [
                {"role": "system", "content": self.settings.categorizer_system_prompt},
                {"role": "user", "content": build_batch_prompt(txns, self.categories)},
            ]
            raw = await self.pool.run(
                self.transport.complete(
                    messages,
                    temperature=self.settings.categorize_temperature,
                    # room for one short JSON entry per transaction
                    max_tokens=max(self.settings.categorize_max_tokens, 16 * count),
                ),
                name="categorize-batch",
            )
        except FinCoachError as e:
            logger.warning("Batch categorization of %d transactions failed: %s", count, e)
            return [validator.fallback] * count
        except ValueError as e:
            # pydantic.ValidationError on a malformed transaction
            logger.warning("Invalid transaction in batch: %s", e)
            return [validator.fallback] * count

        return parse_batch_response(raw, count, self.categories)
