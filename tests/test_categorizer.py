"""Tests for TransactionCategorizer and BatchCategorizer."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from fincoach.categorize.batch import (
    BatchCategorizer,
    build_batch_prompt,
    extract_json_object,
    parse_batch_response,
    parse_json_object,
)
from fincoach.categorize.categories import Transaction
from fincoach.categorize.categorizer import TransactionCategorizer, build_categorize_prompt
from fincoach.errors import BatchParseError

from .conftest import completion_response


def _refuse(request):
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def categorizer(settings, transport):
    return TransactionCategorizer(transport, settings)


@pytest.fixture
def batch(settings, transport):
    return BatchCategorizer(transport, settings)


# ---------------------------------------------------------------------------
# Single transaction
# ---------------------------------------------------------------------------


class TestCategorize:
    async def test_model_answer_validated(self, api, categorizer):
        api.responder = lambda r: completion_response(" food\n")
        assert await categorizer.categorize("Whole Foods", Decimal("-42.10")) == "Food"

    async def test_request_shape(self, api, categorizer, settings):
        api.responder = lambda r: completion_response("Transportation")
        await categorizer.categorize("Uber ride to airport", -23.5)

        payload = api.payload()
        assert payload["stream"] is False
        assert payload["temperature"] == settings.categorize_temperature
        assert payload["max_tokens"] == settings.categorize_max_tokens
        system, user = payload["messages"]
        assert system == {"role": "system", "content": settings.categorizer_system_prompt}
        assert "'Uber ride to airport' (amount: -23.50)" in user["content"]
        assert "Housing, Transportation, Food" in user["content"]

    async def test_transport_failure_uses_keyword_simulator(self, api, categorizer):
        api.responder = _refuse
        assert await categorizer.categorize("Starbucks Coffee", Decimal("-4.50")) == "Food"

    async def test_error_status_uses_keyword_simulator(self, api, categorizer):
        api.responder = lambda r: httpx.Response(401, text="bad key")
        assert await categorizer.categorize("Monthly rent payment", -1200) == "Housing"

    async def test_invalid_answer_uses_keyword_simulator(self, api, categorizer):
        api.responder = lambda r: completion_response("Rent")
        assert await categorizer.categorize("Monthly rent payment", -1200) == "Housing"

    async def test_invalid_answer_no_keywords_is_other(self, api, categorizer):
        api.responder = lambda r: completion_response("Miscellaneous")
        assert await categorizer.categorize("ZZZ Widget Co", -5) == "Other"

    async def test_description_naming_a_category_skips_network(self, api, categorizer):
        assert await categorizer.categorize("  healthcare ", -80) == "Healthcare"
        assert api.requests == []

    async def test_local_first(self, api, settings, transport):
        settings.categorize_local_first = True
        categorizer = TransactionCategorizer(transport, settings)

        assert await categorizer.categorize("Uber ride", -12) == "Transportation"
        assert api.requests == []

    async def test_local_first_miss_still_asks_model(self, api, settings, transport):
        settings.categorize_local_first = True
        categorizer = TransactionCategorizer(transport, settings)
        api.responder = lambda r: completion_response("Clothing")

        assert await categorizer.categorize("ZZZ Widget Co", -30) == "Clothing"
        assert len(api.requests) == 1

    async def test_custom_categories(self, api, categorizer):
        api.responder = lambda r: completion_response("Coffee")
        result = await categorizer.categorize("Blue Bottle", -6, ["Coffee", "Rent", "Other"])
        assert result == "Coffee"
        assert "Coffee, Rent, Other" in api.payload()["messages"][1]["content"]

    def test_prompt_lists_examples(self):
        prompt = build_categorize_prompt("Netflix", Decimal("-15.99"))
        assert "'Netflix' (amount: -15.99)" in prompt
        assert "'Netflix subscription' -> Entertainment" in prompt


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


class TestParseBatchResponse:
    def test_strict_json(self):
        text = json.dumps({"1": "Food", "2": "transportation", "3": "Nope"})
        assert parse_batch_response(text, 3) == ["Food", "Transportation", "Other"]

    def test_json_embedded_in_prose(self):
        text = 'Sure! Here you go:\n{"1": "Housing", "2": "Income"}\nLet me know.'
        assert parse_batch_response(text, 2) == ["Housing", "Income"]

    def test_not_json(self):
        assert parse_batch_response("not json", 3) == ["Other", "Other", "Other"]

    def test_json_array(self):
        assert parse_batch_response('["Food", "Travel"]', 2) == ["Other", "Other"]

    def test_missing_and_non_string_entries(self):
        text = json.dumps({"1": "Travel", "3": 7})
        assert parse_batch_response(text, 3) == ["Travel", "Other", "Other"]

    def test_extra_entries_ignored(self):
        text = json.dumps({"1": "Food", "2": "Food", "3": "Food"})
        assert parse_batch_response(text, 2) == ["Food", "Food"]


class TestJsonHelpers:
    def test_parse_json_object_rejects_non_object(self):
        with pytest.raises(BatchParseError):
            parse_json_object("[1]")

    def test_extract_json_object(self):
        assert extract_json_object('x {"a": {"b": 1}} y') == '{"a": {"b": 1}}'

    @pytest.mark.parametrize("text", ["no braces", "} backwards {"])
    def test_extract_json_object_missing(self, text):
        with pytest.raises(BatchParseError):
            extract_json_object(text)


class TestBatchCategorizer:
    async def test_not_json_response(self, api, batch):
        api.responder = lambda r: completion_response("not json")
        txns = [
            Transaction(description="Uber", amount=Decimal("-12.50")),
            Transaction(description="Salary", amount=Decimal("3000")),
            Transaction(description="Starbucks", amount=Decimal("-4.5")),
        ]
        assert await batch.categorize_all(txns) == ["Other", "Other", "Other"]

    async def test_valid_response(self, api, batch):
        api.responder = lambda r: completion_response('{"1": "Transportation", "2": "Income"}')
        result = await batch.categorize_all(
            [{"description": "Uber", "amount": "-12.50"}, {"description": "Salary", "amount": 3000}]
        )
        assert result == ["Transportation", "Income"]

        prompt = api.payload()["messages"][1]["content"]
        assert "Transaction 1:\nDescription: Uber\nAmount: -12.50" in prompt
        assert "Transaction 2:\nDescription: Salary\nAmount: 3000.00" in prompt

    async def test_empty_batch_makes_no_request(self, api, batch):
        assert await batch.categorize_all([]) == []
        assert api.requests == []

    async def test_transport_failure(self, api, batch):
        api.responder = _refuse
        txns = [Transaction(description="A"), Transaction(description="B")]
        assert await batch.categorize_all(txns) == ["Other", "Other"]

    async def test_invalid_transaction(self, api, batch):
        assert await batch.categorize_all([{"amount": 5}]) == ["Other"]
        assert api.requests == []

    async def test_max_tokens_scales_with_batch(self, api, batch):
        api.responder = lambda r: completion_response("{}")
        txns = [Transaction(description=f"t{i}") for i in range(20)]
        assert await batch.categorize_all(txns) == ["Other"] * 20
        assert api.payload()["max_tokens"] == 320

    def test_prompt_footer(self):
        prompt = build_batch_prompt([Transaction(description="x")])
        assert prompt.endswith('like: {"1": "Food", "2": "Transportation"}')


class TestUnexpectedErrors:
    async def test_unexpected_error_logged_and_simulated(self, categorizer, caplog):
        with patch.object(
            categorizer.transport, "complete", AsyncMock(side_effect=RuntimeError("bug"))
        ):
            result = await categorizer.categorize("Starbucks Coffee", -4.5)

        assert result == "Food"
        assert "Unexpected categorization error" in caplog.text

    async def test_transport_called_once_per_categorize(self, categorizer):
        complete = AsyncMock(return_value="Travel")
        with patch.object(categorizer.transport, "complete", complete):
            assert await categorizer.categorize("Hotel in Lisbon", -300) == "Travel"
        complete.assert_awaited_once()
        assert complete.await_args.kwargs["max_tokens"] == 50
