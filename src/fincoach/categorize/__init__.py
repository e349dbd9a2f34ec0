"""Transaction categorization."""

from fincoach.categorize.batch import BatchCategorizer, parse_batch_response
from fincoach.categorize.categories import (
    CATEGORIES,
    OTHER,
    CategoryValidator,
    Transaction,
    validate_category,
)
from fincoach.categorize.categorizer import TransactionCategorizer
from fincoach.categorize.keywords import match_keywords, simulate_category

__all__ = [
    "CATEGORIES",
    "OTHER",
    "BatchCategorizer",
    "CategoryValidator",
    "Transaction",
    "TransactionCategorizer",
    "match_keywords",
    "parse_batch_response",
    "simulate_category",
    "validate_category",
]
