# Keyword simulator: deterministic, network-free categorization.
# Created: 2026-10-04
#
# Rules are checked in order against the lower-cased description and the
# first one with a matching substring wins. Rules whose category isn't in the
# caller's set are skipped. No match means "Other".

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from fincoach.categorize.categories import CATEGORIES, CategoryValidator

logger = logging.getLogger(__name__)

_RECURRING = ("monthly", "subscription", "recurring", "membership", "annual plan")


@dataclass(frozen=True)
class KeywordRule:
    category: str
    keywords: tuple[str, ...]
    # at least one of these must also appear, when given
    requires: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if self.requires and not any(word in text for word in self.requires):
            return False
        return any(word in text for word in self.keywords)


KEYWORD_RULES: tuple[KeywordRule, ...] = (
    # Recurring charges: the service type decides
    KeywordRule(
        "Entertainment",
        ("netflix", "hulu", "disney", "spotify", "music", "movie", "game", "stream"),
        requires=_RECURRING,
    ),
    KeywordRule("Personal", ("gym", "fitness", "workout", "health club"), requires=_RECURRING),
    KeywordRule("Insurance", ("insurance", "coverage", "protection"), requires=_RECURRING),
    KeywordRule(
        "Food",
        (
            "grocery", "groceries", "supermarket", "restaurant", "food", "meal", "café",
            "cafe", "diner", "breakfast", "lunch", "dinner", "snack", "bakery", "coffee",
            "starbucks", "takeout", "uber eats", "doordash",
            "饭店", "食品", "餐厅", "超市", "外卖", "美食",
        ),
    ),
    KeywordRule(
        "Housing",
        (
            "rent", "mortgage", "lease", "apartment", "condo", "landlord", "tenant",
            "property", "real estate", "hoa fee",
            "房租", "住房", "物业费", "房产", "公寓",
        ),
    ),
    KeywordRule(
        "Transportation",
        (
            "gas station", "petrol", "fuel", "parking", "subway", "metro", "train",
            "taxi", "uber", "lyft", "didi", "transit", "toll", "car wash", "auto repair",
            "加油", "停车", "出租车", "公交", "地铁", "滴滴",
        ),
    ),
    KeywordRule("Insurance", ("insurance", "premium", "保险")),
    KeywordRule(
        "Healthcare",
        (
            "hospital", "clinic", "doctor", "dental", "dentist", "pharmacy", "medicine",
            "prescription", "medical", "therapy",
            "医生", "医院", "诊所", "药店", "医疗",
        ),
    ),
    KeywordRule(
        "Utilities",
        (
            "electricity", "electric bill", "water bill", "gas bill", "utility", "internet",
            "wifi", "broadband", "phone bill", "mobile plan", "cable", "garbage",
            "电费", "水费", "煤气费", "电话费", "宽带",
        ),
    ),
    KeywordRule(
        "Entertainment",
        (
            "movie", "cinema", "theater", "theatre", "concert", "netflix", "hulu", "disney",
            "spotify", "gaming", "playstation", "xbox", "nintendo", "streaming",
            "电影", "游戏", "演唱会", "娱乐",
        ),
    ),
    KeywordRule(
        "Education",
        (
            "tuition", "school", "college", "university", "course", "textbook", "workshop",
            "学校", "大学", "学费", "课程", "培训",
        ),
    ),
    KeywordRule(
        "Travel",
        (
            "hotel", "airbnb", "booking.com", "airline", "flight", "resort", "lodging",
            "accommodation", "酒店", "机票",
        ),
    ),
    KeywordRule("Clothing", ("clothing", "apparel", "shoes", "uniqlo", "zara", "fashion", "衣服")),
    KeywordRule(
        "Gifts",
        ("gift", "red envelope", "hongbao", "lucky money", "donation", "charity", "红包", "压岁钱"),
    ),
    KeywordRule("Income", ("salary", "payroll", "paycheck", "wage", "bonus", "工资", "奖金")),
    KeywordRule(
        "Investment",
        ("stock", "brokerage", "dividend", "crypto", "mutual fund", "股票", "基金"),
    ),
    KeywordRule("Savings", ("savings", "emergency fund", "储蓄")),
    KeywordRule("Personal", ("haircut", "salon", "spa", "gym", "fitness", "cosmetics")),
)


def match_keywords(
    description: str,
    categories: Iterable[str] = CATEGORIES,
    rules: Iterable[KeywordRule] = KEYWORD_RULES,
) -> str | None:
    """Return the first rule category matching *description*, or None."""
    validator = CategoryValidator(categories)
    text = description.lower()
    for rule in rules:
        category = validator.canonical(rule.category)
        if category is not None and rule.matches(text):
            return category
    return None


def simulate_category(description: str, categories: Iterable[str] = CATEGORIES) -> str:
    """Keyword-simulator category for *description*; ``"Other"`` when nothing matches."""
    categories = tuple(categories)
    category = match_keywords(description, categories)
    if category is None:
        category = CategoryValidator(categories).fallback
    logger.debug("Keyword simulator: %r -> %s", description, category)
    return category
