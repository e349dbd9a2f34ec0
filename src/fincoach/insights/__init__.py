"""Insight extraction and the budget advisor."""

from fincoach.insights.advisor import BudgetAdvisor
from fincoach.insights.extractor import InsightExtractor, extract_insights

__all__ = ["BudgetAdvisor", "InsightExtractor", "extract_insights"]
