# Prompt templates for the budget advisor.
# Created: 2026-10-04

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

GENERAL_INSIGHTS_PROMPT = """\
You are a financial advisor AI specializing in budget analysis and recommendations. \
Based on the following financial data, provide 3-5 concise, actionable insights and \
recommendations. Each insight should be a single paragraph and focused on helping the \
user manage their finances better.

Financial Data:
Total Monthly Budget: {total_budget:.2f}
Total Spent Amount: {spent_amount:.2f}
Remaining Budget: {remaining:.2f}

Spending by Category:
{category_lines}

Consider the following in your insights:
1. Highlight categories with unusually high spending
2. Suggest specific savings opportunities
3. Note if the user is on track to stay within budget
4. Provide a practical tip related to the largest spending category

Format your response as a list of insights, with each insight being a short paragraph. \
Each insight should start with a bullet point. \
DO NOT include introductions, conclusions, or any text that isn't a direct insight or \
recommendation."""

SEASONAL_PLAN_PROMPT = """\
You are a financial planning assistant specializing in holiday and seasonal budgeting. \
I need recommendations for an upcoming {occasion} budget.

Financial Data:
Previous spending for this occasion: {previous_spending:.2f}
Current available budget: {current_budget:.2f}

Please provide:
1. A recommended budget breakdown for {occasion}
2. 3-4 specific cost-saving tips for this occasion
3. Areas where spending can be prioritized for maximum enjoyment
4. Any relevant cultural considerations for {occasion}

Format your response as a list of recommendations, with each being a short paragraph. \
Each recommendation should start with a bullet point. \
Be specific and practical with your advice."""


def format_category_lines(breakdown: Mapping[str, Decimal | float]) -> str:
    if not breakdown:
        return "- (no spending recorded)"
    return "\n".join(f"- {name}: {Decimal(str(amount)):.2f}" for name, amount in breakdown.items())


def build_general_prompt(
    total_budget: Decimal,
    spent_amount: Decimal,
    breakdown: Mapping[str, Decimal | float],
) -> str:
    return GENERAL_INSIGHTS_PROMPT.format(
        total_budget=total_budget,
        spent_amount=spent_amount,
        remaining=total_budget - spent_amount,
        category_lines=format_category_lines(breakdown),
    )


def build_seasonal_prompt(occasion: str, previous_spending: Decimal, current_budget: Decimal) -> str:
    return SEASONAL_PLAN_PROMPT.format(
        occasion=occasion,
        previous_spending=previous_spending,
        current_budget=current_budget,
    )
