"""FinCoach: streaming personal-finance chat, budget insights and transaction categorization."""

__version__ = "0.1.0"
