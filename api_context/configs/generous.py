"""Generous budget mode.

Used for overview, comparison and authentication questions, which need to see
many endpoints at once.
"""

from api_context.configs.base import BudgetConfig, register_config

GENEROUS = register_config(
    BudgetConfig(
        name="generous",
        description="Overview, comparison and auth questions",
        token_budget=8000,
    )
)
