"""Balanced budget mode.

Default for ordinary lookups: a handful of full endpoints plus summaries.
"""

from api_context.configs.base import BudgetConfig, register_config

BALANCED = register_config(
    BudgetConfig(
        name="balanced",
        description="Default mix of full detail and summaries",
        token_budget=4000,
    )
)
