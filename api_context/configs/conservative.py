"""Conservative budget mode.

Used when the user is clearly after one endpoint (an explicit path, or a
request they want to run). Keeps the prompt small.
"""

from api_context.configs.base import BudgetConfig, register_config

CONSERVATIVE = register_config(
    BudgetConfig(
        name="conservative",
        description="Single endpoint focus, smallest prompt",
        token_budget=2000,
    )
)
