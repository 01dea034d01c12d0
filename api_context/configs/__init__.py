"""Configuration module for context budget modes."""

from api_context.configs.balanced import BALANCED
from api_context.configs.base import BudgetConfig, get_config
from api_context.configs.conservative import CONSERVATIVE
from api_context.configs.generous import GENEROUS

__all__ = [
    "BALANCED",
    "CONSERVATIVE",
    "GENEROUS",
    "BudgetConfig",
    "get_config",
]
