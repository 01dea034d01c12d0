"""Base configuration dataclass for context budget modes."""

from dataclasses import dataclass


@dataclass(frozen=True)
class BudgetConfig:
    """Token budget for one context assembly mode.

    Each mode trades answer detail against prompt size. The context builder
    picks one per query, either from settings or from the query's intent.

    Attributes:
        name: Mode identifier (e.g., "balanced").
        description: Human-readable description of this mode.
        token_budget: Upper bound on estimated tokens for the whole context.
        full_detail_tokens: Estimated cost of one full-detail endpoint section.
        summary_tokens: Estimated cost of one summary line.
    """

    name: str
    description: str
    token_budget: int
    full_detail_tokens: int = 400
    summary_tokens: int = 60


# Registry of all budget modes by name
CONFIGS: dict[str, BudgetConfig] = {}


def register_config(config: BudgetConfig) -> BudgetConfig:
    """Register a budget mode in the global registry."""
    CONFIGS[config.name] = config
    return config


def get_config(name: str) -> BudgetConfig:
    """Get a budget mode by name from the registry."""
    if name not in CONFIGS:
        available = ", ".join(CONFIGS.keys())
        raise ValueError(f"Unknown budget mode: {name}. Available: {available}")
    return CONFIGS[name]
