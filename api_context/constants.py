"""Set up some constants for the project."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BudgetModeSetting = Literal["auto", "conservative", "balanced", "generous"]


class Settings(BaseSettings):
    """Settings for the context filter.

    Reads from environment variables prefixed with ``API_CONTEXT_``.
    You can also put them in a .env file, e.g.::

        API_CONTEXT_BUDGET_MODE=generous
        API_CONTEXT_CONTEXT_FILTER_ENABLED=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="API_CONTEXT_",
        extra="ignore",
    )

    context_filter_enabled: bool = True
    budget_mode: BudgetModeSetting = "auto"

    index_cache_size: int = 5
    small_collection_threshold: int = 10

    default_top_k: int = 8
    default_min_score: float = 0.1

    log_level: str = "INFO"


SETTINGS = Settings()
