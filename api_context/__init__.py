"""Context selection engine for chatting with an API description."""
