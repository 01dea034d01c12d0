"""Query analysis, indexing and ranking of endpoints."""
