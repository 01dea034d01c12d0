"""Relevance strategies: interchangeable ways to pick context for a query."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from api_context.models import Collection
from api_context.retrieval.index_cache import IndexCache
from api_context.retrieval.keyword_filter import filter_collection_markdown
from api_context.retrieval.query_analyzer import AnalyzedQuery, analyze
from api_context.retrieval.ranker import ScoredResult, SearchOptions, search


@dataclass
class ContextSelection:
    """What a strategy selected for one query.

    Structured strategies fill ``results``; text strategies fill ``text``.
    """

    strategy: str
    analyzed_query: AnalyzedQuery | None = None
    results: list[ScoredResult] = field(default_factory=list)
    text: str | None = None


class RelevanceStrategy(ABC):
    """Selects the part of an API surface relevant to a query."""

    name: str

    @abstractmethod
    def select(self, query: str) -> ContextSelection:
        """Return the selection for a raw user query."""


class BM25Strategy(RelevanceStrategy):
    """Ranks structured endpoint records with the BM25 index."""

    name = "bm25"

    def __init__(
        self,
        collection: Collection,
        cache: IndexCache | None = None,
        options: SearchOptions | None = None,
    ) -> None:
        self.collection = collection
        self.cache = cache if cache is not None else IndexCache()
        self.options = options

    def select(self, query: str) -> ContextSelection:
        analyzed = analyze(query)
        index = self.cache.get_or_build(self.collection)
        return ContextSelection(
            strategy=self.name,
            analyzed_query=analyzed,
            results=search(index, analyzed, self.options),
        )


class KeywordFilterStrategy(RelevanceStrategy):
    """Filters rendered collection markdown by keyword overlap."""

    name = "keyword_filter"

    def __init__(self, markdown: str) -> None:
        self.markdown = markdown

    def select(self, query: str) -> ContextSelection:
        return ContextSelection(
            strategy=self.name,
            text=filter_collection_markdown(self.markdown, query),
        )
