"""Smart context service: from chat message to prompt-ready API context.

Ties the gate, the query analyzer, the cached BM25 index, history awareness
and the context builder together for one loaded collection.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from api_context.constants import SETTINGS, Settings
from api_context.context.builder import (
    build_context,
    build_history_only_context,
    estimate_tokens,
    render_collection_markdown,
)
from api_context.context.gate import ContextDecision, should_send_context
from api_context.context.history import (
    boost_mentioned_endpoints,
    extract_mentioned_endpoints,
    get_last_discussed_endpoint,
    merge_follow_up_results,
)
from api_context.models import ChatMessage, Collection
from api_context.retrieval.bm25_index import collection_fingerprint
from api_context.retrieval.index_cache import IndexCache
from api_context.retrieval.keyword_filter import split_blocks
from api_context.retrieval.query_analyzer import (
    AnalyzedQuery,
    analyze,
    extract_searchable_fragment,
    format_query_summary,
    is_follow_up_query,
)
from api_context.retrieval.ranker import ScoredResult, SearchOptions, search_with_fallback
from api_context.retrieval.strategy import (
    BM25Strategy,
    KeywordFilterStrategy,
    RelevanceStrategy,
)

logger = logging.getLogger(__name__)

FULL_COLLECTION_TOKEN_FACTOR = 3


@dataclass
class ContextFilterStats:
    """Numbers reported alongside every assembled context."""

    total_endpoints: int
    sent_full: int
    sent_summary: int
    excluded: int
    estimated_input_tokens: int
    estimated_cost_saving_percent: int
    processing_time_ms: float
    budget_mode: str
    gate_decision: ContextDecision


@dataclass
class ContextFilterResult:
    """Context for one message, plus the analysis and stats behind it."""

    context_markdown: str
    analyzed_query: AnalyzedQuery | None
    stats: ContextFilterStats


@dataclass
class QueryDebug:
    """Raw analysis and ranking for a message, for troubleshooting."""

    analysis: AnalyzedQuery
    top_results: list[ScoredResult]


def determine_budget_mode(query: AnalyzedQuery) -> str:
    """Pick a budget mode from the query's shape."""
    if query.is_global_query:
        return "generous"
    if query.intent in ("compare_endpoints", "understand_auth"):
        return "generous"
    if query.is_single_endpoint_query or query.intent == "run_request":
        return "conservative"
    return "balanced"


class SmartContextService:
    """Builds the API context for each chat message.

    Attributes:
        settings: Filter settings (enabled flag, budget override, thresholds).
        cache: Index cache shared by every collection this service loads.
        renderer: Renders a whole collection when no filtering is applied.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: IndexCache | None = None,
        renderer: Callable[[Collection], str] = render_collection_markdown,
    ) -> None:
        self.settings = settings or SETTINGS
        self.cache = (
            cache if cache is not None else IndexCache(capacity=self.settings.index_cache_size)
        )
        self.renderer = renderer
        self.current_collection: Collection | None = None
        self.collection_markdown: str | None = None
        self._full_markdown: str | None = None

    def set_collection(self, collection: Collection) -> None:
        """Load a structured collection and build its index up front."""
        self.current_collection = collection
        self.collection_markdown = None
        self._full_markdown = None
        index = self.cache.get_or_build(collection)
        logger.info(
            "Index built for '%s' (%d endpoints)", collection.title, len(index)
        )

    def set_markdown(self, markdown: str) -> None:
        """Load a collection known only by its rendered markdown."""
        self.current_collection = None
        self.collection_markdown = markdown
        self._full_markdown = None

    def clear_collection(self) -> None:
        if self.current_collection is not None:
            self.cache.invalidate(collection_fingerprint(self.current_collection))
        self.current_collection = None
        self.collection_markdown = None
        self._full_markdown = None

    def strategy(self, options: SearchOptions | None = None) -> RelevanceStrategy:
        """Return the relevance strategy matching what is loaded.

        Raises:
            RuntimeError: If nothing is loaded.
        """
        if self.current_collection is not None:
            return BM25Strategy(self.current_collection, self.cache, options)
        if self.collection_markdown is not None:
            return KeywordFilterStrategy(self.collection_markdown)
        raise RuntimeError("No collection loaded")

    def get_context_for_query(
        self,
        user_message: str,
        history: list[ChatMessage] | None = None,
    ) -> ContextFilterResult:
        """Assemble the context to send with a user message.

        Args:
            user_message: The current user message.
            history: Prior conversation turns, oldest first.

        Returns:
            The context markdown, the query analysis and stats.

        Raises:
            RuntimeError: If no collection is loaded.
        """
        history = history or []
        start = time.perf_counter()

        if self.current_collection is None:
            if self.collection_markdown is None:
                raise RuntimeError("No collection loaded")
            return self._text_context(user_message, history, start)

        collection = self.current_collection
        total = len(collection.endpoints)

        gate_decision = should_send_context(user_message, history)
        if gate_decision == "none":
            logger.debug("Context gate: none, skipping collection context")
            return ContextFilterResult(
                context_markdown="",
                analyzed_query=None,
                stats=ContextFilterStats(
                    total_endpoints=total,
                    sent_full=0,
                    sent_summary=0,
                    excluded=total,
                    estimated_input_tokens=0,
                    estimated_cost_saving_percent=100,
                    processing_time_ms=_elapsed_ms(start),
                    budget_mode="none",
                    gate_decision="none",
                ),
            )

        if gate_decision == "history":
            logger.debug("Context gate: history, using conversation context only")
            history_context = build_history_only_context(history, collection)
            return ContextFilterResult(
                context_markdown=history_context.markdown,
                analyzed_query=None,
                stats=ContextFilterStats(
                    total_endpoints=total,
                    sent_full=0,
                    sent_summary=history_context.matched_endpoints,
                    excluded=total - history_context.matched_endpoints,
                    estimated_input_tokens=estimate_tokens(history_context.markdown),
                    estimated_cost_saving_percent=100,
                    processing_time_ms=_elapsed_ms(start),
                    budget_mode="history",
                    gate_decision="history",
                ),
            )

        if not self.settings.context_filter_enabled:
            return self._full_result(user_message, start)

        if total < self.settings.small_collection_threshold:
            logger.debug(
                "Small collection (<%d endpoints), skipping filter",
                self.settings.small_collection_threshold,
            )
            return self._full_result(user_message, start)

        search_message = extract_searchable_fragment(user_message)
        analyzed = analyze(search_message)
        logger.debug("Query analysis: %s", format_query_summary(analyzed))

        if self.settings.budget_mode != "auto":
            budget_mode = self.settings.budget_mode
        else:
            budget_mode = determine_budget_mode(analyzed)

        index = self.cache.get_or_build(collection)

        if analyzed.is_global_query:
            results: list[ScoredResult] = []
        else:
            results = search_with_fallback(index, analyzed)

        mentioned = extract_mentioned_endpoints(history, collection)
        results = boost_mentioned_endpoints(results, mentioned)

        if is_follow_up_query(search_message, history):
            last_endpoint = get_last_discussed_endpoint(history, collection)
            if last_endpoint is not None:
                results = merge_follow_up_results(last_endpoint, results)

        results.sort(key=lambda r: r.score, reverse=True)

        built = build_context(analyzed, results, collection, budget_mode)

        full_tokens = FULL_COLLECTION_TOKEN_FACTOR * estimate_tokens(
            " ".join(e.name + e.path + (e.description or "") for e in collection.endpoints)
        )
        saving = (
            round((1 - built.total_estimated_tokens / full_tokens) * 100)
            if full_tokens > 0
            else 0
        )

        return ContextFilterResult(
            context_markdown=built.markdown,
            analyzed_query=analyzed,
            stats=ContextFilterStats(
                total_endpoints=total,
                sent_full=built.counts.full_detail,
                sent_summary=built.counts.summary,
                excluded=built.counts.excluded,
                estimated_input_tokens=built.total_estimated_tokens,
                estimated_cost_saving_percent=max(0, saving),
                processing_time_ms=_elapsed_ms(start),
                budget_mode=budget_mode,
                gate_decision="filter",
            ),
        )

    def debug_query(self, user_message: str) -> QueryDebug:
        """Analyze and rank a message without any budgeting.

        Raises:
            RuntimeError: If no structured collection is loaded.
        """
        if self.current_collection is None:
            raise RuntimeError("No collection loaded")
        selection = self.strategy(SearchOptions(top_k=10, min_score=0)).select(user_message)
        return QueryDebug(analysis=selection.analyzed_query, top_results=selection.results)

    def _full_markdown_text(self) -> str:
        if self._full_markdown is None:
            self._full_markdown = self.renderer(self.current_collection)
        return self._full_markdown

    def _full_result(self, user_message: str, start: float) -> ContextFilterResult:
        markdown = self._full_markdown_text()
        total = len(self.current_collection.endpoints)
        return ContextFilterResult(
            context_markdown=markdown,
            analyzed_query=analyze(user_message),
            stats=ContextFilterStats(
                total_endpoints=total,
                sent_full=total,
                sent_summary=0,
                excluded=0,
                estimated_input_tokens=estimate_tokens(markdown),
                estimated_cost_saving_percent=0,
                processing_time_ms=_elapsed_ms(start),
                budget_mode="full",
                gate_decision="filter",
            ),
        )

    def _text_context(
        self, user_message: str, history: list[ChatMessage], start: float
    ) -> ContextFilterResult:
        markdown = self.collection_markdown
        _, all_blocks = split_blocks(markdown)
        total = len(all_blocks)

        gate_decision = should_send_context(user_message, history)
        if gate_decision != "filter":
            return ContextFilterResult(
                context_markdown="",
                analyzed_query=None,
                stats=ContextFilterStats(
                    total_endpoints=total,
                    sent_full=0,
                    sent_summary=0,
                    excluded=total,
                    estimated_input_tokens=0,
                    estimated_cost_saving_percent=100,
                    processing_time_ms=_elapsed_ms(start),
                    budget_mode=gate_decision,
                    gate_decision=gate_decision,
                ),
            )

        if self.settings.context_filter_enabled:
            text = self.strategy().select(user_message).text
        else:
            text = markdown
        _, sent_blocks = split_blocks(text)
        sent = len(sent_blocks)
        full_tokens = estimate_tokens(markdown)
        sent_tokens = estimate_tokens(text)
        saving = round((1 - sent_tokens / full_tokens) * 100) if full_tokens > 0 else 0

        return ContextFilterResult(
            context_markdown=text,
            analyzed_query=None,
            stats=ContextFilterStats(
                total_endpoints=total,
                sent_full=sent,
                sent_summary=0,
                excluded=total - sent,
                estimated_input_tokens=sent_tokens,
                estimated_cost_saving_percent=max(0, saving),
                processing_time_ms=_elapsed_ms(start),
                budget_mode="keyword_filter",
                gate_decision="filter",
            ),
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
