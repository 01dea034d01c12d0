from conftest import render_blocks

from api_context.retrieval.index_cache import IndexCache
from api_context.retrieval.ranker import SearchOptions
from api_context.retrieval.strategy import (
    BM25Strategy,
    KeywordFilterStrategy,
    RelevanceStrategy,
)


class TestBM25Strategy:
    def test_selects_ranked_results(self, shop_collection):
        strategy = BM25Strategy(shop_collection)
        selection = strategy.select("refund a payment")
        assert isinstance(strategy, RelevanceStrategy)
        assert selection.strategy == "bm25"
        assert selection.analyzed_query.keywords == ("payment", "refund")
        assert selection.results[0].endpoint.id == "payments-refund"
        assert selection.text is None

    def test_uses_shared_cache(self, shop_collection):
        cache = IndexCache()
        BM25Strategy(shop_collection, cache).select("users")
        BM25Strategy(shop_collection, cache).select("orders")
        assert len(cache) == 1

    def test_keeps_injected_empty_cache(self, shop_collection):
        cache = IndexCache(capacity=1)
        strategy = BM25Strategy(shop_collection, cache)
        assert strategy.cache is cache
        strategy.select("users")
        assert len(cache) == 1

    def test_options(self, shop_collection):
        selection = BM25Strategy(shop_collection, options=SearchOptions(top_k=1)).select("user")
        assert len(selection.results) == 1


class TestKeywordFilterStrategy:
    def test_selects_text(self):
        markdown = render_blocks(5)
        strategy = KeywordFilterStrategy(markdown)
        selection = strategy.select("anything")
        assert isinstance(strategy, RelevanceStrategy)
        assert selection.strategy == "keyword_filter"
        assert selection.text == markdown
        assert selection.results == []
