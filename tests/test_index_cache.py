import itertools

import pytest
from conftest import make_endpoint

from api_context.models import Collection
from api_context.retrieval.bm25_index import collection_fingerprint
from api_context.retrieval.index_cache import IndexCache


def _collection(title: str) -> Collection:
    return Collection(
        title=title,
        endpoints=[make_endpoint(f"{title}-1", "GET", "/things", "List Things")],
    )


class TestIndexCache:
    def test_same_fingerprint_returns_same_object(self, shop_collection):
        cache = IndexCache()
        first = cache.get_or_build(shop_collection)
        second = cache.get_or_build(shop_collection.model_copy())
        assert first is second
        assert len(cache) == 1

    def test_sixth_entry_evicts_oldest(self):
        cache = IndexCache(capacity=5, clock=itertools.count().__next__)
        collections = [_collection(f"api{i}") for i in range(6)]
        for collection in collections[:5]:
            cache.get_or_build(collection)
        # A cache hit does not refresh the build timestamp.
        cache.get_or_build(collections[0])

        cache.get_or_build(collections[5])

        assert len(cache) == 5
        assert collection_fingerprint(collections[0]) not in cache
        for collection in collections[1:]:
            assert collection_fingerprint(collection) in cache

    def test_invalidate(self, shop_collection):
        cache = IndexCache()
        first = cache.get_or_build(shop_collection)
        cache.invalidate(first.fingerprint)
        assert first.fingerprint not in cache
        assert cache.get_or_build(shop_collection) is not first

    def test_invalidate_unknown_is_ignored(self):
        cache = IndexCache()
        cache.invalidate("does-not-exist")
        assert len(cache) == 0

    def test_clear(self, shop_collection, user_collection):
        cache = IndexCache()
        cache.get_or_build(shop_collection)
        cache.get_or_build(user_collection)
        cache.clear()
        assert len(cache) == 0

    def test_get(self, shop_collection):
        cache = IndexCache()
        assert cache.get(collection_fingerprint(shop_collection)) is None
        index = cache.get_or_build(shop_collection)
        assert cache.get(index.fingerprint) is index

    def test_invalid_capacity(self):
        with pytest.raises(ValueError, match="at least 1"):
            IndexCache(capacity=0)

    def test_separate_caches_are_isolated(self, shop_collection):
        assert IndexCache().get_or_build(shop_collection) is not IndexCache().get_or_build(
            shop_collection
        )
