import pytest

from api_context.configs import BALANCED, get_config
from api_context.context.builder import (
    assign_tiers,
    build_context,
    build_history_only_context,
    estimate_tokens,
    format_endpoint_full,
    format_endpoint_summary,
    format_global_summary,
    render_collection_markdown,
)
from api_context.models import ChatMessage
from api_context.retrieval.query_analyzer import analyze
from api_context.retrieval.ranker import ScoredResult


def _results(collection, scores):
    return [
        ScoredResult(endpoint=endpoint, score=score, matched_terms=[], matched_fields=[])
        for endpoint, score in zip(collection.endpoints, scores)
    ]


class TestEstimateTokens:
    def test_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


class TestBudgetConfigs:
    def test_registered_modes(self):
        assert get_config("conservative").token_budget == 2000
        assert get_config("balanced") is BALANCED
        assert get_config("generous").token_budget == 8000

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown budget mode"):
            get_config("lavish")


class TestAssignTiers:
    def test_by_normalized_score(self, shop_collection):
        results = _results(shop_collection, [10.0, 9.0, 5.0, 1.0])
        tiers = [t.tier for t in assign_tiers(results, analyze("tell me about users"), BALANCED)]
        assert tiers == ["full", "full", "summary", "excluded"]

    def test_single_endpoint_query(self, shop_collection):
        results = _results(shop_collection, [10.0, 9.9, 9.8])
        tiered = assign_tiers(results, analyze("GET /users/42 details"), BALANCED)
        assert [t.tier for t in tiered] == ["full", "excluded", "excluded"]
        assert tiered[0].estimated_tokens == BALANCED.full_detail_tokens
        assert tiered[1].estimated_tokens == 0

    def test_list_intent_is_all_summary(self, shop_collection):
        results = _results(shop_collection, [10.0, 1.0])
        query = analyze("list all endpoints for users")
        assert query.intent == "list_endpoints"
        assert {t.tier for t in assign_tiers(results, query, BALANCED)} == {"summary"}

    def test_caps_full_and_summary(self, shop_collection):
        results = _results(shop_collection, [1.0] * 12)
        tiered = assign_tiers(results, analyze("tell me about the shop"), BALANCED)
        assert len(tiered) == 12
        assert sum(1 for t in tiered if t.tier == "full") == 5
        assert sum(1 for t in tiered if t.tier == "summary") == 7

    def test_auth_intent_promotes_auth_endpoints(self, shop_collection):
        # users-create and users-get require auth; orders-create does not.
        endpoints = [shop_collection.endpoints[i] for i in (4, 0, 1)]
        results = [
            ScoredResult(endpoint=e, score=s, matched_terms=[], matched_fields=[])
            for e, s in zip(endpoints, [10.0, 0.5, 0.1])
        ]
        query = analyze("how does auth work here")
        assert query.intent == "understand_auth"
        tiers = {t.endpoint.id: t.tier for t in assign_tiers(results, query, BALANCED)}
        assert tiers == {"orders-create": "full", "users-create": "full", "users-get": "full"}

    def test_empty(self):
        assert assign_tiers([], analyze("users"), BALANCED) == []


class TestFormatting:
    def test_full(self, shop_collection):
        text = format_endpoint_full(shop_collection.endpoints[1])
        assert text.startswith("### GET Get User\n")
        assert "`id` (path, string, required)" in text
        assert "- **Responses:** 200: The user; 404: User not found" in text
        assert "- **Auth Required:** Yes (bearer)" in text

    def test_request_body_preview(self, shop_collection):
        endpoint = shop_collection.endpoints[0].model_copy(update={"request_body": "x" * 500})
        text = format_endpoint_full(endpoint)
        assert "x" * 300 + "..." in text
        assert "x" * 301 not in text

    def test_summary_truncates_description(self, shop_collection):
        endpoint = shop_collection.endpoints[0].model_copy(update={"description": "d" * 100})
        assert format_endpoint_summary(endpoint) == (
            "`POST /users` - Create User: " + "d" * 80 + "..."
        )

    def test_global_summary_groups_by_folder(self, shop_collection):
        text = format_global_summary(shop_collection)
        assert "Total Endpoints: 12 across 7 groups" in text
        assert "### Users (4 endpoints)" in text
        assert "### Ungrouped (1 endpoints)" in text
        assert "Authentication: bearer (BearerAuth)" in text

    def test_render_collection(self, shop_collection):
        text = render_collection_markdown(shop_collection)
        assert text.startswith("# Shop API")
        assert text.count("\n### ") == 12


class TestBuildContext:
    def test_global_query(self, shop_collection):
        built = build_context(analyze("give me an overview"), [], shop_collection, "generous")
        assert built.is_global_context
        assert built.counts.summary == 12
        assert "## Endpoint Index" in built.markdown

    def test_no_results_falls_back_to_global(self, shop_collection):
        built = build_context(analyze("quantum flux"), [], shop_collection)
        assert built.is_global_context

    def test_tiers_and_footer(self, shop_collection):
        results = _results(shop_collection, [10.0, 9.0, 5.0])
        built = build_context(analyze("tell me about users"), results, shop_collection)
        assert built.counts.full_detail == 2
        assert built.counts.summary == 1
        assert built.counts.excluded == 9
        assert built.budget == "balanced"
        assert not built.truncated
        assert "> Context: 3 of 12 endpoints shown" in built.markdown
        assert "### POST Create User" in built.markdown
        assert "## Related Endpoints (Summary)" in built.markdown
        assert "9 additional endpoints not shown" in built.markdown

    def test_budget_overflow_downgrades_to_summary(self, shop_collection):
        results = _results(shop_collection, [1.0] * 5)
        query = analyze("tell me about the shop")

        tight = build_context(query, results, shop_collection, "conservative")
        assert tight.truncated
        assert tight.counts.full_detail == 4
        assert tight.counts.summary == 1

        roomy = build_context(query, results, shop_collection, "balanced")
        assert not roomy.truncated
        assert roomy.counts.full_detail == 5

    def test_unknown_budget(self, shop_collection):
        with pytest.raises(ValueError):
            build_context(analyze("users"), [], shop_collection, "lavish")


class TestHistoryOnlyContext:
    def test_mentioned_endpoints(self, shop_collection):
        history = [ChatMessage(role="assistant", content="Use POST /payments/{id}/refund.")]
        context = build_history_only_context(history, shop_collection)
        assert context.endpoint_ids == ["payments-refund"]
        assert context.matched_endpoints == 1
        assert "`POST /payments/{id}/refund` - Refund Payment" in context.markdown

    def test_nothing_mentioned(self, shop_collection):
        context = build_history_only_context([], shop_collection)
        assert context.markdown == ""
        assert context.matched_endpoints == 0
