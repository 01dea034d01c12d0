from api_context.models import ChatMessage
from api_context.retrieval.query_analyzer import (
    analyze,
    detect_method_hint,
    extract_keywords,
    extract_searchable_fragment,
    format_query_summary,
    is_follow_up_query,
    normalize,
)


class TestNormalize:
    def test_keeps_path_characters(self):
        assert normalize("What does  GET /users/{id}?") == "what does get /users/ id"

    def test_empty(self):
        assert normalize("   ") == ""


class TestAnalyze:
    def test_is_pure(self):
        text = "How do I cancel order 42 with DELETE /orders/{id}?"
        assert analyze(text) == analyze(text)

    def test_empty_query(self):
        result = analyze("")
        assert result.intent == "general"
        assert result.method_hint == "any"
        assert result.keywords == ()
        assert result.entity_terms == ()
        assert result.status_code_hint is None
        assert result.endpoint_hint is None
        assert not result.is_global_query
        assert not result.is_single_endpoint_query

    def test_create_user(self):
        result = analyze("how do I create a user")
        assert result.method_hint == "POST"
        assert "user" in result.entity_terms
        assert result.intent == "find_endpoint"
        assert result.keywords == ("create", "user")

    def test_global_query(self):
        result = analyze("Give me an overview of this API")
        assert result.is_global_query
        assert result.intent == "list_endpoints"

    def test_status_code_means_debug(self):
        result = analyze("why am I getting a 404 on orders")
        assert result.status_code_hint == 404
        assert result.intent == "debug_error"

    def test_auth_wins_over_everything(self):
        assert analyze("POST /login returns 401 with my bearer token").intent == "understand_auth"

    def test_plural_entity_kept_as_typed(self):
        assert analyze("list invoices").entity_terms == ("invoices",)

    def test_path_segments_are_entities(self):
        result = analyze("what is GET /widgets/{id}/parts")
        assert result.endpoint_hint == "/widgets/"
        assert "widgets" in result.entity_terms


class TestMethodHint:
    def test_literal_post_wins_over_other_verbs(self):
        assert analyze("get the cart then POST /orders to add it").method_hint == "POST"

    def test_literal_post_any_case(self):
        assert analyze("delete old rows, then post /archive").method_hint == "POST"

    def test_first_verb_wins(self):
        assert detect_method_hint("remove and then create a team", "") == "DELETE"

    def test_no_verb(self):
        assert analyze("user profile fields").method_hint == "any"


class TestSingleEndpointQuery:
    def test_single_intent_with_path(self):
        result = analyze("GET /users/42 details")
        assert result.intent == "find_endpoint"
        assert result.endpoint_hint is not None
        assert result.is_single_endpoint_query

    def test_run_request_with_path(self):
        result = analyze("run /health")
        assert result.intent == "run_request"
        assert result.is_single_endpoint_query

    def test_single_intent_without_path(self):
        result = analyze("create a new user")
        assert result.intent == "find_endpoint"
        assert result.endpoint_hint is None
        assert not result.is_single_endpoint_query

    def test_path_with_other_intent(self):
        result = analyze("what is the schema of /users")
        assert result.intent == "understand_schema"
        assert result.endpoint_hint == "/users"
        assert not result.is_single_endpoint_query

    def test_neither(self):
        result = analyze("hello there")
        assert result.intent == "general"
        assert not result.is_single_endpoint_query


class TestExtractKeywords:
    def test_longest_first_and_capped(self):
        words = "alpha beta gamma delta epsilon zeta eta theta iota kappa lambda subscription"
        keywords = extract_keywords(words)
        assert len(keywords) == 10
        assert keywords[0] == "subscription"

    def test_drops_stopwords_digits_and_duplicates(self):
        assert extract_keywords("the order 123 order of x") == ["order"]


class TestFormatQuerySummary:
    def test_contains_signals(self):
        summary = format_query_summary(analyze("why does GET /orders return 500"))
        assert "intent=debug_error" in summary
        assert "method=GET" in summary
        assert "status=500" in summary
        assert "path=/orders" in summary


class TestFollowUp:
    history = [
        ChatMessage(role="user", content="How do I create an order?"),
        ChatMessage(role="assistant", content="Use POST /orders with a list of items."),
    ]

    def test_needs_history(self):
        assert not is_follow_up_query("what about its errors", [])

    def test_opener(self):
        assert is_follow_up_query("and the response?", self.history)

    def test_reference(self):
        assert is_follow_up_query("which fields does it require", self.history)

    def test_explicit_path_is_not_follow_up(self):
        assert not is_follow_up_query("does it work for /users", self.history)

    def test_long_message_is_not_follow_up(self):
        message = "it " + " ".join(["word"] * 15)
        assert not is_follow_up_query(message, self.history)


class TestSearchableFragment:
    def test_short_message_unchanged(self):
        assert extract_searchable_fragment("find users") == "find users"

    def test_long_message_keeps_question_and_signal_lines(self):
        noise = "\n".join(f"    at frame{i} (lib.js:{i})" for i in range(40))
        message = f"Why does this fail?\n{noise}\nPOST /orders returned 422\n{noise}"
        fragment = extract_searchable_fragment(message)
        assert fragment.startswith("Why does this fail?")
        assert "POST /orders returned 422" in fragment
        assert "frame3" not in fragment
        assert len(fragment) <= 400
