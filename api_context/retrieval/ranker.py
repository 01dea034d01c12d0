"""Rank endpoints for an analyzed query against a BM25 index.

BM25 term scores are boosted by the query's structured signals (entities,
method hint, literal path, intent) before being summed per endpoint.
"""

from dataclasses import dataclass, replace

from api_context.models import Endpoint
from api_context.retrieval.bm25_index import FIELD_BOOST, RelevanceIndex, stem
from api_context.retrieval.query_analyzer import AnalyzedQuery, HttpMethodHint

ENTITY_BOOST = 1.8
METHOD_BOOST = 1.5
PATH_BOOST = 3.0
AUTH_BOOST = 2.0
STATUS_CODE_BOOST = 2.5

FOLLOW_UP_TERM = "(follow-up)"


@dataclass
class SearchOptions:
    """Options for a single search.

    Attributes:
        top_k: Maximum number of results.
        min_score: Results scoring below this are dropped.
        method_filter: Restrict to this method when that leaves any result.
            None means "use the query's method hint".
        boost_entity_terms: Multiply scores of terms that are also entities.
    """

    top_k: int = 8
    min_score: float = 0.1
    method_filter: HttpMethodHint | None = None
    boost_entity_terms: bool = True


@dataclass
class ScoredResult:
    """A ranked endpoint with the evidence for its score."""

    endpoint: Endpoint
    score: float
    matched_terms: list[str]
    matched_fields: list[str]


def prepare_query_terms(query: AnalyzedQuery) -> list[str]:
    """Stem keywords and entity terms the same way the index stemmed documents."""
    seen: set[str] = set()
    terms: list[str] = []
    for raw in (*query.keywords, *query.entity_terms):
        term = stem(raw.lower())
        if len(term) >= 2 and term not in seen:
            seen.add(term)
            terms.append(term)
    return terms


def _has_status_code(endpoint: Endpoint, status_code: int) -> bool:
    return any(r.status_code == str(status_code) for r in endpoint.responses)


def search(
    index: RelevanceIndex,
    query: AnalyzedQuery,
    options: SearchOptions | None = None,
) -> list[ScoredResult]:
    """Score every endpoint in the index against the query.

    Args:
        index: A built RelevanceIndex.
        query: The analyzed user query.
        options: Search options; defaults to SearchOptions().

    Returns:
        Results sorted by descending score (ties keep corpus order), at most
        ``top_k`` long. Endpoints with no matching term never appear.
    """
    options = options or SearchOptions()
    method_filter = options.method_filter or query.method_hint

    query_terms = prepare_query_terms(query)
    if not query_terms:
        return []

    stemmed_entities = {stem(t.lower()) for t in query.entity_terms}
    endpoint_hint = query.endpoint_hint.lower() if query.endpoint_hint else None

    term_scores = {term: index.term_scores(term) for term in query_terms}

    scored: list[ScoredResult] = []
    for position, doc in enumerate(index.documents):
        endpoint = doc.endpoint
        # Boosts that depend only on the document apply to every matched term.
        doc_boost = 1.0
        if method_filter != "any" and endpoint.method == method_filter:
            doc_boost *= METHOD_BOOST
        if endpoint_hint and endpoint_hint in endpoint.path.lower():
            doc_boost *= PATH_BOOST
        if query.intent == "understand_auth" and endpoint.requires_auth:
            doc_boost *= AUTH_BOOST
        if (
            query.intent == "debug_error"
            and query.status_code_hint
            and _has_status_code(endpoint, query.status_code_hint)
        ):
            doc_boost *= STATUS_CODE_BOOST

        score = 0.0
        matched_terms: list[str] = []
        for term in query_terms:
            if doc.terms.get(term, 0) <= 0:
                continue
            matched_terms.append(term)

            term_score = term_scores[term][position]
            if options.boost_entity_terms and term in stemmed_entities:
                term_score *= ENTITY_BOOST
            score += term_score * doc_boost

        if score > 0:
            matched_fields = [
                name
                for name in FIELD_BOOST
                if doc.field_terms.get(name, frozenset()).intersection(matched_terms)
            ]
            scored.append(ScoredResult(endpoint, score, matched_terms, matched_fields))

    candidates = scored
    if method_filter != "any":
        filtered = [r for r in scored if r.endpoint.method == method_filter]
        # A mis-detected method hint must not hide every result.
        if filtered:
            candidates = filtered

    candidates = sorted(candidates, key=lambda r: r.score, reverse=True)
    return [r for r in candidates if r.score >= options.min_score][: options.top_k]


def search_with_fallback(
    index: RelevanceIndex,
    query: AnalyzedQuery,
    top_k: int = 15,
) -> list[ScoredResult]:
    """Search, progressively relaxing the query when nothing is found.

    1. The full query.
    2. Entity terms only, any method.
    3. The single most specific keyword, any method.

    Returns:
        The first non-empty result list, or [] when every attempt fails (the
        caller then falls back to a global summary).
    """
    results = search(
        index,
        query,
        SearchOptions(top_k=top_k, min_score=0.1, boost_entity_terms=True),
    )
    if results:
        return results

    if query.entity_terms:
        entity_only = replace(query, keywords=query.entity_terms, method_hint="any")
        results = search(
            index,
            entity_only,
            SearchOptions(top_k=top_k, min_score=0.05, boost_entity_terms=True),
        )
        if results:
            return results

    if query.keywords:
        single_keyword = replace(
            query, keywords=query.keywords[:1], entity_terms=(), method_hint="any"
        )
        results = search(index, single_keyword, SearchOptions(top_k=top_k, min_score=0.01))
        if results:
            return results

    return []
