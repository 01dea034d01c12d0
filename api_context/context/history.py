"""Conversation-history awareness for ranked results.

Endpoints the conversation has already touched are likely to stay relevant,
and short follow-ups ("what about its errors?") refer to the endpoint the
assistant talked about last.
"""

import re
from dataclasses import replace

from api_context.models import ChatMessage, Collection, Endpoint
from api_context.retrieval.ranker import FOLLOW_UP_TERM, ScoredResult

HISTORY_SCAN_DEPTH = 6
CONTINUITY_BOOST = 1.4
FOLLOW_UP_BOOST = 2.0
FOLLOW_UP_INJECT_FACTOR = 1.5

_METHOD_PATH_RE = re.compile(r"\b(get|post|put|patch|delete)\s+(/[a-z][a-z0-9\-/{}]*)", re.IGNORECASE)
_PATH_RE = re.compile(r"/[a-z][a-z0-9\-/{}]*", re.IGNORECASE)


def extract_mentioned_endpoints(
    history: list[ChatMessage], collection: Collection
) -> list[str]:
    """Find endpoints mentioned in the last few messages.

    An endpoint counts as mentioned when its name, its "METHOD /path"
    signature or its bare path appears in the text.

    Args:
        history: Conversation turns, oldest first.
        collection: The loaded collection.

    Returns:
        Ids of mentioned endpoints, in corpus order.
    """
    recent = history[-HISTORY_SCAN_DEPTH:]
    if not recent:
        return []

    combined = "\n".join(message.content for message in recent).lower()
    signatures = {
        (method.upper(), path.lower()) for method, path in _METHOD_PATH_RE.findall(combined)
    }
    paths = {path.lower() for path in _PATH_RE.findall(combined)}

    mentioned = []
    for endpoint in collection.endpoints:
        path = endpoint.path.lower()
        if (
            (endpoint.name and endpoint.name.lower() in combined)
            or (endpoint.method, path) in signatures
            or path in paths
        ):
            mentioned.append(endpoint.id)
    return mentioned


def boost_mentioned_endpoints(
    results: list[ScoredResult], mentioned_ids: list[str]
) -> list[ScoredResult]:
    """Multiply the score of already-discussed endpoints by 1.4."""
    if not mentioned_ids:
        return results
    ids = set(mentioned_ids)
    return [
        replace(r, score=r.score * CONTINUITY_BOOST) if r.endpoint.id in ids else r
        for r in results
    ]


def get_last_discussed_endpoint(
    history: list[ChatMessage], collection: Collection
) -> Endpoint | None:
    """Walk assistant replies backwards and return the first endpoint found."""
    for message in reversed(history):
        if message.role != "assistant":
            continue
        content = message.content.lower()
        for endpoint in collection.endpoints:
            signature = f"{endpoint.method.lower()} {endpoint.path.lower()}"
            if signature in content or (endpoint.name and endpoint.name.lower() in content):
                return endpoint
    return None


def merge_follow_up_results(
    previous: Endpoint, results: list[ScoredResult]
) -> list[ScoredResult]:
    """Make sure the previously discussed endpoint leads a follow-up's results.

    If it was ranked, its score is doubled; otherwise it is injected at 1.5x
    the current top score.
    """
    if any(r.endpoint.id == previous.id for r in results):
        return [
            replace(r, score=r.score * FOLLOW_UP_BOOST) if r.endpoint.id == previous.id else r
            for r in results
        ]

    top_score = results[0].score if results else 1.0
    injected = ScoredResult(
        endpoint=previous,
        score=top_score * FOLLOW_UP_INJECT_FACTOR,
        matched_terms=[FOLLOW_UP_TERM],
        matched_fields=[],
    )
    return [injected, *results]
