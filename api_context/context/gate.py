"""Decide whether a chat message needs API context at all.

Greetings, thanks and questions about the assistant itself do not need the
collection in the prompt; sending it anyway only costs tokens.
"""

import re
from typing import Literal

ContextDecision = Literal["none", "history", "filter"]

GREETING_PATTERNS = [
    re.compile(r"^(hi|hello|hey|howdy|hola|sup|yo|greetings)\b", re.IGNORECASE),
    re.compile(r"^good\s+(morning|afternoon|evening|night)\b", re.IGNORECASE),
    re.compile(r"^what'?s?\s+up\b", re.IGNORECASE),
]

ACKNOWLEDGEMENT_PATTERNS = [
    re.compile(
        r"^(thanks|thank\s+you|thx|ty|cheers|great|awesome|perfect|cool|nice|ok|okay"
        r"|got\s+it|understood|sure|noted|alright)\b",
        re.IGNORECASE,
    ),
    re.compile(r"^(that'?s?\s+)?(helpful|clear|good|enough|all)\b", re.IGNORECASE),
    re.compile(
        r"^(no\s+)?(more\s+)?(questions?|that'?s?\s+it|that'?s?\s+all)\b",
        re.IGNORECASE,
    ),
]

META_QUESTIONS = [
    re.compile(r"^(who|what)\s+are\s+you\b", re.IGNORECASE),
    re.compile(r"^(can|what\s+can)\s+you\s+(do|help)\b", re.IGNORECASE),
    re.compile(r"^how\s+do(es)?\s+(this|you)\s+work\b", re.IGNORECASE),
    re.compile(r"^help\b", re.IGNORECASE),
]

REPEAT_PATTERNS = [
    re.compile(r"^(say\s+that\s+again|repeat|come\s+again)\b", re.IGNORECASE),
    re.compile(
        r"^(can\s+you\s+)?(rephrase|clarify|explain\s+(that|it)\s*(again|more)?)\b",
        re.IGNORECASE,
    ),
]

API_SIGNAL_TERMS = (
    "endpoint", "api", "request", "response", "status",
    "auth", "token", "header", "body", "param",
    "schema", "model", "field", "property",
    "curl", "fetch", "http", "rest",
    "collection", "swagger", "openapi", "postman",
)

API_METHOD_RE = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE)\b")
API_PATH_RE = re.compile(r"/[a-z][a-z0-9\-/{}]*", re.IGNORECASE)
API_STATUS_CODE_RE = re.compile(r"\b[1-5]\d{2}\b")


def has_no_api_signals(message: str) -> bool:
    """True when the message mentions nothing API-related."""
    lower = message.lower()
    if any(term in lower for term in API_SIGNAL_TERMS):
        return False
    if API_METHOD_RE.search(message):
        return False
    if API_PATH_RE.search(message):
        return False
    if API_STATUS_CODE_RE.search(message):
        return False
    return True


def _matches_any(message: str, patterns: list[re.Pattern[str]]) -> bool:
    return any(p.search(message) for p in patterns)


def should_send_context(message: str, history: list) -> ContextDecision:
    """Decide how much collection context a message needs.

    Args:
        message: The current user message.
        history: Prior conversation turns.

    Returns:
        "none" for small talk, "history" for requests to repeat or rephrase
        the previous answer, "filter" when the context filter should run.
    """
    trimmed = message.strip()
    word_count = len(trimmed.split())
    no_api_signals = has_no_api_signals(trimmed)

    if word_count <= 2 and no_api_signals:
        return "none"

    # "hey, what does GET /users return?" is still an API question.
    if no_api_signals and (
        _matches_any(trimmed, GREETING_PATTERNS)
        or _matches_any(trimmed, ACKNOWLEDGEMENT_PATTERNS)
        or _matches_any(trimmed, META_QUESTIONS)
    ):
        return "none"

    if _matches_any(trimmed, REPEAT_PATTERNS):
        return "history" if history else "none"

    if word_count <= 6 and no_api_signals:
        return "none"

    return "filter"
