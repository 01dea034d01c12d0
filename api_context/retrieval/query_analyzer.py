"""Lexical query analysis.

Turns a raw chat message into structured signals (intent, HTTP method hint,
keywords, resource entities, status code, path) that drive endpoint ranking.
Everything here is pure string processing: no I/O, no model calls.
"""

import re
from dataclasses import dataclass
from typing import Literal

QueryIntent = Literal[
    "find_endpoint",
    "understand_auth",
    "understand_schema",
    "run_request",
    "debug_error",
    "generate_code",
    "compare_endpoints",
    "list_endpoints",
    "general",
]

HttpMethodHint = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "any"]

GLOBAL_QUERY_SIGNALS = (
    "all endpoints",
    "all routes",
    "all apis",
    "list all",
    "show all",
    "summarize",
    "overview",
    "what can",
    "what does this api",
    "how many endpoints",
    "full list",
    "everything",
    "complete list",
    "what endpoints",
    "which endpoints",
)

METHOD_SIGNALS: dict[str, HttpMethodHint] = {
    "create": "POST",
    "add": "POST",
    "post": "POST",
    "submit": "POST",
    "new": "POST",
    "insert": "POST",
    "register": "POST",
    "upload": "POST",
    "get": "GET",
    "fetch": "GET",
    "retrieve": "GET",
    "list": "GET",
    "read": "GET",
    "show": "GET",
    "find": "GET",
    "search": "GET",
    "load": "GET",
    "download": "GET",
    "update": "PUT",
    "edit": "PUT",
    "modify": "PUT",
    "change": "PUT",
    "replace": "PUT",
    "set": "PUT",
    "patch": "PATCH",
    "partial": "PATCH",
    "delete": "DELETE",
    "remove": "DELETE",
    "destroy": "DELETE",
    "cancel": "DELETE",
    "revoke": "DELETE",
}

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "is", "it", "in", "on", "at", "to", "for",
        "of", "and", "or", "but", "how", "what", "where", "when", "why",
        "do", "does", "can", "could", "would", "should", "will", "i",
        "me", "my", "this", "that", "with", "from", "by", "be", "am",
        "are", "was", "were", "been", "being", "have", "has", "had",
        "endpoint", "api", "request", "response", "call", "use", "using",
    }
)

KNOWN_RESOURCE_WORDS = frozenset(
    {
        "user", "order", "product", "item", "account",
        "payment", "token", "session", "message", "file",
        "image", "report", "invoice", "subscription",
        "permission", "role", "team", "org", "workspace",
    }
)

AUTH_PHRASES = (
    "auth", "login", "token", "oauth", "bearer",
    "api key", "authenticate", "authorization",
)
CODE_PHRASES = (
    "code", "snippet", "example", "function", "implement", "write", "generate",
)
SCHEMA_PHRASES = (
    "schema", "model", "object", "body", "format", "structure", "fields", "properties",
)
COMPARE_PHRASES = ("difference", "vs", "versus", "compare")
RUN_PHRASES = ("run", "execute", "call", "try")

SINGLE_ENDPOINT_INTENTS = frozenset({"find_endpoint", "run_request", "generate_code"})

MAX_KEYWORDS = 10

_NON_QUERY_CHARS_RE = re.compile(r"[^\w\s/\-.]", re.ASCII)
_WHITESPACE_RE = re.compile(r"\s+")
_LITERAL_METHOD_RE = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE)\s*/", re.IGNORECASE)
_STATUS_CODE_RE = re.compile(r"\b([1-5]\d{2})\b")
_ENDPOINT_HINT_RE = re.compile(r"/[a-z][a-z0-9\-/{}]*", re.IGNORECASE)
_PLACEHOLDER_RE = re.compile(r"^\{.*\}$")
_DIGITS_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class AnalyzedQuery:
    """Structured signals extracted from one user message.

    Attributes:
        original: The message exactly as received.
        normalized: Lowercased text with punctuation (except path characters)
            replaced by spaces and whitespace collapsed.
        intent: Coarse classification of what the user wants.
        method_hint: HTTP method the message points at, or "any".
        keywords: Up to 10 distinct content words, longest first.
        entity_terms: Known resource words plus literal path segments.
        status_code_hint: A 3-digit HTTP status code mentioned in the text.
        endpoint_hint: A literal "/path" mentioned in the text.
        is_global_query: The user asks about the API as a whole.
        is_single_endpoint_query: The user is after exactly one endpoint.
    """

    original: str
    normalized: str
    intent: QueryIntent
    method_hint: HttpMethodHint
    keywords: tuple[str, ...]
    entity_terms: tuple[str, ...]
    status_code_hint: int | None
    endpoint_hint: str | None
    is_global_query: bool
    is_single_endpoint_query: bool


def normalize(text: str) -> str:
    """Lowercase, strip punctuation except path characters, collapse spaces."""
    cleaned = _NON_QUERY_CHARS_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def detect_global_query(normalized: str) -> bool:
    return any(signal in normalized for signal in GLOBAL_QUERY_SIGNALS)


def detect_method_hint(normalized: str, original: str) -> HttpMethodHint:
    """Detect the HTTP method the user has in mind.

    A literal "METHOD /path" in the original text always wins over verbs
    found elsewhere in the message.
    """
    literal = _LITERAL_METHOD_RE.search(original)
    if literal:
        return literal.group(1).upper()

    for word in normalized.split():
        if word in METHOD_SIGNALS:
            return METHOD_SIGNALS[word]

    return "any"


def detect_status_code(normalized: str) -> int | None:
    match = _STATUS_CODE_RE.search(normalized)
    return int(match.group(1)) if match else None


def detect_endpoint_hint(normalized: str) -> str | None:
    match = _ENDPOINT_HINT_RE.search(normalized)
    return match.group(0) if match else None


def extract_keywords(normalized: str) -> list[str]:
    """Extract up to 10 distinct content words, longest first.

    Length is a cheap proxy for specificity: "subscription" says more about
    the target endpoint than "get".
    """
    seen: set[str] = set()
    result: list[str] = []

    for word in normalized.split():
        if len(word) < 2:
            continue
        if word in STOP_WORDS:
            continue
        if _DIGITS_RE.match(word):
            continue
        if word in seen:
            continue
        seen.add(word)
        result.append(word)

    result.sort(key=len, reverse=True)
    return result[:MAX_KEYWORDS]


def extract_entity_terms(keywords: list[str], endpoint_hint: str | None) -> list[str]:
    """Collect resource words and literal path segments.

    Args:
        keywords: Keywords extracted from the query.
        endpoint_hint: Literal path found in the query, if any.

    Returns:
        Ordered, de-duplicated entity terms. Plural keywords are kept in the
        form the user typed them.
    """
    entities: dict[str, None] = {}

    for word in keywords:
        if word in KNOWN_RESOURCE_WORDS:
            entities[word] = None
        elif word.endswith("s") and word[:-1] in KNOWN_RESOURCE_WORDS:
            entities[word] = None

    if endpoint_hint:
        for segment in endpoint_hint.split("/"):
            if segment and not _PLACEHOLDER_RE.match(segment):
                entities[segment] = None

    return list(entities)


def detect_intent(
    normalized: str,
    is_global_query: bool,
    method_hint: HttpMethodHint,
    entity_terms: list[str],
    status_code_hint: int | None,
) -> QueryIntent:
    """Classify the query. Rules are checked in priority order."""

    def has(phrases: tuple[str, ...]) -> bool:
        return any(phrase in normalized for phrase in phrases)

    if has(AUTH_PHRASES):
        return "understand_auth"
    if status_code_hint is not None:
        return "debug_error"
    if has(CODE_PHRASES):
        return "generate_code"
    if is_global_query:
        return "list_endpoints"
    if method_hint != "any" and entity_terms:
        return "find_endpoint"
    if has(SCHEMA_PHRASES):
        return "understand_schema"
    if has(COMPARE_PHRASES):
        return "compare_endpoints"
    if has(RUN_PHRASES):
        return "run_request"
    return "general"


def analyze(text: str) -> AnalyzedQuery:
    """Analyze a user message.

    Never fails: an empty or meaningless message yields intent "general"
    with no keywords and no entities.

    Args:
        text: The raw user message.

    Returns:
        The structured analysis.
    """
    normalized = normalize(text)
    is_global_query = detect_global_query(normalized)
    method_hint = detect_method_hint(normalized, text)
    status_code_hint = detect_status_code(normalized)
    endpoint_hint = detect_endpoint_hint(normalized)
    keywords = extract_keywords(normalized)
    entity_terms = extract_entity_terms(keywords, endpoint_hint)
    intent = detect_intent(
        normalized, is_global_query, method_hint, entity_terms, status_code_hint
    )

    return AnalyzedQuery(
        original=text,
        normalized=normalized,
        intent=intent,
        method_hint=method_hint,
        keywords=tuple(keywords),
        entity_terms=tuple(entity_terms),
        status_code_hint=status_code_hint,
        endpoint_hint=endpoint_hint,
        is_global_query=is_global_query,
        is_single_endpoint_query=(
            intent in SINGLE_ENDPOINT_INTENTS and endpoint_hint is not None
        ),
    )


def format_query_summary(query: AnalyzedQuery) -> str:
    """Render an analysis on one line for debug logs."""
    parts = [
        f"intent={query.intent}",
        f"method={query.method_hint}",
        f"entities=[{','.join(query.entity_terms)}]",
        f"keywords=[{','.join(query.keywords)}]",
    ]
    if query.status_code_hint is not None:
        parts.append(f"status={query.status_code_hint}")
    if query.endpoint_hint is not None:
        parts.append(f"path={query.endpoint_hint}")
    if query.is_global_query:
        parts.append("global=true")
    if query.is_single_endpoint_query:
        parts.append("single=true")
    return " ".join(parts)


# Follow-up detection

FOLLOW_UP_OPENERS = ("and ", "also ", "what about ", "how about ", "same ", "then ", "now ")
FOLLOW_UP_REFERENCES = (
    "it", "that", "this one", "that one", "the same", "this endpoint", "that endpoint", "its",
)
MAX_FOLLOW_UP_WORDS = 12


def is_follow_up_query(message: str, history: list) -> bool:
    """Check whether a message continues the previous exchange.

    A follow-up is a short message that either opens with a continuation
    word ("and", "what about", ...) or points back at something already
    discussed ("it", "that endpoint", ...) without naming a path itself.

    Args:
        message: The current user message.
        history: Prior conversation turns (anything with ``role``/``content``).

    Returns:
        True if the message should be resolved against the conversation.
    """
    if not history:
        return False

    normalized = normalize(message)
    words = normalized.split()
    if not words or len(words) > MAX_FOLLOW_UP_WORDS:
        return False

    if any(normalized.startswith(opener) for opener in FOLLOW_UP_OPENERS):
        return True

    if detect_endpoint_hint(normalized) is not None:
        return False

    padded = f" {normalized} "
    return any(f" {ref} " in padded for ref in FOLLOW_UP_REFERENCES)


# Searchable fragment extraction

MAX_SEARCHABLE_CHARS = 400
_SIGNAL_LINE_RE = re.compile(
    r"\b(GET|POST|PUT|PATCH|DELETE)\s+/|/[a-z][a-z0-9\-/{}]*|\b[1-5]\d{2}\b",
    re.IGNORECASE,
)


def extract_searchable_fragment(message: str, max_chars: int = MAX_SEARCHABLE_CHARS) -> str:
    """Reduce a very long message to the part worth searching on.

    Long messages are usually a question followed by pasted code or logs.
    The question line and any line mentioning a method, a path or a status
    code are kept; the rest is dropped.

    Args:
        message: The raw user message.
        max_chars: Messages at or below this length are returned unchanged.

    Returns:
        The searchable fragment, at most ``max_chars`` characters long.
    """
    if len(message) <= max_chars:
        return message

    lines = [line.strip() for line in message.splitlines() if line.strip()]
    if not lines:
        return message[:max_chars]

    kept = [lines[0]]
    for line in lines[1:]:
        if _SIGNAL_LINE_RE.search(line):
            kept.append(line)

    return " ".join(kept)[:max_chars]
