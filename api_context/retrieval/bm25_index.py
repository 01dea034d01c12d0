"""BM25 index over structured endpoint records.

This module builds a field-weighted BM25 index using the rank_bm25 library.
Each endpoint becomes one document whose term frequencies are weighted by the
field they came from (a hit in the endpoint name counts more than a hit in a
response description).
"""

import hashlib
import math
import re
import time
from dataclasses import dataclass, field

from rank_bm25 import BM25Okapi

from api_context.models import Collection, Endpoint

BM25_K1 = 1.5
BM25_B = 0.75

FIELD_BOOST: dict[str, float] = {
    "name": 4.0,
    "path": 3.0,
    "method": 2.0,
    "folder": 2.0,
    "description": 1.5,
    "parameter_name": 2.0,
    "parameter_description": 1.0,
    "request_body": 1.5,
    "response": 1.0,
}

_SPLIT_RE = re.compile(r"[\s/\-_.{}\[\]()]+")
_DIGITS_RE = re.compile(r"^\d+$")
_STATUS_CODE_RE = re.compile(r"^[1-5]\d{2}$")
_PLACEHOLDER_RE = re.compile(r"^\{.*\}$")


def stem(token: str) -> str:
    """Reduce a token with a fixed set of suffix rules.

    This is a heuristic, not a linguistic stemmer. Index build and query time
    must go through this exact function or matches silently disappear.
    """
    if len(token) < 4:
        return token
    # "tion" stems to "" and "ation" to "a"; tokenize filters length before stemming.
    if token.endswith("tion"):
        return token[:-4]
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str | None) -> list[str]:
    """Lowercase, split on whitespace and path separators, filter and stem.

    Digit-only tokens are dropped unless they look like an HTTP status code.

    Args:
        text: The text to tokenize.

    Returns:
        List of stemmed tokens.
    """
    if not text:
        return []
    tokens = []
    for token in _SPLIT_RE.split(text.lower()):
        if len(token) < 2:
            continue
        if _DIGITS_RE.match(token) and not _STATUS_CODE_RE.match(token):
            continue
        tokens.append(stem(token))
    return tokens


def path_segments(path: str) -> str:
    """Join the non-placeholder segments of a path ("/users/{id}/orders" -> "users orders")."""
    return " ".join(s for s in path.split("/") if s and not _PLACEHOLDER_RE.match(s))


def endpoint_fields(endpoint: Endpoint) -> list[tuple[str, str | None]]:
    """List (field name, text) pairs in indexing order."""
    fields: list[tuple[str, str | None]] = [
        ("name", endpoint.name),
        ("path", endpoint.path),
        ("method", endpoint.method),
        ("folder", endpoint.folder),
        ("description", endpoint.description),
    ]
    for param in endpoint.parameters:
        fields.append(("parameter_name", param.name))
        fields.append(("parameter_description", param.description))
    fields.append(("request_body", endpoint.request_body))
    for response in endpoint.responses:
        fields.append(("response", response.description))
        fields.append(("response", response.status_code))
    fields.append(("path", path_segments(endpoint.path)))
    return fields


@dataclass
class IndexedDocument:
    """One endpoint as seen by the index.

    Attributes:
        id: The endpoint identifier.
        endpoint: The endpoint record (shared, never copied).
        terms: Stemmed term -> weighted frequency.
        length: Sum of all weighted frequencies.
        field_terms: Field name -> stemmed terms found in that field.
    """

    id: str
    endpoint: Endpoint
    terms: dict[str, float]
    length: float
    field_terms: dict[str, frozenset[str]]


def index_endpoint(endpoint: Endpoint) -> IndexedDocument:
    """Tokenize an endpoint into weighted term frequencies."""
    terms: dict[str, float] = {}
    by_field: dict[str, set[str]] = {}

    for field_name, text in endpoint_fields(endpoint):
        boost = FIELD_BOOST[field_name]
        for token in tokenize(text):
            terms[token] = terms.get(token, 0.0) + boost
            by_field.setdefault(field_name, set()).add(token)

    return IndexedDocument(
        id=endpoint.id,
        endpoint=endpoint,
        terms=terms,
        length=sum(terms.values()),
        field_terms={name: frozenset(tokens) for name, tokens in by_field.items()},
    )


class WeightedBM25(BM25Okapi):
    """BM25Okapi over pre-weighted term frequencies.

    rank_bm25 expects token lists and counts occurrences itself. Here each
    document is already a term -> weighted-frequency mapping, and the IDF
    uses the smoothed ``ln((N - df + 0.5) / (df + 0.5) + 1)`` form, which
    stays positive for terms present in most documents.
    """

    def __init__(self, corpus: list[dict[str, float]]) -> None:
        super().__init__(corpus, k1=BM25_K1, b=BM25_B)

    def _initialize(self, corpus: list[dict[str, float]]) -> dict[str, int]:
        nd: dict[str, int] = {}
        total_length = 0.0
        for frequencies in corpus:
            length = sum(frequencies.values())
            self.doc_len.append(length)
            total_length += length
            self.doc_freqs.append(frequencies)
            for word in frequencies:
                nd[word] = nd.get(word, 0) + 1
            self.corpus_size += 1

        self.avgdl = total_length / self.corpus_size if self.corpus_size else 1.0
        return nd

    def _calc_idf(self, nd: dict[str, int]) -> None:
        for word, df in nd.items():
            self.idf[word] = math.log((self.corpus_size - df + 0.5) / (df + 0.5) + 1)

    def term_scores(self, term: str) -> list[float]:
        """BM25 score of a single term for every document, in corpus order."""
        if self.corpus_size == 0:
            return []
        return [float(score) for score in self.get_scores([term])]


@dataclass
class RelevanceIndex:
    """A built BM25 index for one corpus snapshot.

    Valid only for the exact collection it was built from. Never mutated
    after construction: a changed corpus gets a new index.

    Attributes:
        documents: Indexed endpoints in corpus order.
        bm25: The scoring model.
        fingerprint: Cache key derived from the collection.
        built_at: Build timestamp, used for cache eviction.
    """

    documents: list[IndexedDocument]
    bm25: WeightedBM25
    fingerprint: str
    built_at: float = field(default_factory=time.monotonic)

    @property
    def total_docs(self) -> int:
        return self.bm25.corpus_size

    @property
    def avg_doc_length(self) -> float:
        return self.bm25.avgdl

    @property
    def idf(self) -> dict[str, float]:
        return self.bm25.idf

    def term_scores(self, term: str) -> list[float]:
        return self.bm25.term_scores(term)

    def __len__(self) -> int:
        """Return the number of documents in the index."""
        return len(self.documents)


def collection_fingerprint(collection: Collection) -> str:
    """Stable cache key for a collection.

    Combines title, endpoint count and the first endpoint's id. Two
    collections agreeing on all three share a fingerprint even if later
    endpoints differ; callers that edit a collection in place must
    invalidate the cache entry themselves.
    """
    first_id = collection.endpoints[0].id if collection.endpoints else ""
    key = f"{collection.title}|{len(collection.endpoints)}|{first_id}"
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]


def build_index(collection: Collection, built_at: float | None = None) -> RelevanceIndex:
    """Build a BM25 index for a collection.

    Args:
        collection: The parsed collection. Never mutated.
        built_at: Build timestamp; defaults to ``time.monotonic()``.

    Returns:
        A new RelevanceIndex. An empty collection gives an index with no
        documents, average length 1 and an empty IDF table.
    """
    documents = [index_endpoint(endpoint) for endpoint in collection.endpoints]
    bm25 = WeightedBM25([doc.terms for doc in documents])

    return RelevanceIndex(
        documents=documents,
        bm25=bm25,
        fingerprint=collection_fingerprint(collection),
        built_at=time.monotonic() if built_at is None else built_at,
    )
