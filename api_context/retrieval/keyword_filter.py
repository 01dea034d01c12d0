"""Keyword filtering over rendered collection markdown.

Used when only the flat markdown rendering of a collection is available (no
structured endpoint records). Each endpoint is a block starting with a
``### METHOD Name`` (or ``### [METHOD] Name``) heading; blocks are scored by
plain substring matches of the query's keywords.
"""

import re

MAX_ENDPOINTS_IN_CONTEXT = 30

# Independent of the query analyzer's stopword list.
STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "can", "me", "my", "i", "you", "your", "we",
        "how", "what", "which", "when", "where", "who", "this", "that", "it",
        "show", "give", "tell", "list", "find", "get", "run", "use", "make",
        "please", "help", "need", "want", "like", "example", "all", "any",
    }
)

TITLE_MATCH_SCORE = 3
BODY_MATCH_SCORE = 1

ENDPOINT_HEADING_RE = re.compile(r"^### (?:\[[A-Z]+]|[A-Z]+) ", re.MULTILINE)
_BLOCK_SPLIT_RE = re.compile(r"(?=^### (?:\[[A-Z]+]|[A-Z]+) )", re.MULTILINE)
_NON_KEYWORD_CHARS_RE = re.compile(r"[^a-z0-9\s_-]")


def extract_keywords(query: str) -> list[str]:
    """Split a query into lowercase keywords longer than two characters."""
    cleaned = _NON_KEYWORD_CHARS_RE.sub(" ", query.lower())
    return [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]


def score_block(block: str, keywords: list[str]) -> int:
    """Score a block: 3 per keyword in its heading, else 1 if anywhere in it."""
    lower = block.lower()
    title_line = lower.split("\n", 1)[0]
    score = 0
    for keyword in keywords:
        if keyword in title_line:
            score += TITLE_MATCH_SCORE
        elif keyword in lower:
            score += BODY_MATCH_SCORE
    return score


def split_blocks(markdown: str) -> tuple[str, list[str]]:
    """Split rendered markdown into its header and endpoint blocks.

    Returns:
        (header, blocks). When no endpoint heading is found, the header is
        empty and the whole text is a single block.
    """
    match = ENDPOINT_HEADING_RE.search(markdown)
    if match is None:
        return "", [markdown] if markdown.strip() else []

    header = markdown[: match.start()].strip()
    blocks = [b for b in _BLOCK_SPLIT_RE.split(markdown[match.start():]) if b.strip()]
    return header, blocks


def sample_evenly(blocks: list[str], limit: int = MAX_ENDPOINTS_IN_CONTEXT) -> list[str]:
    """Take every n-th block across the whole sequence, at most ``limit``."""
    step = max(1, len(blocks) // limit)
    return blocks[::step][:limit]


def filter_collection_markdown(markdown: str, user_query: str) -> str:
    """Return the part of the collection markdown relevant to a query.

    Small collections (30 endpoint blocks or fewer) and text without any
    recognizable endpoint heading are returned unchanged. Otherwise the best
    scoring blocks are kept; when no block matches any keyword, an evenly
    spaced sample of the whole collection is kept instead so the model still
    gets a representative overview.

    Args:
        markdown: The full rendered collection.
        user_query: The user's message.

    Returns:
        Text ready to embed in a prompt.
    """
    header, blocks = split_blocks(markdown)
    if len(blocks) <= MAX_ENDPOINTS_IN_CONTEXT:
        return markdown

    keywords = extract_keywords(user_query)
    scored = sorted(
        ((block, score_block(block, keywords)) for block in blocks),
        key=lambda item: item[1],
        reverse=True,
    )
    top_blocks = scored[:MAX_ENDPOINTS_IN_CONTEXT]

    if any(score > 0 for _, score in top_blocks):
        selected = [block for block, score in top_blocks if score > 0]
    else:
        selected = sample_evenly(blocks)

    note = (
        f"> **Note:** Showing {len(selected)} of {len(blocks)} endpoints "
        "most relevant to your query. Ask about specific endpoints to see "
        "their full details."
    )

    parts = [header, note, *(block.strip() for block in selected)]
    return "\n\n".join(part for part in parts if part)
