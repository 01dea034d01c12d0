"""Assemble a token-budgeted context from ranked endpoints.

Each ranked endpoint is assigned a tier (full detail, one-line summary, or
excluded) and rendered into markdown until the budget of the selected mode
runs out.
"""

import math
from dataclasses import dataclass, field
from typing import Literal

from api_context.configs import BudgetConfig, get_config
from api_context.context.history import extract_mentioned_endpoints
from api_context.models import ChatMessage, Collection, Endpoint
from api_context.retrieval.query_analyzer import AnalyzedQuery
from api_context.retrieval.ranker import ScoredResult

ContextTier = Literal["full", "summary", "excluded"]

FULL_DETAIL_THRESHOLD = 0.8
SUMMARY_THRESHOLD = 0.3
MAX_FULL_DETAIL = 5
MAX_SUMMARY = 10
MAX_AUTH_PROMOTIONS = 3

REQUEST_BODY_PREVIEW_CHARS = 300
SUMMARY_DESCRIPTION_CHARS = 80


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


@dataclass
class TieredEndpoint:
    """A ranked endpoint with its assigned detail tier."""

    endpoint: Endpoint
    tier: ContextTier
    score: float
    estimated_tokens: int


@dataclass
class EndpointCounts:
    """How many endpoints ended up in each tier."""

    total: int
    full_detail: int = 0
    summary: int = 0
    excluded: int = 0


@dataclass
class BuiltContext:
    """The assembled context and its bookkeeping."""

    markdown: str
    total_estimated_tokens: int
    counts: EndpointCounts
    budget: str
    is_global_context: bool = False
    truncated: bool = False


@dataclass
class HistoryContext:
    """Context rebuilt from endpoints mentioned in the conversation."""

    markdown: str
    matched_endpoints: int
    endpoint_ids: list[str] = field(default_factory=list)


def _requires_auth(endpoint: Endpoint) -> bool:
    return endpoint.requires_auth or bool(endpoint.auth_type)


def assign_tiers(
    results: list[ScoredResult],
    query: AnalyzedQuery,
    config: BudgetConfig,
) -> list[TieredEndpoint]:
    """Assign a detail tier to each ranked result.

    Args:
        results: Ranked results, best first.
        query: The analyzed query.
        config: Budget mode providing per-tier token estimates.

    Returns:
        Tiered endpoints in ranking order (at most 15).
    """
    if not results:
        return []

    def tiered(result: ScoredResult, tier: ContextTier) -> TieredEndpoint:
        tokens = {"full": config.full_detail_tokens, "summary": config.summary_tokens}
        return TieredEndpoint(result.endpoint, tier, result.score, tokens.get(tier, 0))

    if query.is_single_endpoint_query:
        return [tiered(results[0], "full")] + [tiered(r, "excluded") for r in results[1:]]

    capped = results[: MAX_FULL_DETAIL + MAX_SUMMARY]

    if query.intent == "list_endpoints":
        return [tiered(r, "summary") for r in capped]

    max_score = results[0].score
    items: list[TieredEndpoint] = []
    full_count = 0
    summary_count = 0
    for result in capped:
        normalized = result.score / max_score if max_score > 0 else 0.0
        if full_count < MAX_FULL_DETAIL and normalized >= FULL_DETAIL_THRESHOLD:
            items.append(tiered(result, "full"))
            full_count += 1
        elif summary_count < MAX_SUMMARY and normalized >= SUMMARY_THRESHOLD:
            items.append(tiered(result, "summary"))
            summary_count += 1
        else:
            items.append(tiered(result, "excluded"))

    if query.intent == "understand_auth":
        promoted = 0
        for item in items:
            if not _requires_auth(item.endpoint):
                continue
            if item.tier != "full" and promoted < MAX_AUTH_PROMOTIONS:
                item.tier = "full"
                item.estimated_tokens = config.full_detail_tokens
                promoted += 1
            elif item.tier == "excluded":
                item.tier = "summary"
                item.estimated_tokens = config.summary_tokens

    return items


def format_endpoint_full(endpoint: Endpoint) -> str:
    """Render every detail of an endpoint as a markdown section."""
    lines = [
        f"### {endpoint.method} {endpoint.name}",
        f"- **URL:** `{endpoint.url or endpoint.path}`",
        f"- **Description:** {endpoint.description or 'No description'}",
    ]

    if endpoint.parameters:
        lines.append("- **Parameters:**")
        for p in endpoint.parameters:
            required = ", required" if p.required else ""
            description = f" - {p.description}" if p.description else ""
            lines.append(f"  - `{p.name}` ({p.location}, {p.type}{required}){description}")

    enabled_headers = [h for h in endpoint.headers if h.enabled]
    if enabled_headers:
        header_str = ", ".join(f"{h.key}: {h.value}" for h in enabled_headers)
        lines.append(f"- **Headers:** {header_str}")

    if endpoint.request_body:
        content_type = endpoint.request_content_type or "application/json"
        body = endpoint.request_body
        if len(body) > REQUEST_BODY_PREVIEW_CHARS:
            body = body[:REQUEST_BODY_PREVIEW_CHARS] + "..."
        lines.append(f"- **Request Body** ({content_type}):")
        lines.append("```json")
        lines.append(body)
        lines.append("```")

    if endpoint.responses:
        parts = "; ".join(f"{r.status_code}: {r.description}" for r in endpoint.responses)
        lines.append(f"- **Responses:** {parts}")

    if endpoint.requires_auth:
        auth_type = f" ({endpoint.auth_type})" if endpoint.auth_type else ""
        lines.append(f"- **Auth Required:** Yes{auth_type}")
    else:
        lines.append("- **Auth Required:** No")

    return "\n".join(lines)


def format_endpoint_summary(endpoint: Endpoint) -> str:
    """Render an endpoint as one line."""
    line = f"`{endpoint.method} {endpoint.path}` - {endpoint.name}"
    if endpoint.description:
        line += ": " + endpoint.description[:SUMMARY_DESCRIPTION_CHARS]
        if len(endpoint.description) > SUMMARY_DESCRIPTION_CHARS:
            line += "..."
    return line


def format_global_summary(collection: Collection) -> str:
    """Render a compact index of the whole collection, grouped by folder."""
    folders: dict[str, list[Endpoint]] = {}
    for endpoint in collection.endpoints:
        folders.setdefault(endpoint.folder or "Ungrouped", []).append(endpoint)

    lines = [
        f"# {collection.title} API",
        f"Base URL: `{collection.base_url}`",
        f"Total Endpoints: {len(collection.endpoints)} across {len(folders)} groups",
    ]

    if collection.auth_schemes:
        schemes = ", ".join(f"{a.type} ({a.name})" for a in collection.auth_schemes)
        lines.append(f"Authentication: {schemes}")
    else:
        lines.append("Authentication: None")

    lines.append("")
    lines.append("## Endpoint Index")
    for folder, endpoints in folders.items():
        lines.append(f"### {folder} ({len(endpoints)} endpoints)")
        for endpoint in endpoints:
            lines.append(f"{endpoint.method} `{endpoint.path}` - {endpoint.name}")
        lines.append("")

    lines.append("> This is a compact index. Ask about specific endpoints for full details.")
    return "\n".join(lines)


def build_global_context(collection: Collection, budget: str) -> BuiltContext:
    markdown = format_global_summary(collection)
    total = len(collection.endpoints)
    return BuiltContext(
        markdown=markdown,
        total_estimated_tokens=estimate_tokens(markdown),
        counts=EndpointCounts(total=total, summary=total),
        budget=budget,
        is_global_context=True,
    )


def build_context(
    query: AnalyzedQuery,
    results: list[ScoredResult],
    collection: Collection,
    budget_mode: str = "balanced",
) -> BuiltContext:
    """Build the markdown context for a query.

    Global queries, and queries nothing matched, get the compact collection
    index. Otherwise full-detail sections come first (downgraded to a
    summary line when they would overflow the budget), then summaries, then
    a footer counting what was left out.

    Args:
        query: The analyzed query.
        results: Ranked results, best first.
        collection: The loaded collection.
        budget_mode: Name of a registered budget mode.

    Returns:
        The built context.

    Raises:
        ValueError: If budget_mode is not a registered mode.
    """
    config = get_config(budget_mode)

    if query.is_global_query or not results:
        return build_global_context(collection, config.name)

    tiered = assign_tiers(results, query, config)
    total = len(collection.endpoints)
    counts = EndpointCounts(total=total)
    truncated = False

    auth_summary = (
        ", ".join(a.type for a in collection.auth_schemes) if collection.auth_schemes else "None"
    )
    relevant_count = sum(1 for t in tiered if t.tier != "excluded")
    header = "\n".join(
        [
            f"# {collection.title} API",
            f"Base URL: `{collection.base_url}`",
            f"Auth: {auth_summary}",
            "",
            f"> Context: {relevant_count} of {total} endpoints shown (filtered by relevance)",
            "",
        ]
    )
    sections = [header]
    used_tokens = estimate_tokens(header)

    for item in (t for t in tiered if t.tier == "full"):
        if used_tokens + item.estimated_tokens > config.token_budget:
            truncated = True
            sections.append(format_endpoint_summary(item.endpoint))
            used_tokens += config.summary_tokens
            counts.summary += 1
            continue
        sections.append(format_endpoint_full(item.endpoint))
        used_tokens += item.estimated_tokens
        counts.full_detail += 1

    summary_items = [t for t in tiered if t.tier == "summary"]
    if summary_items and used_tokens < config.token_budget:
        summary_header = "\n## Related Endpoints (Summary)\n"
        sections.append(summary_header)
        used_tokens += estimate_tokens(summary_header)
        for item in summary_items:
            if used_tokens + config.summary_tokens > config.token_budget:
                truncated = True
                break
            sections.append(format_endpoint_summary(item.endpoint))
            used_tokens += config.summary_tokens
            counts.summary += 1

    counts.excluded = total - counts.full_detail - counts.summary
    if counts.excluded > 0:
        sections.append(
            f"\n> {counts.excluded} additional endpoints not shown. "
            "Ask specifically about them if needed."
        )

    return BuiltContext(
        markdown="\n".join(sections),
        total_estimated_tokens=used_tokens,
        counts=counts,
        budget=config.name,
        truncated=truncated,
    )


def build_history_only_context(
    history: list[ChatMessage], collection: Collection
) -> HistoryContext:
    """Summarize only the endpoints the conversation already mentioned.

    Used when the user asks to repeat or rephrase: the previous answer is in
    the history, so only a reminder of the endpoints involved is needed.
    """
    mentioned = set(extract_mentioned_endpoints(history, collection))
    endpoints = [e for e in collection.endpoints if e.id in mentioned]
    if not endpoints:
        return HistoryContext(markdown="", matched_endpoints=0)

    lines = [
        f"# {collection.title} API",
        "> Context: endpoints from the conversation so far",
        "",
        *(format_endpoint_summary(e) for e in endpoints),
    ]
    return HistoryContext(
        markdown="\n".join(lines),
        matched_endpoints=len(endpoints),
        endpoint_ids=[e.id for e in endpoints],
    )


def render_collection_markdown(collection: Collection) -> str:
    """Render the whole collection with full detail for every endpoint.

    Headings use the ``### METHOD Name`` form the keyword filter splits on.
    """
    lines = [f"# {collection.title} API", f"Base URL: `{collection.base_url}`"]
    if collection.description:
        lines.append(collection.description)
    sections = ["\n".join(lines)]
    sections.extend(format_endpoint_full(endpoint) for endpoint in collection.endpoints)
    return "\n\n".join(sections)
