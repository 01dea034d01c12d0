"""Evaluation metrics for endpoint ranking."""

from dataclasses import dataclass


@dataclass
class RetrievalMetrics:
    """Container for retrieval evaluation metrics."""

    hit_rate_at_k: float
    mrr: float
    k: int


@dataclass
class EvalResult:
    """Result for a single evaluation question."""

    question_id: str
    query: str
    category: str
    retrieved_endpoint_ids: list[str]
    relevant_endpoint_ids: list[str]
    retrieval_hit: bool
    first_relevant_rank: int | None  # None if nothing relevant was retrieved


def first_relevant_rank(retrieved_ids: list[str], relevant_ids: list[str]) -> int | None:
    """1-based rank of the first relevant id, or None."""
    relevant = set(relevant_ids)
    for rank, endpoint_id in enumerate(retrieved_ids, 1):
        if endpoint_id in relevant:
            return rank
    return None


def hit_rate_at_k(
    retrieved_ids_list: list[list[str]],
    relevant_ids_list: list[list[str]],
    k: int = 5,
) -> float:
    """Calculate Hit Rate@K.

    Hit Rate@K measures the percentage of queries where at least one
    relevant endpoint appears in the top-K ranked results.

    Args:
        retrieved_ids_list: Ranked endpoint ids per query.
        relevant_ids_list: Relevant endpoint ids per query.
        k: Number of top results to consider.

    Returns:
        Hit rate as a float between 0 and 1.
    """
    if not retrieved_ids_list:
        return 0.0

    hits = 0
    for retrieved_ids, relevant_ids in zip(
        retrieved_ids_list, relevant_ids_list, strict=False
    ):
        if set(retrieved_ids[:k]) & set(relevant_ids):
            hits += 1

    return hits / len(retrieved_ids_list)


def mrr(
    retrieved_ids_list: list[list[str]],
    relevant_ids_list: list[list[str]],
) -> float:
    """Calculate Mean Reciprocal Rank (MRR).

    MRR measures the average of reciprocal ranks of the first relevant
    result across all queries.

    Args:
        retrieved_ids_list: Ranked endpoint ids per query.
        relevant_ids_list: Relevant endpoint ids per query.

    Returns:
        MRR as a float between 0 and 1.
    """
    if not retrieved_ids_list:
        return 0.0

    reciprocal_ranks = []
    for retrieved_ids, relevant_ids in zip(
        retrieved_ids_list, relevant_ids_list, strict=False
    ):
        rank = first_relevant_rank(retrieved_ids, relevant_ids)
        reciprocal_ranks.append(1.0 / rank if rank else 0.0)

    return sum(reciprocal_ranks) / len(reciprocal_ranks)


def compute_retrieval_metrics(
    eval_results: list[EvalResult], k: int = 5
) -> RetrievalMetrics:
    """Compute aggregate retrieval metrics from evaluation results.

    Args:
        eval_results: List of evaluation results.
        k: Number of top results to consider.

    Returns:
        RetrievalMetrics with aggregated scores.
    """
    # Out-of-scope questions have no relevant endpoints to find
    in_scope_results = [r for r in eval_results if r.category != "out_of_scope"]

    if not in_scope_results:
        return RetrievalMetrics(hit_rate_at_k=0.0, mrr=0.0, k=k)

    hits = sum(1 for r in in_scope_results if r.retrieval_hit)
    hit_rate = hits / len(in_scope_results)

    reciprocal_ranks = []
    for r in in_scope_results:
        if r.first_relevant_rank is not None and r.first_relevant_rank <= k:
            reciprocal_ranks.append(1.0 / r.first_relevant_rank)
        else:
            reciprocal_ranks.append(0.0)
    mrr_value = sum(reciprocal_ranks) / len(reciprocal_ranks)

    return RetrievalMetrics(
        hit_rate_at_k=hit_rate,
        mrr=mrr_value,
        k=k,
    )
