"""Run the analyzer and ranker over an evaluation dataset."""

import json
import logging
from datetime import datetime
from pathlib import Path

from api_context.evals.datasets import EvalQuestion
from api_context.evals.metrics import (
    EvalResult,
    RetrievalMetrics,
    first_relevant_rank,
)
from api_context.models import Collection
from api_context.retrieval.index_cache import IndexCache
from api_context.retrieval.query_analyzer import analyze
from api_context.retrieval.ranker import search_with_fallback

logger = logging.getLogger(__name__)


def evaluate_ranking(
    collection: Collection,
    questions: list[EvalQuestion],
    k: int = 5,
    cache: IndexCache | None = None,
) -> list[EvalResult]:
    """Rank endpoints for every question and record where the relevant ones land.

    Args:
        collection: The corpus to rank.
        questions: Evaluation questions with their relevant endpoint ids.
        k: A question counts as a hit when a relevant endpoint is in the top k.
        cache: Index cache to reuse; a private one is used if omitted.

    Returns:
        One EvalResult per question, in dataset order.
    """
    cache = cache if cache is not None else IndexCache()
    index = cache.get_or_build(collection)

    results = []
    for question in questions:
        analyzed = analyze(question.query)
        ranked = search_with_fallback(index, analyzed, top_k=max(k, 15))
        retrieved_ids = [r.endpoint.id for r in ranked]
        rank = first_relevant_rank(retrieved_ids, question.relevant_endpoint_ids)
        results.append(
            EvalResult(
                question_id=question.id,
                query=question.query,
                category=question.category,
                retrieved_endpoint_ids=retrieved_ids,
                relevant_endpoint_ids=question.relevant_endpoint_ids,
                retrieval_hit=rank is not None and rank <= k,
                first_relevant_rank=rank,
            )
        )
        logger.debug("%s: first relevant rank %s", question.id, rank)

    return results


def save_results(
    collection_title: str,
    results: list[EvalResult],
    retrieval_metrics: RetrievalMetrics,
    output_dir: Path,
) -> Path:
    """Save evaluation results to a JSON file.

    Returns:
        Path to the saved results file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    output = {
        "collection": collection_title,
        "timestamp": datetime.now().isoformat(),
        "summary": {
            "total_questions": len(results),
            "retrieval": {
                "hit_rate_at_k": retrieval_metrics.hit_rate_at_k,
                "mrr": retrieval_metrics.mrr,
                "k": retrieval_metrics.k,
            },
        },
        "detailed_results": [
            {
                "question_id": r.question_id,
                "query": r.query,
                "category": r.category,
                "relevant_endpoint_ids": r.relevant_endpoint_ids,
                "retrieved_endpoint_ids": r.retrieved_endpoint_ids,
                "retrieval_hit": r.retrieval_hit,
                "first_relevant_rank": r.first_relevant_rank,
            }
            for r in results
        ],
    }

    output_path = output_dir / "ranking_results.json"
    with open(output_path, "w") as f:
        json.dump(output, f, indent=2)

    return output_path
