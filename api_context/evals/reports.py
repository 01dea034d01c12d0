"""Report generation for ranking evaluation results."""

from datetime import datetime
from pathlib import Path

from tabulate import tabulate

from api_context.evals.metrics import EvalResult, RetrievalMetrics


def category_breakdown(results: list[EvalResult]) -> dict[str, dict]:
    """Group results by category with per-category hit rate."""
    breakdown = {}
    for cat in sorted({r.category for r in results}):
        cat_results = [r for r in results if r.category == cat]
        breakdown[cat] = {
            "count": len(cat_results),
            "retrieval_hit_rate": sum(1 for r in cat_results if r.retrieval_hit)
            / len(cat_results),
        }
    return breakdown


def generate_markdown_report(
    collection_title: str,
    results: list[EvalResult],
    metrics: RetrievalMetrics,
) -> str:
    """Generate a markdown report for one evaluation run.

    Args:
        collection_title: Title of the evaluated collection.
        results: Per-question results.
        metrics: Aggregate retrieval metrics.

    Returns:
        The report as markdown text.
    """
    report_lines = [
        f"# {collection_title} Ranking Evaluation Report",
        "",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Summary",
        "",
        f"Questions evaluated: {len(results)}",
        "",
    ]

    report_lines.append(
        tabulate(
            [[f"{metrics.hit_rate_at_k:.3f}", f"{metrics.mrr:.3f}"]],
            headers=[f"Hit Rate@{metrics.k}", "MRR"],
            tablefmt="pipe",
        )
    )
    report_lines.append("")

    breakdown = category_breakdown(results)
    if breakdown:
        report_lines.extend(["## Results by Category", ""])
        cat_rows = [
            [cat, str(data["count"]), f"{data['retrieval_hit_rate']:.3f}"]
            for cat, data in breakdown.items()
        ]
        report_lines.append(
            tabulate(cat_rows, headers=["Category", "Count", "Hit Rate"], tablefmt="pipe")
        )
        report_lines.append("")

    misses = [r for r in results if not r.retrieval_hit and r.category != "out_of_scope"]
    if misses:
        report_lines.extend(["## Misses", ""])
        miss_rows = [
            [r.question_id, r.query, ", ".join(r.retrieved_endpoint_ids[:3]) or "-"]
            for r in misses
        ]
        report_lines.append(
            tabulate(miss_rows, headers=["Question", "Query", "Top 3"], tablefmt="pipe")
        )
        report_lines.append("")

    return "\n".join(report_lines)


def write_markdown_report(report: str, output_dir: Path) -> Path:
    """Write a report to ``output_dir/evaluation_report.md``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / "evaluation_report.md"
    with open(report_path, "w") as f:
        f.write(report)
    return report_path
