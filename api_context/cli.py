"""Command line tools for inspecting context selection.

Usage:
    api-context analyze "how do I create a user"
    api-context search collection.json "POST /users" --top-k 5
    api-context filter collection.md "refund a payment"
    api-context context collection.json "what does GET /orders return" --budget generous
    api-context eval collection.json questions.json --k 5 --output reports/
"""

import logging
from pathlib import Path

import click
from pydantic import ValidationError
from tabulate import tabulate

from api_context.constants import SETTINGS
from api_context.context.service import SmartContextService
from api_context.evals.datasets import load_eval_dataset
from api_context.evals.metrics import compute_retrieval_metrics
from api_context.evals.reports import generate_markdown_report, write_markdown_report
from api_context.evals.runner import evaluate_ranking, save_results
from api_context.models import load_collection
from api_context.retrieval.bm25_index import build_index
from api_context.retrieval.keyword_filter import filter_collection_markdown
from api_context.retrieval.query_analyzer import analyze as analyze_query
from api_context.retrieval.query_analyzer import format_query_summary
from api_context.retrieval.ranker import SearchOptions, search as rank_endpoints

METHOD_CHOICES = ["GET", "POST", "PUT", "PATCH", "DELETE", "any"]


def _load(path: str):
    try:
        return load_collection(path)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except ValidationError as e:
        raise click.ClickException(f"Invalid collection file {path}: {e}") from e


@click.group()
@click.option("--log-level", default=None, help="Override API_CONTEXT_LOG_LEVEL")
def cli(log_level: str | None) -> None:
    """Inspect how API context is selected for chat messages."""
    logging.basicConfig(
        level=(log_level or SETTINGS.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("query")
def analyze(query: str) -> None:
    """Show the structured analysis of a query."""
    analyzed = analyze_query(query)
    click.echo(format_query_summary(analyzed))
    click.echo(f"normalized: {analyzed.normalized}")


@cli.command()
@click.argument("corpus", type=click.Path(dir_okay=False))
@click.argument("query")
@click.option("--top-k", default=SETTINGS.default_top_k, show_default=True)
@click.option("--min-score", default=SETTINGS.default_min_score, show_default=True)
@click.option(
    "--method",
    type=click.Choice(METHOD_CHOICES, case_sensitive=False),
    default=None,
    help="Method filter (defaults to the query's method hint)",
)
@click.option("--no-entity-boost", is_flag=True, help="Disable the entity term boost")
def search(
    corpus: str,
    query: str,
    top_k: int,
    min_score: float,
    method: str | None,
    no_entity_boost: bool,
) -> None:
    """Rank the endpoints of a collection for a query."""
    collection = _load(corpus)
    index = build_index(collection)
    options = SearchOptions(
        top_k=top_k,
        min_score=min_score,
        method_filter=method,
        boost_entity_terms=not no_entity_boost,
    )
    analyzed = analyze_query(query)
    results = rank_endpoints(index, analyzed, options)

    click.echo(format_query_summary(analyzed))
    if not results:
        click.echo("No matching endpoints.")
        return

    rows = [
        [
            rank,
            r.endpoint.method,
            r.endpoint.path,
            r.endpoint.name,
            f"{r.score:.3f}",
            ", ".join(r.matched_terms),
            ", ".join(r.matched_fields),
        ]
        for rank, r in enumerate(results, 1)
    ]
    headers = ["#", "Method", "Path", "Name", "Score", "Terms", "Fields"]
    click.echo(tabulate(rows, headers=headers, tablefmt="pipe"))


@cli.command("filter")
@click.argument("markdown", type=click.Path(dir_okay=False))
@click.argument("query")
def filter_markdown(markdown: str, query: str) -> None:
    """Keyword-filter a rendered collection markdown file."""
    path = Path(markdown)
    if not path.exists():
        raise click.ClickException(f"Markdown file not found at {path}")
    click.echo(filter_collection_markdown(path.read_text(), query))


@cli.command()
@click.argument("corpus", type=click.Path(dir_okay=False))
@click.argument("query")
@click.option(
    "--budget",
    type=click.Choice(["auto", "conservative", "balanced", "generous"]),
    default=None,
    help="Budget mode (defaults to API_CONTEXT_BUDGET_MODE)",
)
def context(corpus: str, query: str, budget: str | None) -> None:
    """Assemble the context that would be sent with a message."""
    settings = SETTINGS
    if budget is not None:
        settings = SETTINGS.model_copy(update={"budget_mode": budget})

    service = SmartContextService(settings=settings)
    service.set_collection(_load(corpus))
    try:
        result = service.get_context_for_query(query)
    except (RuntimeError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(result.context_markdown)
    stats = result.stats
    click.echo("\n" + "=" * 60)
    click.echo(
        tabulate(
            [
                ["Gate", stats.gate_decision],
                ["Budget", stats.budget_mode],
                ["Endpoints", stats.total_endpoints],
                ["Full detail", stats.sent_full],
                ["Summary", stats.sent_summary],
                ["Excluded", stats.excluded],
                ["Estimated tokens", stats.estimated_input_tokens],
                ["Saving", f"{stats.estimated_cost_saving_percent}%"],
                ["Time", f"{stats.processing_time_ms:.1f} ms"],
            ],
            tablefmt="plain",
        )
    )


@cli.command("eval")
@click.argument("corpus", type=click.Path(dir_okay=False))
@click.argument("dataset", type=click.Path(dir_okay=False))
@click.option("--k", "k", default=5, show_default=True, help="Cutoff for Hit Rate@K")
@click.option("--output", default=None, help="Directory for the JSON results and report")
def evaluate(corpus: str, dataset: str, k: int, output: str | None) -> None:
    """Evaluate ranking quality against a labelled question set."""
    collection = _load(corpus)
    try:
        questions = load_eval_dataset(dataset)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except ValidationError as e:
        raise click.ClickException(f"Invalid dataset file {dataset}: {e}") from e

    click.echo(f"Loaded {len(questions)} evaluation questions")
    results = evaluate_ranking(collection, questions, k=k)
    metrics = compute_retrieval_metrics(results, k=k)

    click.echo("\n" + "=" * 60)
    click.echo("EVALUATION RESULTS")
    click.echo("=" * 60)
    click.echo(f"Hit Rate@{k}: {metrics.hit_rate_at_k:.3f}")
    click.echo(f"MRR: {metrics.mrr:.3f}")

    if output:
        output_dir = Path(output)
        results_path = save_results(collection.title, results, metrics, output_dir)
        report = generate_markdown_report(collection.title, results, metrics)
        report_path = write_markdown_report(report, output_dir)
        click.echo(f"\nResults saved to: {results_path}")
        click.echo(f"Report saved to: {report_path}")


if __name__ == "__main__":
    cli()
