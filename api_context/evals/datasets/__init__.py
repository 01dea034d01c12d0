"""Evaluation datasets module."""

import json
from pathlib import Path

from pydantic import BaseModel, Field


class EvalQuestion(BaseModel):
    """Schema for an evaluation question."""

    id: str = Field(description="Unique identifier for this question")
    query: str = Field(description="The user message to rank endpoints for")
    relevant_endpoint_ids: list[str] = Field(
        default_factory=list,
        description="Ids of the endpoints a correct ranking puts first. "
        "Empty for out-of-scope questions.",
    )
    category: str = Field(
        default="endpoint",
        description="Category of the question, e.g. 'endpoint', 'auth', "
        "'schema', 'debug' or 'out_of_scope'",
    )


class EvalDataset(BaseModel):
    """Schema for the full evaluation dataset."""

    version: str = Field(default="1.0", description="Dataset version")
    description: str = Field(default="", description="Dataset description")
    questions: list[EvalQuestion] = Field(description="List of evaluation questions")


def load_eval_dataset(path: Path | str) -> list[EvalQuestion]:
    """Load evaluation questions from a JSON file.

    The file holds either a dataset object with a ``questions`` list or a
    bare list of questions.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    dataset_path = Path(path)
    if not dataset_path.exists():
        raise FileNotFoundError(f"Eval dataset not found at {dataset_path}")
    with open(dataset_path) as f:
        data = json.load(f)
    if isinstance(data, list):
        return [EvalQuestion(**q) for q in data]
    return EvalDataset(**data).questions


def get_questions_by_category(
    questions: list[EvalQuestion], category: str
) -> list[EvalQuestion]:
    return [q for q in questions if q.category == category]
