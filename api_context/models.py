"""Types for the endpoint corpus and chat history.

These records are produced by the external collection/OpenAPI parsers. The
context selection engine only reads them.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
SpecType = Literal["postman", "openapi3", "swagger2", "unknown"]


class CorpusModel(BaseModel):
    """Base model accepting both snake_case and the parsers' camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParsedHeader(CorpusModel):
    """A request header declared on an endpoint."""

    key: str
    value: str = ""
    enabled: bool = True


class ParsedParameter(CorpusModel):
    """A path, query, header or cookie parameter."""

    name: str
    location: Literal["path", "query", "header", "cookie"] = "query"
    required: bool = False
    type: str = "string"
    description: str | None = None
    example: str | None = None


class ParsedResponse(CorpusModel):
    """A documented response for one status code."""

    status_code: str
    description: str = ""
    body_schema: str | None = None
    example: str | None = None


class Endpoint(CorpusModel):
    """One HTTP operation (method + path) of the loaded API."""

    id: str
    name: str
    method: HttpMethod
    url: str = ""
    path: str
    folder: str = ""
    description: str | None = None
    headers: list[ParsedHeader] = Field(default_factory=list)
    parameters: list[ParsedParameter] = Field(default_factory=list)
    request_body: str | None = None
    request_content_type: str | None = None
    responses: list[ParsedResponse] = Field(default_factory=list)
    requires_auth: bool = False
    auth_type: str | None = None


class AuthScheme(CorpusModel):
    """An authentication scheme declared by the collection."""

    type: str
    name: str
    details: dict[str, str] = Field(default_factory=dict)


class Collection(CorpusModel):
    """A parsed API description: the corpus the ranker works on."""

    spec_type: SpecType = "unknown"
    title: str
    version: str | None = None
    base_url: str = ""
    description: str | None = None
    endpoints: list[Endpoint] = Field(default_factory=list)
    auth_schemes: list[AuthScheme] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """A single turn of the conversation history."""

    role: Literal["user", "assistant", "system"]
    content: str


def load_collection(path: Path | str) -> Collection:
    """Load a collection from a JSON export.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the JSON is not a valid collection.
    """
    collection_path = Path(path)
    if not collection_path.exists():
        raise FileNotFoundError(f"Collection not found at {collection_path}")
    return Collection.model_validate_json(collection_path.read_text())
