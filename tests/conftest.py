import pytest

from api_context.models import (
    AuthScheme,
    Collection,
    Endpoint,
    ParsedParameter,
    ParsedResponse,
)


def make_endpoint(
    id: str,
    method: str,
    path: str,
    name: str,
    description: str | None = None,
    **kwargs,
) -> Endpoint:
    return Endpoint(
        id=id,
        name=name,
        method=method,
        path=path,
        url=f"https://api.shop.test{path}",
        description=description,
        **kwargs,
    )


SHOP_ENDPOINTS = [
    make_endpoint(
        "users-create", "POST", "/users", "Create User",
        "Create a new user account.",
        folder="Users",
        request_body='{"email": "string", "name": "string"}',
        responses=[
            ParsedResponse(status_code="201", description="Created"),
            ParsedResponse(status_code="400", description="Validation error"),
        ],
        requires_auth=True,
        auth_type="bearer",
    ),
    make_endpoint(
        "users-get", "GET", "/users/{id}", "Get User",
        "Fetch a single user by id.",
        folder="Users",
        parameters=[ParsedParameter(name="id", location="path", required=True)],
        responses=[
            ParsedResponse(status_code="200", description="The user"),
            ParsedResponse(status_code="404", description="User not found"),
        ],
        requires_auth=True,
        auth_type="bearer",
    ),
    make_endpoint(
        "users-list", "GET", "/users", "List Users",
        "Page through user accounts.",
        folder="Users",
        parameters=[ParsedParameter(name="page", type="integer")],
    ),
    make_endpoint(
        "users-delete", "DELETE", "/users/{id}", "Delete User",
        "Permanently remove a user.",
        folder="Users",
        requires_auth=True,
    ),
    make_endpoint(
        "orders-create", "POST", "/orders", "Create Order",
        "Place an order for one or more products.",
        folder="Orders",
        request_body='{"items": [{"sku": "string", "quantity": 1}]}',
    ),
    make_endpoint("orders-list", "GET", "/orders", "List Orders", "Browse past orders.", folder="Orders"),
    make_endpoint(
        "orders-cancel", "DELETE", "/orders/{id}", "Cancel Order",
        "Cancel an order before it ships.",
        folder="Orders",
    ),
    make_endpoint(
        "payments-refund", "POST", "/payments/{id}/refund", "Refund Payment",
        "Refund a captured payment.",
        folder="Payments",
        responses=[ParsedResponse(status_code="402", description="Payment required")],
    ),
    make_endpoint(
        "invoices-download", "GET", "/invoices/{id}/pdf", "Download Invoice",
        "Download an invoice as PDF.",
        folder="Billing",
    ),
    make_endpoint(
        "auth-token", "POST", "/auth/token", "Issue Access Token",
        "Exchange client credentials for a bearer token.",
        folder="Auth",
    ),
    make_endpoint(
        "webhooks-create", "POST", "/webhooks", "Register Webhook",
        "Subscribe a URL to shop events.",
        folder="Webhooks",
    ),
    make_endpoint("health", "GET", "/health", "Health Check", "Liveness probe."),
]


@pytest.fixture
def shop_collection() -> Collection:
    return Collection(
        spec_type="openapi3",
        title="Shop",
        version="1.0",
        base_url="https://api.shop.test",
        endpoints=list(SHOP_ENDPOINTS),
        auth_schemes=[AuthScheme(type="bearer", name="BearerAuth")],
    )


@pytest.fixture
def user_collection() -> Collection:
    return Collection(
        title="Users",
        base_url="https://api.users.test",
        endpoints=[
            make_endpoint("create-user", "POST", "/users", "Create User", "Create a new user."),
            make_endpoint("get-user", "GET", "/users/{id}", "Get User", "Fetch one user."),
        ],
    )


def render_blocks(count: int, header: str = "# Big API\nBase URL: `https://big.test`") -> str:
    """Render a collection markdown with ``count`` endpoint blocks."""
    blocks = [
        f"### GET Resource {i}\n- **URL:** `/resources/r{i}`\n- **Description:** Item number {i}"
        for i in range(count)
    ]
    return "\n\n".join([header, *blocks])
