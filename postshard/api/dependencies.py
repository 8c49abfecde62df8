"""Shared FastAPI dependencies and parameter types for the data endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, Query, Request
from pydantic import StringConstraints

from postshard.models.tables import IDENTIFIER_LENGTH
from postshard.services.orchestrator import ShardedDataAccess

# User/category identifier in a request body: stripped, 1..IDENTIFIER_LENGTH chars
Identifier = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=IDENTIFIER_LENGTH),
]

# category_id query parameter; must contain a non-blank character
CategoryQuery = Annotated[
    str,
    Query(min_length=1, max_length=IDENTIFIER_LENGTH, pattern=r"\S", description="Category identifier"),
]


def get_data_access(request: Request) -> ShardedDataAccess:
    """Return the orchestrator built during application startup."""
    data_access: ShardedDataAccess | None = getattr(request.app.state, "data_access", None)
    if data_access is None:
        raise RuntimeError("Shard registry not configured. The application lifespan has not run.")
    return data_access


def get_request_timeout(
    x_request_timeout: Annotated[
        float | None,
        Header(gt=0, le=300, description="Per-call timeout in seconds"),
    ] = None,
) -> float | None:
    """Caller-supplied timeout from the X-Request-Timeout header, if any."""
    return x_request_timeout
