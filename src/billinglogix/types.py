"""Request types passed through the execution pipeline.

Pydantic models for a validated request descriptor and the signed request
derived from it. Both are created per call and discarded afterwards.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

SUPPORTED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")


class RequestDescriptor(BaseModel):
    """A validated description of one API call.

    ``path`` is trimmed and always starts with ``/``; ``headers`` holds the
    cleaned per-request headers.
    """

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    path: str
    query: dict[str, Any] | None = None
    body: Any = None
    timeout: float | None = None  # milliseconds
    headers: dict[str, str] = {}


class SignedRequest(BaseModel):
    """A request ready for dispatch, with merged and signed headers."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    url: str
    headers: dict[str, str]
    content: str | None = None
    timeout: float  # milliseconds
