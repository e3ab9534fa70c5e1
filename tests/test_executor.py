"""Tests for request validation and signing in RequestExecutor.

These run synchronously against validate() and sign(); dispatch and the
completion protocol are covered in test_client.py.
"""

import json

import jwt
import pytest

from billinglogix import config, executor
from billinglogix.errors import AuthenticationError, RequestValidationError


@pytest.fixture
def client_config() -> config.ClientConfig:
    """Configuration for the acme account with one default header."""
    return config.build_config(
        "acme",
        "ABC123",
        "s3cr3t",
        {"headers": {"X-Tenant": "client"}},
    )


@pytest.fixture
def request_executor(client_config: config.ClientConfig) -> executor.RequestExecutor:
    """Executor without a transport; these tests never dispatch."""
    return executor.RequestExecutor(client_config)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("options", "message"),
    [
        ("GET /tags", "Invalid request options"),
        (None, "Invalid request options"),
        ({"path": "/tags"}, "Invalid request method"),
        ({"method": 1, "path": "/tags"}, "Invalid request method"),
        ({"method": "", "path": "/tags"}, "Invalid request method"),
        ({"method": "HEAD", "path": "/tags"}, "Unsupported request method"),
        ({"method": "GET"}, "Invalid request path"),
        ({"method": "GET", "path": ""}, "Invalid request path"),
        ({"method": "GET", "path": "   "}, "Invalid request path"),
        ({"method": "GET", "path": "/"}, "Invalid request path"),
        ({"method": "GET", "path": " / "}, "Invalid request path"),
        ({"method": "GET", "path": 5}, "Invalid request path"),
        ({"method": "GET", "path": "/tags", "timeout": "5"}, "Invalid request timeout"),
        ({"method": "GET", "path": "/tags", "timeout": True}, "Invalid request timeout"),
        ({"method": "GET", "path": "/tags", "timeout": 999}, "Unsupported request timeout"),
        ({"method": "GET", "path": "/tags", "timeout": 60001}, "Unsupported request timeout"),
        ({"method": "GET", "path": "/tags", "query": "a=1"}, "Invalid request query params"),
        ({"method": "GET", "path": "/tags", "query": {1: "a"}}, "Invalid request query params"),
    ],
)
def test_validation_failures(request_executor, options, message):
    """Each invalid descriptor fails with its own message and the descriptor as data."""
    with pytest.raises(RequestValidationError) as exc_info:
        request_executor.validate(options)
    assert exc_info.value.message == message
    assert exc_info.value.data == options


def test_validation_first_failure_wins(request_executor):
    """With several problems, the earliest check decides the error."""
    options = {"method": "TRACE", "path": "/", "timeout": 1, "query": "x"}
    with pytest.raises(RequestValidationError, match="Unsupported request method"):
        request_executor.validate(options)


def test_method_is_case_insensitive(request_executor):
    """Methods are accepted in any case and normalized to upper case."""
    descriptor = request_executor.validate({"method": "patch", "path": "/tags/1"})
    assert descriptor.method == "PATCH"


def test_path_gets_leading_slash(request_executor):
    """Paths without a leading slash get one."""
    descriptor = request_executor.validate({"method": "GET", "path": " tags "})
    assert descriptor.path == "/tags"


@pytest.mark.parametrize("timeout", [1000, 60000])
def test_boundary_request_timeouts(request_executor, timeout):
    """Per-request timeouts at the range boundaries are valid."""
    descriptor = request_executor.validate(
        {"method": "GET", "path": "/tags", "timeout": timeout},
    )
    assert descriptor.timeout == timeout


def test_none_timeout_and_query_are_absent(request_executor):
    """Explicit None for optional fields means not provided."""
    descriptor = request_executor.validate(
        {"method": "GET", "path": "/tags", "timeout": None, "query": None},
    )
    assert descriptor.timeout is None
    assert descriptor.query is None


def test_request_headers_cleaned(request_executor):
    """Per-request headers are trimmed and non-string pairs dropped."""
    descriptor = request_executor.validate(
        {
            "method": "GET",
            "path": "/tags",
            "headers": {" X-Trace ": " abc ", "X-Count": 3, 7: "seven"},
        },
    )
    assert descriptor.headers == {"X-Trace": "abc"}


def test_non_mapping_request_headers_ignored(request_executor):
    """Headers that are not a mapping are ignored."""
    descriptor = request_executor.validate(
        {"method": "GET", "path": "/tags", "headers": "X-Trace: abc"},
    )
    assert descriptor.headers == {}


# ---------------------------------------------------------------------------
# Header merging
# ---------------------------------------------------------------------------


def test_merge_headers_override_wins_case_insensitively():
    """Override values replace base values regardless of name case."""
    merged = config.merge_headers(
        {"x-tenant": "request", "X-Trace": "abc"},
        {"X-Tenant": "client"},
    )
    assert merged == {"X-Trace": "abc", "X-Tenant": "client"}


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


def _sign(request_executor, **options):
    return request_executor.sign(
        request_executor.validate({"method": "GET", "path": "/tags", **options}),
    )


def test_sign_builds_url(request_executor):
    """The URL is the base URL followed by the normalized path."""
    signed = _sign(request_executor)
    assert signed.url == "https://acme.billinglogix.com/api/v1/tags"


def test_sign_appends_query_string(request_executor):
    """Query parameters are encoded after the path."""
    signed = _sign(request_executor, query={"status": "active", "limit": 10})
    assert signed.url == "https://acme.billinglogix.com/api/v1/tags?status=active&limit=10"


def test_sign_skips_empty_query(request_executor):
    """An empty query mapping adds nothing to the URL."""
    assert "?" not in _sign(request_executor, query={}).url


def test_sign_adds_bearer_token(request_executor):
    """Authorization carries a token signed with the secret key."""
    signed = _sign(request_executor)
    scheme, token = signed.headers["Authorization"].split(" ")
    claims = jwt.decode(
        token,
        "s3cr3t",
        algorithms=["HS256"],
        options={"verify_exp": False, "verify_iat": False},
    )
    assert scheme == "Bearer"
    assert claims["iss"] == "ABC123"


def test_sign_client_headers_win(request_executor):
    """Client default headers override per-request headers."""
    signed = _sign(
        request_executor,
        headers={"x-tenant": "request", "Accept": "text/csv", "X-Trace": "abc"},
    )
    assert signed.headers["X-Tenant"] == "client"
    assert signed.headers["Accept"] == "application/json"
    assert signed.headers["X-Trace"] == "abc"
    assert "x-tenant" not in signed.headers


def test_sign_caller_cannot_replace_authorization(request_executor):
    """A per-request Authorization header is replaced by the signed token."""
    signed = _sign(request_executor, headers={"authorization": "Basic xyz"})
    assert "authorization" not in signed.headers
    assert signed.headers["Authorization"].startswith("Bearer ")


def test_sign_serializes_json_body(request_executor):
    """Non-string bodies are JSON encoded compactly."""
    signed = _sign(request_executor, body={"name": "x"})
    assert signed.content == '{"name":"x"}'


def test_sign_sends_string_body_verbatim(request_executor):
    """String bodies are sent as-is."""
    signed = _sign(request_executor, body="name=x")
    assert signed.content == "name=x"


@pytest.mark.parametrize("body", [0, False, [], {}])
def test_sign_serializes_falsy_bodies(request_executor, body):
    """Falsy but present bodies are still serialized."""
    assert json.loads(_sign(request_executor, body=body).content) == body


def test_sign_without_body_sends_nothing(request_executor):
    """No body means no payload."""
    assert _sign(request_executor).content is None


def test_sign_uses_request_timeout(request_executor):
    """A per-request timeout overrides the client default."""
    assert _sign(request_executor, timeout=2500).timeout == 2500
    assert _sign(request_executor).timeout == config.DEFAULT_TIMEOUT


def test_sign_without_credentials_raises(client_config):
    """Missing signing material fails before a request is built."""
    unsigned = executor.RequestExecutor(
        client_config.model_copy(update={"access_key": "", "secret_key": ""}),
    )
    descriptor = unsigned.validate({"method": "GET", "path": "/tags"})
    with pytest.raises(AuthenticationError, match="No Authentication Data"):
        unsigned.sign(descriptor)
