"""BillingLogix API client.

Async client for the BillingLogix REST API with JWT request signing,
per-request timeouts, and both awaitable and callback result delivery.
"""

__version__ = "1.0.0"

from .cancellation import AbortOnTimeout, AdvisoryTimeout, CancellationStrategy  # noqa: E402
from .client import BillingLogixClient  # noqa: E402
from .config import ClientConfig, build_config, load_config  # noqa: E402
from .errors import (  # noqa: E402
    ApiResponseError,
    AuthenticationError,
    BillingLogixApiError,
    ConfigurationError,
    RequestFailureError,
    RequestValidationError,
    ResponseParsingError,
    UnexpectedError,
)

__all__ = [
    "AbortOnTimeout",
    "AdvisoryTimeout",
    "ApiResponseError",
    "AuthenticationError",
    "BillingLogixApiError",
    "BillingLogixClient",
    "CancellationStrategy",
    "ClientConfig",
    "ConfigurationError",
    "RequestFailureError",
    "RequestValidationError",
    "ResponseParsingError",
    "UnexpectedError",
    "build_config",
    "load_config",
]
