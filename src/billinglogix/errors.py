"""Error types raised by the BillingLogix API client.

Structured errors derive from :class:`BillingLogixApiError` and carry a
``name``, a human-readable ``message`` and optional ``data`` (the offending
value, the upstream body or the underlying exception).

Upstream non-2xx responses are reported through :class:`ApiResponseError`,
which keeps the decoded response body untouched so callers can inspect the
API's own error contract.
"""

import traceback
from typing import Any

_MISSING: Any = object()


class BillingLogixApiError(Exception):
    """Base class for all structured client errors."""

    def __init__(self, message: str, data: Any = _MISSING):
        super().__init__(message)
        self.name = type(self).__name__
        self.message = message
        self._data = data

    @property
    def has_data(self) -> bool:
        """Whether auxiliary data was attached to the error."""
        return self._data is not _MISSING

    @property
    def data(self) -> Any:
        """Auxiliary data attached to the error, or None."""
        return None if self._data is _MISSING else self._data

    def to_dict(self, stack: bool = False) -> dict[str, Any]:
        """Serialize the error as ``{name, message, data?, stack?}``.

        Args:
            stack: Include the formatted traceback under ``stack``.

        Returns:
            Dictionary representation of the error.
        """
        result: dict[str, Any] = {"name": self.name, "message": self.message}
        if self.has_data:
            result["data"] = self._data
        if stack:
            result["stack"] = "".join(
                traceback.format_exception(type(self), self, self.__traceback__),
            )
        return result

    def __repr__(self) -> str:
        return f"{self.name}({self.message!r})"


class ConfigurationError(BillingLogixApiError):
    """Raised when client construction arguments are invalid."""


class RequestValidationError(BillingLogixApiError):
    """Raised when a request descriptor fails validation."""


class AuthenticationError(BillingLogixApiError):
    """Raised when a request cannot be signed."""


class RequestFailureError(BillingLogixApiError):
    """Raised when the HTTP exchange fails at the network level."""


class ResponseParsingError(BillingLogixApiError):
    """Raised when a response body is not valid JSON."""


class UnexpectedError(BillingLogixApiError):
    """Raised for any other failure while building a request."""


class ApiResponseError(Exception):
    """Raised when the API answers with a non-2xx status.

    ``body`` is the decoded JSON body exactly as the API returned it.
    """

    def __init__(self, status_code: int, body: Any):
        super().__init__(f"API responded with status {status_code}")
        self.status_code = status_code
        self.body = body

    def to_dict(self, stack: bool = False) -> Any:  # noqa: ARG002
        """Return the upstream body unchanged."""
        return self.body
