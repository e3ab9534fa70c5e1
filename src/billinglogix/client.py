"""BillingLogix API client.

Provides the public client object: credentials and options are validated
once at construction, and every call goes through the shared request
executor.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from .cancellation import CancellationStrategy
from .config import ClientConfig, build_config, load_config
from .executor import Callback, RequestExecutor

logger = structlog.get_logger(__name__)


class BillingLogixClient:
    """Client for the BillingLogix REST API.

    Each call returns an ``asyncio.Future`` resolving to the decoded JSON
    response, or, when a ``callback`` is passed, returns None and invokes
    ``callback(error, result)`` once the request settles. Calls must be made
    from a running event loop.

    Usage::

        client = BillingLogixClient("acme", "ABC123", "s3cr3t")
        tags = await client.get("/tags")
    """

    def __init__(
        self,
        account: str,
        access_key: str,
        secret_key: str,
        options: Mapping[str, Any] | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cancellation: CancellationStrategy | None = None,
    ):
        """Initialize the client.

        Args:
            account: Account subdomain (e.g. "acme").
            access_key: API access key.
            secret_key: API secret key.
            options: Optional ``version``, ``timeout`` (ms), ``headers`` and
                ``debug`` settings.
            transport: Optional httpx transport, mainly for testing.
            cancellation: Timeout strategy (default: abort on timeout).

        Raises:
            ConfigurationError: If any argument is invalid.
        """
        self._config = build_config(account, access_key, secret_key, options)
        self._executor = RequestExecutor(
            self._config,
            transport=transport,
            cancellation=cancellation,
        )

    @classmethod
    def from_config(
        cls,
        config_path: str | None = None,
        **kwargs: Any,
    ) -> "BillingLogixClient":
        """Create a client from a JSON configuration file.

        Falls back to the ``BILLINGLOGIX_CONFIG_PATH`` environment variable
        when no path is given. Keyword arguments are passed to the
        constructor.
        """
        config = load_config(config_path)
        options = {
            "version": config.version,
            "timeout": config.timeout,
            "headers": config.headers,
            "debug": config.debug,
        }
        if config.debug:
            logger.debug("Loaded client configuration", base_url=config.base_url)
        return cls(config.account, config.access_key, config.secret_key, options, **kwargs)

    @property
    def config(self) -> ClientConfig:
        """The frozen client configuration."""
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def request(
        self,
        options: Mapping[str, Any],
        callback: Callback | None = None,
    ) -> asyncio.Future | None:
        """Make an API request.

        Args:
            options: Request descriptor with ``method``, ``path`` and
                optionally ``query``, ``body``, ``timeout`` and ``headers``.
            callback: Optional ``callback(error, result)``.

        Returns:
            Future for the decoded response, or None if a callback is given.
        """
        return self._executor.submit(options, callback)

    def _call(
        self,
        method: str,
        path: str,
        options: Mapping[str, Any] | None,
        callback: Callback | None,
        **fields: Any,
    ) -> asyncio.Future | None:
        if options is not None and not isinstance(options, Mapping):
            # Let the executor reject it through the normal channel
            return self.request(options, callback)
        return self.request(
            {**(options or {}), "path": path, "method": method, **fields},
            callback,
        )

    def get(
        self,
        path: str,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> asyncio.Future | None:
        """GET ``path``."""
        return self._call("GET", path, options, callback)

    def post(
        self,
        path: str,
        body: Any = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> asyncio.Future | None:
        """POST ``body`` to ``path``."""
        return self._call("POST", path, options, callback, body=body)

    def put(
        self,
        path: str,
        body: Any = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> asyncio.Future | None:
        """PUT ``body`` to ``path``."""
        return self._call("PUT", path, options, callback, body=body)

    def patch(
        self,
        path: str,
        body: Any = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> asyncio.Future | None:
        """PATCH ``path`` with ``body``."""
        return self._call("PATCH", path, options, callback, body=body)

    def delete(
        self,
        path: str,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> asyncio.Future | None:
        """DELETE ``path``."""
        return self._call("DELETE", path, options, callback)
