"""Request execution pipeline.

Turns a caller-supplied request descriptor into exactly one HTTP exchange:
validation, JWT signing, dispatch under a timeout strategy, response
interpretation, and delivery through either an awaitable future or a
completion callback.
"""

import asyncio
import functools
import json
import time
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

import httpx
import structlog

from . import signing
from .cancellation import AbortOnTimeout, CancellationStrategy
from .config import ClientConfig, is_timeout_value, merge_headers, timeout_in_range
from .errors import (
    ApiResponseError,
    BillingLogixApiError,
    RequestFailureError,
    RequestValidationError,
    ResponseParsingError,
    UnexpectedError,
)
from .types import SUPPORTED_METHODS, RequestDescriptor, SignedRequest

logger = structlog.get_logger(__name__)

Callback: TypeAlias = Callable[[BaseException | None, Any], None]


class RequestExecutor:
    """Validates, signs, dispatches and interprets API requests.

    Requests share only the frozen client configuration; the one mutable
    member is the set keeping callback-mode tasks alive until they settle.
    Each dispatch opens its own short-lived ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        cancellation: CancellationStrategy | None = None,
    ):
        """Initialize the executor.

        Args:
            config: Validated client configuration.
            transport: Optional httpx transport (defaults to the network).
            cancellation: Timeout strategy (defaults to AbortOnTimeout).
        """
        self._config = config
        self._transport = transport
        self._cancellation = cancellation or AbortOnTimeout()
        self._log = logger.bind(account=config.account)
        self._in_flight: set[asyncio.Future] = set()

    def _debug(self, event: str, **kw: Any) -> None:
        if self._config.debug:
            self._log.debug(event, **kw)

    def _error(self, event: str, **kw: Any) -> None:
        if self._config.debug:
            self._log.error(event, **kw)

    def _reject(self, message: str, options: Any) -> RequestValidationError:
        self._debug(message, options=options)
        return RequestValidationError(message, options)

    def _clean_headers(self, headers: Any) -> dict[str, str]:
        if not isinstance(headers, Mapping):
            return {}
        cleaned = {}
        for key, value in headers.items():
            if not isinstance(key, str) or not isinstance(value, str):
                self._debug("Invalid header", key=key, value=value)
                continue
            cleaned[key.strip()] = value.strip()
        return cleaned

    def validate(self, options: Any) -> RequestDescriptor:
        """Validate a raw request descriptor.

        Checks run in a fixed order and the first failure wins: descriptor
        type, method, path, timeout, query.

        Args:
            options: Mapping with ``method``, ``path`` and optionally
                ``query``, ``body``, ``timeout`` (ms) and ``headers``.

        Returns:
            The validated RequestDescriptor.

        Raises:
            RequestValidationError: If any check fails.
        """
        if not isinstance(options, Mapping):
            raise self._reject("Invalid request options", options)

        method = options.get("method")
        if not method or not isinstance(method, str):
            raise self._reject("Invalid request method", options)
        if method.upper() not in SUPPORTED_METHODS:
            raise self._reject("Unsupported request method", options)

        path = options.get("path")
        if not isinstance(path, str) or path.strip() in ("", "/"):
            raise self._reject("Invalid request path", options)

        timeout = options.get("timeout")
        if timeout is not None:
            if not is_timeout_value(timeout):
                raise self._reject("Invalid request timeout", options)
            if not timeout_in_range(timeout):
                raise self._reject("Unsupported request timeout", options)

        query = options.get("query")
        if query is not None and (
            not isinstance(query, Mapping)
            or not all(isinstance(key, str) for key in query)
        ):
            raise self._reject("Invalid request query params", options)

        path = path.strip()
        if not path.startswith("/"):
            path = f"/{path}"

        return RequestDescriptor(
            method=method.upper(),
            path=path,
            query=dict(query) if query is not None else None,
            body=options.get("body"),
            timeout=timeout,
            headers=self._clean_headers(options.get("headers")),
        )

    def sign(self, descriptor: RequestDescriptor) -> SignedRequest:
        """Build the signed, ready-to-send request for a descriptor.

        Raises:
            AuthenticationError: If the client has no signing material.
        """
        authorization = signing.authorization_header(
            self._config.access_key,
            self._config.secret_key,
        )

        query_string = ""
        if descriptor.query:
            query_string = f"?{httpx.QueryParams(descriptor.query)}"
        url = f"{self._config.base_url}{descriptor.path}{query_string}"

        if descriptor.body is None:
            content = None
        elif isinstance(descriptor.body, str):
            content = descriptor.body
        else:
            content = json.dumps(descriptor.body, separators=(",", ":"))

        # Client headers win over per-request headers
        headers = merge_headers(descriptor.headers, self._config.headers)
        headers = merge_headers(headers, {"Authorization": authorization})

        # Malformed URLs and non-ASCII header values fail here, before dispatch
        httpx.Request(descriptor.method, url, headers=headers, content=content)

        self._debug(
            "Fetch options",
            method=descriptor.method,
            path=descriptor.path,
            query=query_string,
        )
        return SignedRequest(
            method=descriptor.method,
            url=url,
            headers=headers,
            content=content,
            timeout=descriptor.timeout or self._config.timeout,
        )

    async def _send(self, signed: SignedRequest) -> httpx.Response:
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=signed.timeout / 1000,
        ) as client:
            return await client.request(
                signed.method,
                signed.url,
                headers=signed.headers,
                content=signed.content,
            )

    def _interpret(self, response: httpx.Response) -> Any:
        if response.is_success:
            try:
                data = response.json()
            except ValueError as err:
                self._error("Response parsing error", error=str(err))
                msg = "Error parsing response data"
                raise ResponseParsingError(msg, err) from err
            self._debug("Response success", status_code=response.status_code)
            return data

        try:
            body = response.json()
        except ValueError as err:
            self._error(
                "Response parsing failure",
                status_code=response.status_code,
                error=str(err),
            )
            msg = "Error parsing request failure"
            raise ResponseParsingError(msg, err) from err
        self._debug("Response error", status_code=response.status_code, body=body)
        raise ApiResponseError(response.status_code, body)

    async def dispatch(self, signed: SignedRequest) -> Any:
        """Send a signed request and interpret the response.

        Returns:
            The decoded JSON body of a 2xx response.

        Raises:
            ApiResponseError: If the API answers with a non-2xx status.
            ResponseParsingError: If the response body is not JSON.
            RequestFailureError: If the exchange fails or times out.
            UnexpectedError: If the transport raises anything else.
        """
        if not self._cancellation.hard_abort:
            self._debug("Abort not supported, timeout is advisory", timeout_ms=signed.timeout)

        start_time = time.time()
        try:
            response = await self._cancellation.run(self._send(signed), signed.timeout)
        except (httpx.HTTPError, TimeoutError) as err:
            self._error(
                "Request failure",
                error=repr(err),
                duration_seconds=round(time.time() - start_time, 3),
            )
            msg = "Request Failure"
            raise RequestFailureError(msg, err) from err
        except Exception as err:
            self._error("Unexpected error", error=repr(err))
            msg = "Unexpected Error"
            raise UnexpectedError(msg, err) from err

        self._debug(
            "Request completed",
            status_code=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )
        return self._interpret(response)

    def _deliver(self, callback: Callback, future: asyncio.Future) -> None:
        if future.cancelled():
            error: BaseException | None = RequestFailureError(
                "Request Failure",
                asyncio.CancelledError(),
            )
        else:
            error = future.exception()
        if error is not None:
            self._debug("Callback error", error=repr(error))
            callback(error, None)
        else:
            self._debug("Callback success")
            callback(None, future.result())

    def submit(self, options: Any, callback: Callback | None = None) -> asyncio.Future | None:
        """Execute a request and deliver its outcome.

        Validation and signing run synchronously; any error they raise is
        delivered through the same channel as the response would be.

        Must be called while an asyncio event loop is running.

        Args:
            options: Raw request descriptor.
            callback: Optional ``callback(error, result)`` completion hook.

        Returns:
            A future for the result, or None when a callback is given.
        """
        loop = asyncio.get_running_loop()
        self._debug(
            "Request options",
            options=options,
            mode="callback" if callback else "future",
        )

        future: asyncio.Future
        try:
            signed = self.sign(self.validate(options))
        except BillingLogixApiError as err:
            future = loop.create_future()
            future.set_exception(err)
        except Exception as err:  # noqa: BLE001
            self._error("Unexpected error", error=repr(err))
            future = loop.create_future()
            future.set_exception(UnexpectedError("Unexpected Error", err))
        else:
            future = loop.create_task(self.dispatch(signed))

        if callback is None:
            self._debug("Future returned")
            return future

        # The event loop only keeps weak references to tasks
        self._in_flight.add(future)
        future.add_done_callback(self._in_flight.discard)
        future.add_done_callback(functools.partial(self._deliver, callback))
        return None
