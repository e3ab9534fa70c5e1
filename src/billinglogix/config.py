"""Client configuration and constructor validation.

Validates account, credentials and options once, when a client is built,
and freezes the result into a :class:`ClientConfig` that the request
executor reads for the lifetime of the client.
"""

import json
import os
import pathlib
import re
from collections.abc import Mapping
from typing import Any

import pydantic
import structlog

from . import __version__
from .errors import ConfigurationError

CONFIG_ENV_VAR = "BILLINGLOGIX_CONFIG_PATH"

SUPPORTED_API_VERSION = "v1"

DEFAULT_TIMEOUT = 10000
MIN_TIMEOUT = 1000
MAX_TIMEOUT = 60000

USER_AGENT = f"BillingLogix API Client v{__version__}"

_ACCOUNT_RE = re.compile(r"(?!-)[a-z0-9-]+(?<!-)")
_ACCESS_KEY_RE = re.compile(r"[a-zA-Z0-9]+")
_SECRET_KEY_RE = re.compile(r"[a-zA-Z0-9_=\-/]+")

logger = structlog.get_logger(__name__)


class ClientConfig(pydantic.BaseModel):
    """Immutable configuration shared by every request of a client."""

    model_config = pydantic.ConfigDict(frozen=True)

    account: str = pydantic.Field(description="Account subdomain")
    access_key: str = pydantic.Field(description="API access key (JWT issuer)")
    secret_key: str = pydantic.Field(
        description="API secret key used to sign tokens",
        repr=False,
    )
    version: str = pydantic.Field(SUPPORTED_API_VERSION, description="API version")
    base_url: str = pydantic.Field(description="Derived API base URL")
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Default request timeout in milliseconds",
    )
    headers: dict[str, str] = pydantic.Field(
        default_factory=dict,
        description="Headers sent with every request",
    )
    debug: bool = pydantic.Field(False, description="Verbose diagnostic logging")


def is_timeout_value(value: Any) -> bool:
    """Whether ``value`` is a number usable as a timeout (bools excluded)."""
    return isinstance(value, int | float) and not isinstance(value, bool)


def timeout_in_range(value: float) -> bool:
    """Whether a timeout in milliseconds is within the supported range."""
    return MIN_TIMEOUT <= value <= MAX_TIMEOUT


def merge_headers(base: Mapping[str, str], override: Mapping[str, str]) -> dict[str, str]:
    """Overlay ``override`` on ``base``, matching header names case-insensitively."""
    overridden = {name.lower() for name in override}
    merged = {name: value for name, value in base.items() if name.lower() not in overridden}
    merged.update(override)
    return merged


def _check_pattern(value: Any, pattern: re.Pattern[str], label: str) -> str:
    if not isinstance(value, str) or not pattern.fullmatch(value):
        msg = f"Missing or invalid {label}: {value}"
        raise ConfigurationError(msg)
    return value


def _validate_headers(headers: Any) -> dict[str, str]:
    if not isinstance(headers, Mapping):
        msg = f"Invalid additional request headers: {type(headers).__name__}"
        raise ConfigurationError(msg, headers)
    for key, value in headers.items():
        if not isinstance(key, str):
            msg = f"Invalid request header key: {key}"
            raise ConfigurationError(msg, headers)
        if not isinstance(value, str):
            msg = f"Invalid request header value: {value}"
            raise ConfigurationError(msg, headers)
    return dict(headers)


def build_config(
    account: Any,
    access_key: Any,
    secret_key: Any,
    options: Any = None,
) -> ClientConfig:
    """Validate constructor inputs and build a frozen client configuration.

    Args:
        account: Account subdomain (lowercase letters, digits and hyphens,
            not starting or ending with a hyphen).
        access_key: Alphanumeric API access key.
        secret_key: API secret key (alphanumerics plus ``_=-/``).
        options: Optional mapping with ``version``, ``timeout`` (ms),
            ``headers`` and ``debug``.

    Returns:
        Validated ClientConfig.

    Raises:
        ConfigurationError: If any argument is missing or invalid.
    """
    _check_pattern(account, _ACCOUNT_RE, "account subdomain")
    _check_pattern(access_key, _ACCESS_KEY_RE, "access key")
    _check_pattern(secret_key, _SECRET_KEY_RE, "secret key")

    if options is None:
        options = {}
    if not isinstance(options, Mapping):
        msg = f"Invalid options object: {type(options).__name__}"
        raise ConfigurationError(msg, options)

    version = options.get("version", SUPPORTED_API_VERSION)
    if not isinstance(version, str):
        msg = f"Invalid API version: {version}"
        raise ConfigurationError(msg, version)
    if version != SUPPORTED_API_VERSION:
        msg = f"Unsupported API version: {version}"
        raise ConfigurationError(msg, version)

    timeout = options.get("timeout", DEFAULT_TIMEOUT)
    if not is_timeout_value(timeout):
        msg = f"Invalid request timeout: {timeout}"
        raise ConfigurationError(msg, timeout)
    if not timeout_in_range(timeout):
        msg = f"Unsupported request timeout: {timeout}"
        raise ConfigurationError(msg, timeout)

    headers = _validate_headers(options.get("headers", {}))

    debug = options.get("debug", False)
    if not isinstance(debug, bool):
        msg = f"Invalid debug flag: {debug}"
        raise ConfigurationError(msg, debug)

    if debug:
        unknown = sorted(set(options) - {"version", "timeout", "headers", "debug"})
        if unknown:
            logger.debug("Ignoring unknown client options", options=unknown)

    # Library headers take precedence over caller defaults
    merged_headers = merge_headers(
        headers,
        {
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            "Accept": "application/json",
        },
    )

    config = ClientConfig(
        account=account,
        access_key=access_key,
        secret_key=secret_key,
        version=version,
        base_url=f"https://{account}.billinglogix.com/api/{version}",
        timeout=timeout,
        headers=merged_headers,
        debug=debug,
    )
    if debug:
        logger.debug(
            "Client configured",
            base_url=config.base_url,
            timeout_ms=config.timeout,
            header_names=sorted(config.headers),
        )
    return config


def load_config(config_path: str | None = None) -> ClientConfig:
    """Load client configuration from a JSON file.

    The file holds ``account``, ``access_key``, ``secret_key`` and an
    optional ``options`` object. Without an explicit path, the path is read
    from the ``BILLINGLOGIX_CONFIG_PATH`` environment variable.

    Raises:
        FileNotFoundError: If no path is configured or the file is missing.
        ConfigurationError: If the file contents are invalid.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved_path:
        msg = f"No configuration path given and {CONFIG_ENV_VAR} is not set"
        raise FileNotFoundError(msg)

    path = pathlib.Path(resolved_path)
    if not path.exists():
        msg = f"Configuration file not found: {resolved_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        msg = f"Invalid configuration file: {resolved_path}"
        raise ConfigurationError(msg, data)

    return build_config(
        data.get("account"),
        data.get("access_key"),
        data.get("secret_key"),
        data.get("options"),
    )
