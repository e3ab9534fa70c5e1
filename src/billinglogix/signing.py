"""JWT request signing.

Every request carries a freshly minted, short-lived token issued by the
access key and signed with the secret key.
"""

import time

import jwt

from .errors import AuthenticationError

TOKEN_ALGORITHM = "HS256"

# Token lifetime in milliseconds
TOKEN_TTL_MS = 30000


def create_token(
    access_key: str | None,
    secret_key: str | None,
    now_ms: int | None = None,
) -> str:
    """Create a signed JWT for a single request.

    Claims are ``iss`` (the access key), ``iat`` and ``exp``, both expressed
    in epoch milliseconds, with ``exp`` 30 seconds after ``iat``.

    Args:
        access_key: API access key, used as the token issuer.
        secret_key: API secret key, used as the HMAC key.
        now_ms: Issue time override in epoch milliseconds.

    Returns:
        Encoded JWT string.

    Raises:
        AuthenticationError: If either key is missing.
    """
    if not access_key or not secret_key:
        msg = "No Authentication Data"
        raise AuthenticationError(msg)

    issued_at = now_ms if now_ms is not None else int(time.time() * 1000)
    payload = {
        "iss": access_key,
        "iat": issued_at,
        "exp": issued_at + TOKEN_TTL_MS,
    }
    return jwt.encode(payload, secret_key, algorithm=TOKEN_ALGORITHM)


def authorization_header(access_key: str | None, secret_key: str | None) -> str:
    """Return the ``Authorization`` header value for a new request."""
    return f"Bearer {create_token(access_key, secret_key)}"
