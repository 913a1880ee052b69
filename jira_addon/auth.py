"""Connect JWT authentication for inbound Jira requests.

Jira signs every request it sends to an installed add-on with an HS256 JWT:
``iss`` carries the client key and the signing key is the shared secret the
add-on received in the ``installed`` callback. ``qsh`` binds the token to one
request (method, path, query) and is verified for everything except webhook
deliveries.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import jwt

from jira_addon.errors import AuthenticationError

if TYPE_CHECKING:
    from jira_addon.registry import ClientRegistry

_module_logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
AUTH_SCHEME = "JWT "
TOKEN_QUERY_PARAM = "jwt"
# Tolerated clock difference between Jira and this host, in seconds.
CLOCK_SKEW = 60


class AuthFailure(Enum):
    """Reasons a request can fail authentication."""

    MISSING_TOKEN = "missing-token"
    MALFORMED_TOKEN = "malformed-token"
    UNKNOWN_CLIENT = "unknown-client"
    BAD_SIGNATURE = "bad-signature"
    QSH_MISMATCH = "qsh-mismatch"
    EXPIRED = "expired"

    @property
    def status(self) -> int:
        """HTTP status used when rejecting a request for this reason."""
        return 403 if self is AuthFailure.UNKNOWN_CLIENT else 401


@dataclass(frozen=True)
class VerifiedToken:
    """Outcome of a successful verification."""

    client_key: str
    claims: dict[str, Any] = field(default_factory=dict)


# -- Token transport --


def extract_token(headers: Mapping[str, str], query: Mapping[str, str]) -> str:
    """Return the token from ``Authorization: JWT <token>`` or the ``jwt`` query param."""
    authorization = headers.get("Authorization", "")
    if authorization.startswith(AUTH_SCHEME):
        token = authorization[len(AUTH_SCHEME) :].strip()
        if token:
            return token
    token = query.get(TOKEN_QUERY_PARAM, "")
    if token:
        return token
    raise AuthenticationError(AuthFailure.MISSING_TOKEN)


# -- Query string hash --


def _encode(value: str) -> str:
    # RFC 3986: space -> %20, "*" -> %2A, "~" kept.
    return quote(value, safe="~")


def canonical_path(path: str, context_path: str = "") -> str:
    if context_path and path.startswith(context_path):
        path = path[len(context_path) :]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path.replace("&", "%26")


def canonical_query(query: Iterable[tuple[str, str]]) -> str:
    grouped: dict[str, list[str]] = {}
    for key, value in query:
        if key == TOKEN_QUERY_PARAM:
            continue
        grouped.setdefault(_encode(key), []).append(_encode(value))
    return "&".join(f"{key}={','.join(sorted(grouped[key]))}" for key in sorted(grouped))


def canonical_request(
    method: str,
    path: str,
    query: Iterable[tuple[str, str]] = (),
    context_path: str = "",
) -> str:
    """Build the ``METHOD&path&query`` string the qsh claim is computed from."""
    return "&".join(
        (method.upper(), canonical_path(path, context_path), canonical_query(query))
    )


def query_string_hash(
    method: str,
    path: str,
    query: Iterable[tuple[str, str]] = (),
    context_path: str = "",
) -> str:
    canonical = canonical_request(method, path, query, context_path)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def encode_token(  # noqa: PLR0913
    client_key: str,
    shared_secret: str,
    *,
    method: str | None = None,
    path: str | None = None,
    query: Iterable[tuple[str, str]] = (),
    context_path: str = "",
    issued_at: int | None = None,
    ttl: int = 180,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Sign a Connect JWT the way Jira does.

    The ``qsh`` claim is only added when both *method* and *path* are given.
    """
    iat = int(time.time()) if issued_at is None else issued_at
    claims: dict[str, Any] = {"iss": client_key, "iat": iat, "exp": iat + ttl}
    if method is not None and path is not None:
        claims["qsh"] = query_string_hash(method, path, query, context_path)
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, shared_secret, algorithm=JWT_ALGORITHM)


# -- Verification --


class AuthenticationVerifier:
    """Validates inbound Connect JWTs against the client registry.

    Steps run in a fixed order and each one fails closed:

    1. decode the token without trusting it
    2. read the claimed client key (``iss``)
    3. look up the client's shared secret
    4. verify the HS256 signature with that secret
    5. verify ``qsh`` against the request, unless the caller opts out
    6. reject tokens past ``exp``, older than ``max_token_age`` seconds, or
       issued more than ``CLOCK_SKEW`` seconds in the future
    """

    def __init__(
        self,
        registry: ClientRegistry,
        *,
        max_token_age: int = 15 * 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._max_token_age = max_token_age
        self._log = logger or _module_logger

    @property
    def max_token_age(self) -> int:
        return self._max_token_age

    def _fail(self, reason: AuthFailure, detail: str = "") -> AuthenticationError:
        self._log.warning("Auth failed: %s%s", reason.value, f" ({detail})" if detail else "")
        return AuthenticationError(reason, detail)

    async def verify(  # noqa: PLR0913
        self,
        token: str,
        method: str,
        path: str,
        query: Iterable[tuple[str, str]] = (),
        *,
        verify_qsh: bool = True,
        context_path: str = "",
    ) -> VerifiedToken:
        if not token:
            raise self._fail(AuthFailure.MISSING_TOKEN)

        try:
            unverified = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as exc:
            raise self._fail(AuthFailure.MALFORMED_TOKEN, str(exc)) from exc

        client_key = unverified.get("iss")
        if not client_key or not isinstance(client_key, str):
            raise self._fail(AuthFailure.MALFORMED_TOKEN, "no iss claim")

        shared_secret = await self._registry.shared_secret(client_key)
        if not shared_secret:
            raise self._fail(AuthFailure.UNKNOWN_CLIENT, client_key)

        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                shared_secret,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "verify_aud": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise self._fail(AuthFailure.BAD_SIGNATURE, client_key) from exc

        if verify_qsh:
            expected = query_string_hash(method, path, query, context_path)
            if claims.get("qsh") != expected:
                raise self._fail(AuthFailure.QSH_MISMATCH, client_key)

        self._check_age(claims, client_key)

        self._log.debug("Token verified client=%s", client_key)
        return VerifiedToken(client_key=client_key, claims=claims)

    def _check_age(self, claims: dict[str, Any], client_key: str) -> None:
        issued_at = claims.get("iat")
        if not isinstance(issued_at, int | float):
            raise self._fail(AuthFailure.MALFORMED_TOKEN, "no iat claim")

        now = time.time()
        expires_at = claims.get("exp")
        if isinstance(expires_at, int | float) and now >= expires_at:
            raise self._fail(AuthFailure.EXPIRED, client_key)
        if issued_at > now + CLOCK_SKEW:
            raise self._fail(AuthFailure.EXPIRED, f"{client_key}: iat in the future")
        if now - issued_at > self._max_token_age:
            raise self._fail(AuthFailure.EXPIRED, client_key)
