"""Caller identity resolution.

Every request to the search endpoint is classified as either a keyed caller
(presents an API key) or an anonymous caller identified by its normalized
IPv4 address. Credential sources are mutually exclusive: a key may arrive in
an ``Authorization: Bearer`` header or in a single ``key`` query parameter,
never both.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode

from fastapi import Request

from app.core.errors import FormatAppError

UNKNOWN_ADDRESS = "unknown"
KEY_QUERY_PARAM = "key"

_IPV4_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_IPV4_MAPPED_PREFIX = "::ffff:"


@dataclass(frozen=True)
class KeyedIdentity:
    """Caller authenticated by an active API key."""

    key_id: str
    description: str | None = None


@dataclass(frozen=True)
class AnonymousIdentity:
    """Caller without a key, identified by its normalized address."""

    address: str


Identity = KeyedIdentity | AnonymousIdentity


@dataclass(frozen=True)
class CredentialCandidate:
    """A key extracted from the request, not yet verified."""

    value: str
    source: str  # "header" or "query"


def _bearer_token(authorization: str) -> str:
    """Extract the token from an ``Authorization`` header value.

    Raises:
        FormatAppError: If the header is not ``Bearer <token>``.
    """
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise FormatAppError(
            code="Invalid API key format",
            message="Authorization header must use the form 'Bearer <api key>'.",
        )
    return token


def extract_api_key(request: Request) -> CredentialCandidate | None:
    """Extract the candidate API key from header or query string.

    Args:
        request: Incoming request.

    Returns:
        The candidate key with its source, or None for anonymous requests.

    Raises:
        FormatAppError: On conflicting sources, repeated query keys or
            malformed credential syntax.
    """
    authorization = request.headers.get("authorization")
    query_keys = request.query_params.getlist(KEY_QUERY_PARAM)

    if authorization is not None and query_keys:
        raise FormatAppError(
            code="Conflicting API keys",
            message="Do not send API key in both Authorization header and query parameter.",
        )

    if authorization is not None:
        return CredentialCandidate(value=_bearer_token(authorization), source="header")

    if not query_keys:
        return None

    if len(query_keys) > 1:
        raise FormatAppError(
            code="Multiple keys not allowed",
            message="Only one API key can be provided in the query parameters.",
        )

    value = query_keys[0].strip()
    if not value:
        raise FormatAppError(
            code="Invalid API key format",
            message="The 'key' query parameter must not be empty.",
        )
    return CredentialCandidate(value=value, source="query")


def normalize_address(raw: str | None) -> str:
    """Normalize a client address to dotted-quad IPv4 or ``"unknown"``.

    ``::1`` maps to ``127.0.0.1`` and IPv4-mapped IPv6 addresses map to the
    embedded IPv4 address. Anything else that is not IPv4 is ``"unknown"``.

    Examples:
        >>> normalize_address("::ffff:10.0.0.7")
        '10.0.0.7'
        >>> normalize_address("2001:db8::1")
        'unknown'
    """
    if not raw:
        return UNKNOWN_ADDRESS

    address = raw.strip()
    if address == "::1":
        return "127.0.0.1"

    if address.lower().startswith(_IPV4_MAPPED_PREFIX):
        embedded = address[len(_IPV4_MAPPED_PREFIX):]
        if _is_ipv4(embedded):
            return embedded

    if _is_ipv4(address):
        return address

    return UNKNOWN_ADDRESS


def _is_ipv4(value: str) -> bool:
    if not _IPV4_RE.match(value):
        return False
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def resolve_client_address(request: Request) -> str:
    """Derive the normalized client address of a request.

    Prefers the peer address of the ASGI connection (which already honours
    proxy headers when the server runs with ``--proxy-headers``), then the
    first hop of ``X-Forwarded-For``.
    """
    raw: str | None = None

    if request.client is not None and request.client.host:
        raw = request.client.host

    if not raw:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            raw = forwarded_for.split(",")[0].strip()

    return normalize_address(raw)


def strip_query_key(request: Request) -> None:
    """Remove the ``key`` parameter from the request's query state.

    Keeps the secret out of access logs, downstream handlers and any value
    derived from the query string.
    """
    query_string = request.scope.get("query_string", b"")
    if isinstance(query_string, bytes):
        query_string = query_string.decode("latin-1")

    pairs = [
        (name, value)
        for name, value in parse_qsl(query_string, keep_blank_values=True)
        if name != KEY_QUERY_PARAM
    ]
    request.scope["query_string"] = urlencode(pairs).encode("latin-1")

    # Starlette caches parsed params on first access
    if hasattr(request, "_query_params"):
        delattr(request, "_query_params")
