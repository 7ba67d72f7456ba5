"""Unit tests for caller identity resolution."""

from __future__ import annotations

import pytest
from starlette.requests import Request

from app.core.errors import FormatAppError
from app.core.identity import (
    extract_api_key,
    normalize_address,
    resolve_client_address,
    strip_query_key,
)


def _request(
    query: str = "",
    headers: dict[str, str] | None = None,
    client: tuple[str, int] | None = ("203.0.113.9", 50000),
) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/synonyms",
        "query_string": query.encode("latin-1"),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestExtractApiKey:
    def test_anonymous_request_has_no_candidate(self) -> None:
        assert extract_api_key(_request("search=fast")) is None

    def test_bearer_header(self) -> None:
        candidate = extract_api_key(_request(headers={"Authorization": "Bearer abc123"}))
        assert candidate is not None
        assert candidate.value == "abc123"
        assert candidate.source == "header"

    def test_bearer_scheme_is_case_insensitive(self) -> None:
        candidate = extract_api_key(_request(headers={"Authorization": "bearer abc123"}))
        assert candidate is not None
        assert candidate.value == "abc123"

    def test_query_key(self) -> None:
        candidate = extract_api_key(_request("search=fast&key=abc123"))
        assert candidate is not None
        assert candidate.value == "abc123"
        assert candidate.source == "query"

    def test_header_and_query_conflict(self) -> None:
        request = _request("key=abc", headers={"Authorization": "Bearer abc"})
        with pytest.raises(FormatAppError) as exc_info:
            extract_api_key(request)
        assert exc_info.value.code == "Conflicting API keys"
        assert exc_info.value.status_code == 400

    def test_conflict_wins_over_multiple_keys(self) -> None:
        request = _request("key=a&key=b", headers={"Authorization": "Bearer a"})
        with pytest.raises(FormatAppError) as exc_info:
            extract_api_key(request)
        assert exc_info.value.code == "Conflicting API keys"

    def test_repeated_query_key(self) -> None:
        with pytest.raises(FormatAppError) as exc_info:
            extract_api_key(_request("key=a&key=b"))
        assert exc_info.value.code == "Multiple keys not allowed"

    @pytest.mark.parametrize(
        "authorization",
        ["Basic dXNlcjpwYXNz", "Bearer", "Bearer ", "Token abc", "Bearer a b"],
    )
    def test_malformed_authorization_header(self, authorization: str) -> None:
        with pytest.raises(FormatAppError) as exc_info:
            extract_api_key(_request(headers={"Authorization": authorization}))
        assert exc_info.value.code == "Invalid API key format"

    def test_blank_query_key(self) -> None:
        with pytest.raises(FormatAppError) as exc_info:
            extract_api_key(_request("key=%20"))
        assert exc_info.value.code == "Invalid API key format"


class TestNormalizeAddress:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("192.168.1.10", "192.168.1.10"),
            ("::1", "127.0.0.1"),
            ("::ffff:10.0.0.7", "10.0.0.7"),
            ("::FFFF:10.0.0.7", "10.0.0.7"),
            (" 8.8.8.8 ", "8.8.8.8"),
            ("2001:db8::1", "unknown"),
            ("999.1.1.1", "unknown"),
            ("testclient", "unknown"),
            ("", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_normalization(self, raw: str | None, expected: str) -> None:
        assert normalize_address(raw) == expected


class TestResolveClientAddress:
    def test_uses_connection_peer(self) -> None:
        assert resolve_client_address(_request(client=("::ffff:198.51.100.4", 1))) == "198.51.100.4"

    def test_falls_back_to_forwarded_for(self) -> None:
        request = _request(
            headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
            client=None,
        )
        assert resolve_client_address(request) == "198.51.100.4"

    def test_unknown_when_nothing_usable(self) -> None:
        assert resolve_client_address(_request(client=None)) == "unknown"


def test_strip_query_key_removes_secret_and_keeps_search() -> None:
    request = _request("search=fast&key=secret-value")
    assert request.query_params.get("key") == "secret-value"

    strip_query_key(request)

    assert "key" not in request.query_params
    assert request.query_params.get("search") == "fast"
    assert b"secret-value" not in request.scope["query_string"]
