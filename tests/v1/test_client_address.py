# tests/v1/test_client_address.py
"""Tests for resolving the caller address used by per-address rate limits."""

import pytest
from starlette.requests import Request

from deal_redemption.api.v1.dependencies import client_ip
from deal_redemption.core.settings import settings


def _request(peer: str | None, forwarded: str | None = None) -> Request:
    headers = [(b"x-forwarded-for", forwarded.encode())] if forwarded is not None else []
    scope = {"type": "http", "method": "POST", "path": "/", "headers": headers}
    if peer is not None:
        scope["client"] = (peer, 52100)
    return Request(scope)


def test_forwarded_header_ignored_from_untrusted_peer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "trusted_proxies", [])
    assert client_ip(_request("203.0.113.7", "198.51.100.1")) == "203.0.113.7"


def test_trusted_proxy_reports_nearest_untrusted_hop(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "trusted_proxies", ["10.0.0.1", "10.0.0.2"])
    request = _request("10.0.0.1", "6.6.6.6, 198.51.100.9, 10.0.0.2")
    assert client_ip(request) == "198.51.100.9"


def test_trusted_proxy_without_header_is_the_peer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "trusted_proxies", ["10.0.0.1"])
    assert client_ip(_request("10.0.0.1")) == "10.0.0.1"


def test_missing_peer() -> None:
    assert client_ip(_request(None)) == "unknown"
