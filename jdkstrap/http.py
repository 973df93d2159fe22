"""Shared HTTP helpers for jdkstrap."""

from __future__ import annotations

from typing import Dict, Optional, Tuple, Type

import httpx

from .constants import HTTP_TIMEOUT_SECONDS
from .version import USER_AGENT

# most specific first: ConnectError and ProxyError are RequestErrors too
_REQUEST_ERRORS: Tuple[Tuple[Type[httpx.HTTPError], str, str], ...] = (
    (
        httpx.TimeoutException,
        "request timed out",
        "network timeout; try again or use a more reliable connection",
    ),
    (
        httpx.ProxyError,
        "proxy error",
        "check HTTP_PROXY/HTTPS_PROXY/NO_PROXY environment variables",
    ),
    (
        httpx.ConnectError,
        "failed to connect",
        "could not connect; check your internet/VPN/firewall",
    ),
    (httpx.RequestError, "network error", ""),
)


def http_timeout(seconds: float = HTTP_TIMEOUT_SECONDS) -> httpx.Timeout:
    return httpx.Timeout(seconds, connect=seconds)


def request_headers() -> Dict[str, str]:
    return {"User-Agent": USER_AGENT, "Accept": "*/*"}


def _classify(exc: httpx.HTTPError) -> Optional[Tuple[str, str]]:
    for error_type, summary, hint in _REQUEST_ERRORS:
        if isinstance(exc, error_type):
            return summary, hint
    return None


def describe_http_error(exc: httpx.HTTPError) -> str:
    """One-line summary of an httpx failure, e.g. ``404 Not Found``."""
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return f"{response.status_code} {response.reason_phrase}".strip()
    message = str(exc).strip()
    classified = _classify(exc)
    if classified is None:
        return message or exc.__class__.__name__
    summary = classified[0]
    return f"{summary}: {message}" if message else summary


def download_error_hint(exc: httpx.HTTPError) -> Optional[str]:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 404:
            return "archive not found; check the distribution, version, os and arch"
        if status == 429:
            return "rate limited; wait a bit and retry"
        if status >= 500:
            return "server error; try again later"
        return None
    classified = _classify(exc)
    if classified is None or not classified[1]:
        return None
    return classified[1]
