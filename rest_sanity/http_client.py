"""Thin HTTP abstraction for talking to REST search servers.

Wraps ``requests`` and normalizes every reply into a ``RestResponse``.

Key behaviors:
- ``perform_request()`` raises ``ResponseError`` for any status outside
  2xx/3xx; the error carries the full response for inspection
- ``attempt()`` returns either the response or the error as a value, for
  callers that branch on the outcome instead of catching
- Bearer token and HTTP Basic authentication
- TLS options: skip verification, custom CA bundle
- Proxy support
- ``redact_auth()`` helper for safe logging of headers
"""

import base64
import logging
from typing import Any, Dict, Optional, Union

import requests

logger = logging.getLogger(__name__)


class RestSanityError(Exception):
    """Base class for errors raised by rest-sanity."""


class RestResponse:
    """Normalized HTTP response wrapper."""

    def __init__(self, status_code: int, headers: Dict[str, str], body: str):
        self.status_code = status_code
        self.headers = headers
        self.body = body

    @property
    def ok(self) -> bool:
        """True for 2xx and 3xx statuses."""
        return 200 <= self.status_code < 400

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lower = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lower:
                return v
        return None

    def __repr__(self) -> str:
        return f"<RestResponse [{self.status_code}]>"


class ResponseError(RestSanityError):
    """Raised when the server answers with a non-2xx/3xx status.

    The failed response is kept on ``.response`` so callers can inspect its
    status, headers, and body exactly as they would a successful one.
    """

    def __init__(self, method: str, path: str, response: RestResponse):
        self.method = method
        self.path = path
        self.response = response
        super().__init__(
            f"{method} {path} returned {response.status_code}: {_excerpt(response.body)}"
        )


RequestOutcome = Union[RestResponse, ResponseError]


class RestClient:
    """HTTP client for REST server interactions.

    Args:
        base_url:       Root URL of the server (e.g. ``http://localhost:9200``)
        token:          Bearer token for authentication
        username:       Username for HTTP Basic authentication
        password:       Password for HTTP Basic authentication
        tls_no_verify:  Skip TLS certificate verification (for self-signed certs)
        timeout:        Per-request timeout in seconds
        proxy:          HTTP/HTTPS proxy URL
        ca_bundle:      Path to custom CA certificate bundle file
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        tls_no_verify: bool = False,
        timeout: float = 30,
        proxy: Optional[str] = None,
        ca_bundle: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.username = username
        self.password = password
        self.tls_no_verify = tls_no_verify
        self.timeout = timeout
        self.proxy = proxy
        self.ca_bundle = ca_bundle

    # -- Public API ----------------------------------------------------------

    def perform_request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> RestResponse:
        """Send a request and return the response.

        Raises:
            ResponseError: the server replied with a status outside 2xx/3xx.
            requests.RequestException: transport failure (refused, timeout, ...).
        """
        resp = self._request(method, path, body, extra_headers)
        if not resp.ok:
            raise ResponseError(method.upper(), path, resp)
        return resp

    def attempt(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> RequestOutcome:
        """Like ``perform_request()`` but returns the ``ResponseError`` instead of raising it.

        Transport failures still raise.
        """
        try:
            return self.perform_request(method, path, body, extra_headers)
        except ResponseError as exc:
            return exc

    # -- Internals -----------------------------------------------------------

    def _build_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Build the default request headers with auth credentials."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        elif self.username and self.password:
            creds = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
            headers["Authorization"] = f"Basic {creds}"
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Any],
        extra_headers: Optional[Dict[str, str]],
    ) -> RestResponse:
        url = f"{self.base_url}{path}"
        headers = self._build_headers(extra_headers)
        kwargs: Dict[str, Any] = {
            "headers": headers,
            "timeout": self.timeout,
        }
        if self.ca_bundle:
            kwargs["verify"] = self.ca_bundle
        elif self.tls_no_verify:
            kwargs["verify"] = False
        else:
            kwargs["verify"] = True

        if self.proxy:
            kwargs["proxies"] = {"http": self.proxy, "https": self.proxy}

        if body is not None:
            kwargs["json"] = body

        logger.debug("%s %s headers=%s", method.upper(), url, redact_auth(headers))
        resp = requests.request(method.upper(), url, **kwargs)
        logger.debug("%s %s -> %s", method.upper(), url, resp.status_code)
        return RestResponse(resp.status_code, dict(resp.headers), resp.text)


def _excerpt(text: str, limit: int = 200) -> str:
    """Single-line, length-capped preview of a response body for messages."""
    flat = " ".join(text.split())
    if len(flat) > limit:
        return flat[:limit] + "..."
    return flat


def redact_auth(headers: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of headers with Authorization values replaced by ``***REDACTED***``.

    Use this when including headers in logs or error messages to avoid
    leaking bearer tokens or basic auth credentials.
    """
    redacted = dict(headers)
    for key in list(redacted.keys()):
        if key.lower() == "authorization":
            redacted[key] = "***REDACTED***"
    return redacted
