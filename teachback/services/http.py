from __future__ import annotations

import http.client
import json
import ssl
from typing import Any, Dict, Optional
from urllib import request, error

from ..config import Settings
from ..errors import UpstreamError

USER_AGENT = "teachback/1.0 python-urllib"


def _ssl_context(settings: Settings) -> ssl.SSLContext:
    # Allow opt-out verify for environments with custom SSL interception
    if settings.ssl_no_verify:
        return ssl._create_unverified_context()  # type: ignore[attr-defined]
    return ssl.create_default_context()


def _decode_json(raw: bytes) -> Any:
    """Parse a response body, treating an undecodable body as an empty object."""
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}


def _send(req: request.Request, settings: Settings, what: str) -> Any:
    try:
        with request.urlopen(req, context=_ssl_context(settings), timeout=settings.http_timeout_s) as resp:
            return _decode_json(resp.read())
    except error.HTTPError as e:
        try:
            payload = e.read().decode("utf-8", errors="replace")
        except (OSError, http.client.HTTPException):
            payload = ""
        raise UpstreamError(f"{what} failed", status=e.code, body=payload) from e
    except (error.URLError, OSError, http.client.HTTPException) as e:
        # No usable HTTP response: DNS, refused connection, socket timeout, truncated body
        reason = getattr(e, "reason", None) or e
        raise UpstreamError(f"{what} failed", status=None, body=str(reason)) from e


def http_get_json(url: str, headers: Dict[str, str], settings: Settings, what: str = "GET request") -> Any:
    hdrs = {"User-Agent": USER_AGENT, "Accept": "application/json", **headers}
    req = request.Request(url, headers=hdrs, method="GET")
    return _send(req, settings, what)


def http_post_json(
    url: str,
    headers: Dict[str, str],
    data: Dict[str, Any],
    settings: Settings,
    what: Optional[str] = None,
) -> Any:
    body = json.dumps(data).encode("utf-8")
    hdrs = {"User-Agent": USER_AGENT, "Content-Type": "application/json", **headers}
    req = request.Request(url, data=body, headers=hdrs, method="POST")
    return _send(req, settings, what or "POST request")
