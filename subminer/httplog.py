"""Per-request logging context."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from subminer.middlewares import session_id_from_headers


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


@dataclass(frozen=True)
class RequestContext:
    """Details of one request used to prefix log lines."""

    method: str
    url: str
    origin: str
    user_agent: str
    session_id: str
    trace_id: str

    def prefix(self) -> str:
        return (
            f"[METHOD:{self.method} URL:{self.url} ORIGIN:{self.origin} "
            f"UA: {self.user_agent} TRACE_ID:{self.trace_id}]"
        )


def contextualize_request(
    method: str, url: str, headers: Mapping[str, str] | None = None
) -> RequestContext:
    """Build a context with a fresh trace id for a request."""
    headers = headers or {}
    return RequestContext(
        method=method or "GET",
        url=url,
        origin=_header(headers, "Origin"),
        user_agent=_header(headers, "User-Agent"),
        session_id=session_id_from_headers(headers),
        trace_id=str(uuid.uuid4()),
    )