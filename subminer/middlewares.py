"""Request helpers shared by handlers: session lookup and middleware chaining."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

Handler = Callable[..., Any]
Middleware = Callable[[Handler], Handler]


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def session_id_from_headers(headers: Mapping[str, str]) -> str:
    """Return the bearer token of the Authorization header, or an empty string."""
    auth = _header(headers, "Authorization")
    if not auth:
        return ""
    parts = auth.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1]


@dataclass(frozen=True)
class MiddlewareStack:
    """An immutable list of middlewares; the first wrapped runs outermost."""

    middlewares: tuple[Middleware, ...] = ()

    def wrap(self, middleware: Middleware) -> MiddlewareStack:
        return MiddlewareStack(self.middlewares + (middleware,))

    def finalize(self, handler: Handler) -> Handler:
        for middleware in reversed(self.middlewares):
            handler = middleware(handler)
        return handler