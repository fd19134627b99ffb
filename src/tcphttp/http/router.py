"""
=============================================================================
HANDLER REGISTRY AND DISPATCH
=============================================================================

Routing here is an exact dictionary lookup. No patterns, no path
parameters, no wildcards:

    key = path + "_" + method

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Dispatch Flow                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HttpMessage(GET, /ping)                                            │
    │        │                                                             │
    │        ▼                                                             │
    │   registry["/ping_GET"] ?                                            │
    │        │                                                             │
    │        ├── missing ──────────────────────► 404 "Not Found"           │
    │        │                                                             │
    │        └── found                                                     │
    │              │                                                       │
    │              ▼                                                       │
    │        handler(HandlerContext(..., response=Response()))             │
    │              │                                                       │
    │              ├── returns ──────────────► ctx.response (as mutated)   │
    │              │                                                       │
    │              └── raises, or leaves an unserializable response        │
    │                        │                                             │
    │                        ▼                                             │
    │                  500 "Internal Server Error"                         │
    │                  (handler headers kept, error logged, not sent)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

dispatch() never raises for a handler failure. The connection lifecycle
always gets a Response back.

=============================================================================
REGISTRATION
=============================================================================

    registry = HandlerRegistry()

    @registry.get("/ping")
    def ping(ctx):
        ctx.response.body = "pong"

    # or, with the flat mapping form:
    registry = HandlerRegistry.from_mapping({"/ping_GET": ping})

The registry is frozen when the server starts. After that it is only ever
read, so worker threads share it without locks.

=============================================================================
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Mapping, Optional

from ..errors import HandlerError
from .request import HttpMessage
from .response import Response


logger = logging.getLogger(__name__)


@dataclass
class HandlerContext:
    """
    What a handler gets to see and touch for one request.

    Everything except ``response`` is read-only input. The handler fills in
    ``response`` (status, headers, body); returning normally means success,
    raising means failure.

    Attributes:
        body:     The request's raw body text.
        headers:  The request's headers (read-only mapping).
        method:   Request method.
        path:     Request path (query included).
        cancel:   Set once the server starts shutting down. Long-running
                  handlers may poll ``cancel.is_set()``; nothing forces them
                  to stop.
        response: The response being built. Starts as 200 / "OK".
    """

    body: str
    headers: Mapping[str, str]
    method: str
    path: str
    cancel: threading.Event = field(default_factory=threading.Event)
    response: Response = field(default_factory=Response)

    @property
    def cancelled(self) -> bool:
        """True once shutdown has begun."""
        return self.cancel.is_set()


# A handler takes a context and fills in ctx.response. Return value ignored.
Handler = Callable[[HandlerContext], None]


def route_key(path: str, method: str) -> str:
    """
    Build the registry key for a path and method.

    Example:
        >>> route_key("/ping", "GET")
        '/ping_GET'
    """
    return f"{path}_{method}"


class HandlerRegistry:
    """
    Maps ``"<path>_<METHOD>"`` keys to handler callables.

    Keys are matched exactly (case-sensitive, no normalization). Call
    freeze() before sharing the registry across threads; the server does
    this for you when it starts.
    """

    def __init__(self, handlers: Optional[Mapping[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = {}
        self._frozen = False

        for key, handler in (handlers or {}).items():
            self._add(key, handler)

    @classmethod
    def from_mapping(cls, handlers: Mapping[str, Handler]) -> "HandlerRegistry":
        """
        Build a registry from a flat ``{"/path_METHOD": handler}`` mapping.

        This is the form configuration layers usually hand over.
        """
        return cls(handlers)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, path: str, method: str, handler: Handler) -> Handler:
        """
        Register ``handler`` for an exact path and method.

        Registering the same key twice replaces the earlier handler.

        Raises:
            RuntimeError: If the registry is frozen.
        """
        self._add(route_key(path, method), handler)
        return handler

    def _add(self, key: str, handler: Handler) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot register {key!r}: registry is frozen")
        if not callable(handler):
            raise TypeError(f"Handler for {key!r} is not callable")

        if key in self._handlers:
            logger.warning(f"Replacing handler for {key}")
        self._handlers[key] = handler

    def route(self, path: str, method: str) -> Callable[[Handler], Handler]:
        """
        Decorator form of register().

        Example:
            @registry.route("/users", "POST")
            def create_user(ctx):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            return self.register(path, method, handler)
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Register a GET handler."""
        return self.route(path, "GET")

    def post(self, path: str) -> Callable[[Handler], Handler]:
        """Register a POST handler."""
        return self.route(path, "POST")

    def put(self, path: str) -> Callable[[Handler], Handler]:
        """Register a PUT handler."""
        return self.route(path, "PUT")

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        """Register a DELETE handler."""
        return self.route(path, "DELETE")

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        """Register a PATCH handler."""
        return self.route(path, "PATCH")

    def freeze(self) -> None:
        """Disallow further registration."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def lookup(self, path: str, method: str) -> Optional[Handler]:
        """Return the handler for an exact path/method, or None."""
        return self._handlers.get(route_key(path, method))

    def __contains__(self, key: str) -> bool:
        return key in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def keys(self) -> list:
        """Registered keys, in registration order."""
        return list(self._handlers)

    def dispatch(
        self,
        request: HttpMessage,
        cancel: Optional[threading.Event] = None,
    ) -> Response:
        """Shortcut for dispatch(self, request, cancel)."""
        return dispatch(self, request, cancel)


def dispatch(
    registry: HandlerRegistry,
    request: HttpMessage,
    cancel: Optional[threading.Event] = None,
) -> Response:
    """
    Route a parsed request to its handler and return the final Response.

    Args:
        registry: The (frozen) handler registry.
        request: The parsed request.
        cancel: Shutdown event handed to the handler. A fresh, never-set
                event is used when omitted.

    Returns:
        200 (or whatever the handler set) on success, 404 when no handler
        is registered, 500 when the handler raised.
    """
    response = Response()
    key = route_key(request.path, request.method)

    handler = registry.lookup(request.path, request.method)
    if handler is None:
        # A routing miss is a normal outcome, not an error
        logger.debug(f"No handler for {key}")
        return response.not_found()

    ctx = HandlerContext(
        body=request.raw_body,
        headers=request.headers,
        method=request.method,
        path=request.path,
        cancel=cancel if cancel is not None else threading.Event(),
        response=response,
    )

    try:
        _invoke(handler, ctx, key)
    except HandlerError as e:
        # Detail stays in the server log; the client only sees the canned body
        logger.error(f"Handler for {key} failed: {e}", exc_info=e.__cause__)
        # Keep the handler's headers when they are still serializable
        response = ctx.response
        if not isinstance(response, Response) or not _headers_ok(response.headers):
            response = Response()
        return response.internal_server_error()

    return ctx.response


def _invoke(handler: Handler, ctx: HandlerContext, key: str) -> None:
    """Call the handler, wrapping any failure as a HandlerError."""
    try:
        handler(ctx)
    except Exception as e:
        raise HandlerError(f"{type(e).__name__}: {e}", route=key) from e

    problem = _response_problem(ctx.response)
    if problem:
        raise HandlerError(f"Handler left an unusable response: {problem}", route=key)


def _response_problem(response) -> Optional[str]:
    """Describe why ``response`` can't be serialized, or return None."""
    if not isinstance(response, Response):
        return f"replaced with {type(response).__name__}"
    if not isinstance(response.status_code, int):
        return f"status_code is {type(response.status_code).__name__}"
    if not isinstance(response.body, str):
        return f"body is {type(response.body).__name__}"
    if not _headers_ok(response.headers):
        return "headers are not a str -> str mapping"
    return None


def _headers_ok(headers) -> bool:
    return isinstance(headers, dict) and all(
        isinstance(name, str) and isinstance(value, str)
        for name, value in headers.items()
    )
