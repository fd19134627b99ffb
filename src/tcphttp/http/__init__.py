"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that understands HTTP but never touches a socket:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes ──► HttpMessage        (parse_request)       │
    │ router.py        HttpMessage ──► Response     (dispatch)            │
    │ response.py      Response ──► bytes           (serialize)           │
    │ status_codes.py  status code ──► reason phrase                      │
    └─────────────────────────────────────────────────────────────────────┘

All of it is pure and can be unit-tested without a network.

=============================================================================
"""

from .status_codes import HTTPStatus, reason_phrase
from .request import HttpMessage, parse_request
from .response import Response, serialize, DEFAULT_SERVER_NAME
from .router import HandlerContext, HandlerRegistry, Handler, dispatch, route_key


__all__ = [
    "HTTPStatus",
    "reason_phrase",
    "HttpMessage",
    "parse_request",
    "Response",
    "serialize",
    "DEFAULT_SERVER_NAME",
    "HandlerContext",
    "HandlerRegistry",
    "Handler",
    "dispatch",
    "route_key",
]
