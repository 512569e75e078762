"""
Wire — expose domain handlers via triggers and codecs.

    from bazaar import wire as W

    endp = W.endpoint(handle_place_order).expose(
        W.HTTPRouteTrigger("POST", "/checkout"),
        W.RequestResponseCodec(PlaceOrderIn, OrderOut, status=status_of),
    )
    app = W.from_application(W.application().mount(endp))
"""

from bazaar.wire._endpoint import Endpoint, endpoint
from bazaar.wire._app import Application, application
from bazaar.wire._types import (
    Method,
    Path,
    HTTPRouteTrigger,
    Handler,
    Trigger,
    Codec,
    Exposure,
)
from bazaar.wire._codec import RequestResponseCodec, ToDomain, FromDomain, always_ok
from bazaar.wire._fastapi import (
    add_endpoint_to_app,
    compile_to_fastapi_route,
    from_application,
)

__all__ = (
    "Endpoint",
    "endpoint",
    "Application",
    "application",
    "Method",
    "Path",
    "HTTPRouteTrigger",
    "Handler",
    "Trigger",
    "Codec",
    "Exposure",
    "RequestResponseCodec",
    "ToDomain",
    "FromDomain",
    "always_ok",
    "add_endpoint_to_app",
    "compile_to_fastapi_route",
    "from_application",
)
