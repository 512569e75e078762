from typing import Annotated, Any

import fastapi

from bazaar.wire._app import Application
from bazaar.wire._codec import RequestResponseCodec
from bazaar.wire._endpoint import Endpoint
from bazaar.wire._types import Exposure, Handler, HTTPRouteTrigger, Path


def is_http(exposure: Exposure) -> bool:
    trigger, codec = exposure
    return isinstance(trigger, HTTPRouteTrigger) and isinstance(codec, RequestResponseCodec)


def compile_to_fastapi_route(
    endp: Endpoint,
) -> list[tuple[str, Path, Any]]:  # (method, path, route_func)
    routes: list[tuple[str, str, Any]] = []

    for exposure in endp.exposures:
        if not is_http(exposure):
            continue

        http_trigger: HTTPRouteTrigger = exposure[0]
        codec: RequestResponseCodec = exposure[1]

        def make_handler(
            req_cls: type[Any],
            resp_cls: type[Any],
            handler: Handler,
            codec: RequestResponseCodec,
            method: str,
        ) -> Any:
            async def _route_handler(req: Any, response: fastapi.Response) -> Any:
                result = await handler(req.to_domain())
                response.status_code = codec.status(result)
                return resp_cls.from_domain(result)

            # Query-string models for GET, JSON bodies otherwise
            if method == "GET":
                req_cls = Annotated[req_cls, fastapi.Query()]  # type: ignore

            _route_handler.__annotations__ = {
                "req": req_cls,
                "response": fastapi.Response,
                "return": resp_cls,
            }

            return _route_handler

        route = make_handler(
            codec.request, codec.response, endp.handler, codec, http_trigger.method
        )

        routes.append((http_trigger.method.upper(), http_trigger.path, route))

    return routes


def add_endpoint_to_app(
    app: fastapi.FastAPI,
    endp: Endpoint,
) -> None:
    for method, path, handler in compile_to_fastapi_route(endp):
        route_method = getattr(app, method.lower(), None)
        if route_method is None:
            raise ValueError(f"Unsupported HTTP method: {method}")

        route_method(path)(handler)


def from_application(app: Application, **options: Any) -> fastapi.FastAPI:
    f_app = fastapi.FastAPI(**options)

    for endp in app.endpoints:
        add_endpoint_to_app(f_app, endp)

    return f_app


__all__ = ("add_endpoint_to_app", "from_application", "compile_to_fastapi_route")
