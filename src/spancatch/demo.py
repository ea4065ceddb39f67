"""A small aiohttp app that emits spans, used to show off `spancatch`."""

from secrets import token_hex
from typing import Awaitable, Callable

from aiohttp import web
from opentelemetry import trace
from opentelemetry.trace import SpanKind

__all__ = ["hello", "make_app", "tracing_middleware"]

REQUEST_ID_HEADER = "Internal-Request-ID"


@web.middleware
async def tracing_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Wrap every request in a server span.

    Incoming trace headers are not read; every request starts a new trace.
    Real services would use the middleware from
    `opentelemetry-instrumentation-aiohttp-server` instead.
    """
    tracer = trace.get_tracer("http")
    with tracer.start_as_current_span(
        "greet",
        kind=SpanKind.SERVER,
        attributes={"http.request.method": request.method, "url.path": request.path},
    ) as span:
        resp = await handler(request)
        span.set_attribute("http.response.status_code", resp.status)
        return resp


async def hello(request: web.Request) -> web.Response:
    # Looked up per request, so whichever provider is installed gets the span.
    tracer = trace.get_tracer("write")
    with tracer.start_as_current_span("writeHello") as span:
        req_id = request.headers.get(REQUEST_ID_HEADER) or token_hex(16)
        span.set_attribute("internal.request.id", req_id)
        return web.Response(text="Hello, world!")


def make_app() -> web.Application:
    app = web.Application(middlewares=[tracing_middleware])
    app.router.add_get("/hello", hello)
    return app
