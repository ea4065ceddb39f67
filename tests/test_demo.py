from aiohttp import test_utils
from opentelemetry.trace import SpanKind

from spancatch import Catcher
from spancatch.asserts import (
    all_ended,
    attribute_exists,
    attribute_present_and_equals,
    span_count,
)
from spancatch.demo import make_app
from spancatch.matchers import name_equals


async def test_request(span_catcher: Catcher) -> None:
    """The request id header ends up on the `writeHello` span."""
    req_id = "spancatch-test-request-id"

    async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
        resp = await client.get("/hello", headers={"Internal-Request-ID": req_id})
        assert resp.status == 200
        assert await resp.text() == "Hello, world!"

    spans = span_catcher.matching(name_equals("writeHello"))
    assert len(spans) == 1

    span_catcher.expect(span_count(1).check(spans))
    span_catcher.expect(
        attribute_present_and_equals("internal.request.id", req_id)(spans)
    )
    span_catcher.expect(all_ended()(span_catcher.spans()))

    wrong = attribute_present_and_equals("internal.request.id", "wrong").check(spans)
    assert wrong.failed
    assert spans[0].span_id in wrong.message
    assert "internal.request.id" in wrong.message


async def test_request_id_generated(span_catcher: Catcher) -> None:
    async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
        resp = await client.get("/hello")
        assert resp.status == 200

    spans = span_catcher.matching(name_equals("writeHello"))
    span_catcher.require(span_count(1).check(spans))
    span_catcher.require(attribute_exists("internal.request.id").check(spans))
    ((_, req_id),) = spans[0].attributes
    assert len(req_id) == 32


async def test_handler_span_is_child_of_server_span(span_catcher: Catcher) -> None:
    async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
        await client.get("/hello")

    (server,) = span_catcher.matching(name_equals("greet"))
    (handler,) = span_catcher.matching(name_equals("writeHello"))

    assert server.kind is SpanKind.SERVER
    assert handler.trace_id == server.trace_id
    assert handler.span_id != server.span_id
    span_catcher.expect(
        attribute_present_and_equals("http.response.status_code", 200)([server])
    )
