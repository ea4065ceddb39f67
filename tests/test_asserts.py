import pytest
from opentelemetry.trace import StatusCode

from spancatch import Span, SpanAssertion, TracerProvider
from spancatch.asserts import (
    AssertionResult,
    all_ended,
    attribute_exists,
    attribute_present_and_equals,
    span_count,
    status_code_equals,
    values_equal,
)


def _spans(*attributes: dict) -> list[Span]:
    provider = TracerProvider()
    tracer = provider.get_tracer("service")
    for i, attrs in enumerate(attributes):
        tracer.start_span(f"span-{i}", attributes=attrs).end()
    return provider.get_spans()


def test_span_count() -> None:
    spans = _spans({}, {}, {})

    assert span_count(3).check(spans) == AssertionResult()
    for wrong in (2, 4):
        result = span_count(wrong).check(spans)
        assert result.failed
        assert result.message == f"Expected {wrong} spans, got 3"


def test_attribute_exists() -> None:
    spans = _spans({"key": 1, "a": 1}, {"key": "x", "b": 2})

    assert not attribute_exists("key").check(spans).failed
    assert not attribute_exists("anything").check([]).failed


def test_attribute_exists_checks_every_span() -> None:
    spans = _spans({"key": 1}, {"key": 2}, {"other": 3})

    result = attribute_exists("key").check(spans)

    assert result.failed
    assert spans[2].span_id in result.message
    assert "key" in result.message


def test_attribute_present_and_equals() -> None:
    spans = _spans({"id": "abc123"}, {"id": "abc123", "extra": 1})

    assert attribute_present_and_equals("id", "abc123").check(spans)

    result = attribute_present_and_equals("id", "wrong").check(spans)
    assert result.failed
    assert spans[0].span_id in result.message
    assert "id" in result.message


def test_attribute_present_and_equals_checks_every_span() -> None:
    spans = _spans({"id": "abc123"}, {"id": "nope"})

    result = attribute_present_and_equals("id", "abc123").check(spans)

    assert result.failed
    assert spans[1].span_id in result.message


def test_duplicate_keys_any_entry_satisfies() -> None:
    (span,) = _spans({"id": "first"})
    span.set_attribute("id", "second")

    assert attribute_present_and_equals("id", "first").check([span])
    assert attribute_present_and_equals("id", "second").check([span])


def test_types_are_strict() -> None:
    spans = _spans({"count": 3})

    assert attribute_present_and_equals("count", 3).check(spans)
    assert attribute_present_and_equals("count", 3.0).check(spans).failed
    assert attribute_present_and_equals("count", "3").check(spans).failed


@pytest.mark.parametrize(
    ("a", "b", "equal"),
    [
        (True, True, True),
        (True, 1, False),
        (1, 1.0, False),
        ("a", "a", True),
        ([1, 2], (1, 2), True),
        ([1, 2], [2, 1], False),
        ([1, 2], [1, 2, 3], False),
        ([1, 2], [1.0, 2.0], False),
        ([True], [1], False),
        (["a"], "a", False),
        ([], (), True),
    ],
)
def test_values_equal(a, b, equal: bool) -> None:
    assert values_equal(a, b) is equal


def test_status_code_equals() -> None:
    spans = _spans({}, {})
    spans[1].set_status(StatusCode.ERROR, "broken")

    assert not status_code_equals(StatusCode.UNSET).check(spans[:1]).failed
    result = status_code_equals(StatusCode.UNSET).check(spans)
    assert result.failed
    assert spans[1].span_id in result.message
    assert "broken" in result.message


def test_all_ended() -> None:
    provider = TracerProvider()
    tracer = provider.get_tracer("service")
    tracer.start_span("done").end()
    pending = tracer.start_span("pending")

    result = all_ended().check(provider.get_spans())

    assert result.failed
    assert pending.span_id in result.message


def test_custom_assertion_must_implement_check() -> None:
    class Incomplete(SpanAssertion):
        pass

    class NonEmpty(SpanAssertion):
        def check(self, spans) -> AssertionResult:
            return AssertionResult(not spans, "no spans")

    with pytest.raises(TypeError):
        Incomplete()
    assert NonEmpty()(_spans({}))
    assert NonEmpty()([]).message == "no spans"
