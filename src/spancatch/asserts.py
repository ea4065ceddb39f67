"""Assertions over sets of spans.

An assertion is checked against a whole set of spans and produces a single
`AssertionResult`. Nothing here knows about test frameworks; see
`Catcher.expect` and `Catcher.require` for turning results into failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Sequence

from attrs import frozen
from opentelemetry.trace import StatusCode
from opentelemetry.util.types import AttributeValue
from orjson import dumps

from .matchers import MatchableSpan

__all__ = [
    "AssertionResult",
    "SpanAssertion",
    "all_ended",
    "attribute_exists",
    "attribute_present_and_equals",
    "span_count",
    "status_code_equals",
    "values_equal",
]


@frozen
class AssertionResult:
    failed: bool = False
    message: str = ""

    def __bool__(self) -> bool:
        return not self.failed


_PASSED = AssertionResult()


def _failure(message: str) -> AssertionResult:
    return AssertionResult(True, message)


def _describe(span: MatchableSpan) -> str:
    attributes = dumps(span.attributes, default=repr).decode()
    return f"span {span.span_id} ({span.name!r}, attributes: {attributes})"


class SpanAssertion(ABC):
    """Base for assertions over a set of spans."""

    @abstractmethod
    def check(self, spans: Sequence[MatchableSpan]) -> AssertionResult: ...

    def __call__(self, spans: Sequence[MatchableSpan]) -> AssertionResult:
        return self.check(spans)


def values_equal(a: AttributeValue, b: AttributeValue) -> bool:
    """Compare attribute values without coercion.

    `True`, `1` and `1.0` are all different values here. Sequences compare
    element-wise, lists and tuples being interchangeable.
    """
    a_seq = isinstance(a, (list, tuple))
    b_seq = isinstance(b, (list, tuple))
    if a_seq or b_seq:
        return (
            a_seq
            and b_seq
            and len(a) == len(b)
            and all(_scalars_equal(x, y) for x, y in zip(a, b))
        )
    return _scalars_equal(a, b)


def _scalars_equal(a: object, b: object) -> bool:
    return type(a) is type(b) and a == b


def _has_key(span: MatchableSpan, key: str) -> bool:
    return any(k == key for k, _ in span.attributes)


def _has_value(span: MatchableSpan, key: str, value: AttributeValue) -> bool:
    return any(k == key and values_equal(v, value) for k, v in span.attributes)


def _first_offender(
    spans: Iterable[MatchableSpan], ok: Callable[[MatchableSpan], bool]
) -> MatchableSpan | None:
    for span in spans:
        if not ok(span):
            return span
    return None


@frozen
class _SpanCount(SpanAssertion):
    count: int

    def check(self, spans: Sequence[MatchableSpan]) -> AssertionResult:
        if len(spans) != self.count:
            return _failure(f"Expected {self.count} spans, got {len(spans)}")
        return _PASSED


@frozen
class _AttributeExists(SpanAssertion):
    key: str

    def check(self, spans: Sequence[MatchableSpan]) -> AssertionResult:
        span = _first_offender(spans, lambda s: _has_key(s, self.key))
        if span is not None:
            return _failure(
                f"Expected attribute {self.key} to exist on {_describe(span)}, "
                "but it didn't"
            )
        return _PASSED


@frozen
class _AttributePresentAndEquals(SpanAssertion):
    key: str
    value: AttributeValue

    def check(self, spans: Sequence[MatchableSpan]) -> AssertionResult:
        span = _first_offender(spans, lambda s: _has_value(s, self.key, self.value))
        if span is not None:
            return _failure(
                f"Expected attribute {self.key}={self.value!r} "
                f"({type(self.value).__name__}) on {_describe(span)}, "
                "but it wasn't there"
            )
        return _PASSED


@frozen
class _StatusCodeEquals(SpanAssertion):
    code: StatusCode

    def check(self, spans: Sequence[MatchableSpan]) -> AssertionResult:
        span = _first_offender(spans, lambda s: s.status_code == self.code)
        if span is not None:
            return _failure(
                f"Expected status {self.code.name} on {_describe(span)}, "
                f"got {span.status_code.name} {span.status_description!r}"
            )
        return _PASSED


@frozen
class _AllEnded(SpanAssertion):
    def check(self, spans: Sequence[MatchableSpan]) -> AssertionResult:
        span = _first_offender(spans, lambda s: s.is_ended)  # type: ignore
        if span is not None:
            return _failure(f"Expected {_describe(span)} to be ended, but it wasn't")
        return _PASSED


def span_count(count: int) -> SpanAssertion:
    return _SpanCount(count)


def attribute_exists(key: str) -> SpanAssertion:
    """Every span must carry `key` at least once."""
    return _AttributeExists(key)


def attribute_present_and_equals(key: str, value: AttributeValue) -> SpanAssertion:
    """Every span must carry `key` at least once with exactly `value`.

    When a key was set several times, any one matching entry is enough.
    """
    return _AttributePresentAndEquals(key, value)


def status_code_equals(code: StatusCode) -> SpanAssertion:
    return _StatusCodeEquals(code)


def all_ended() -> SpanAssertion:
    """Every span must have been ended."""
    return _AllEnded()
