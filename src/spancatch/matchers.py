"""Composable predicates for picking spans out of a snapshot."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Protocol

from attrs import frozen
from opentelemetry.trace import StatusCode

from .sdk import Attribute

__all__ = [
    "MatchableSpan",
    "Matcher",
    "and_",
    "has_attribute",
    "name_equals",
    "not_",
    "or_",
    "predicate",
    "status_code_is",
]


class MatchableSpan(Protocol):
    """The read-only part of a span that matchers and assertions look at."""

    @property
    def span_id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def attributes(self) -> list[Attribute]: ...

    @property
    def status_code(self) -> StatusCode: ...

    @property
    def status_description(self) -> str: ...


class Matcher(ABC):
    """Base for span matchers. Combine them with `&`, `|` and `~`."""

    @abstractmethod
    def match(self, span: MatchableSpan) -> bool: ...

    def __call__(self, span: MatchableSpan) -> bool:
        return self.match(span)

    def __and__(self, other: Matcher) -> Matcher:
        return and_(self, other)

    def __or__(self, other: Matcher) -> Matcher:
        return or_(self, other)

    def __invert__(self) -> Matcher:
        return not_(self)


@frozen
class _Predicate(Matcher):
    fn: Callable[[MatchableSpan], bool]

    def match(self, span: MatchableSpan) -> bool:
        return bool(self.fn(span))


@frozen
class _NameEquals(Matcher):
    name: str

    def match(self, span: MatchableSpan) -> bool:
        return span.name == self.name


@frozen
class _HasAttribute(Matcher):
    key: str

    def match(self, span: MatchableSpan) -> bool:
        return any(k == self.key for k, _ in span.attributes)


@frozen
class _StatusCodeIs(Matcher):
    code: StatusCode

    def match(self, span: MatchableSpan) -> bool:
        return span.status_code == self.code


@frozen
class _And(Matcher):
    matchers: tuple[Matcher, ...]

    def match(self, span: MatchableSpan) -> bool:
        return all(m.match(span) for m in self.matchers)


@frozen
class _Or(Matcher):
    matchers: tuple[Matcher, ...]

    def match(self, span: MatchableSpan) -> bool:
        return any(m.match(span) for m in self.matchers)


@frozen
class _Not(Matcher):
    matcher: Matcher

    def match(self, span: MatchableSpan) -> bool:
        return not self.matcher.match(span)


def predicate(fn: Callable[[MatchableSpan], bool]) -> Matcher:
    """Wrap any function of a span into a matcher."""
    return _Predicate(fn)


def name_equals(name: str) -> Matcher:
    return _NameEquals(name)


def has_attribute(key: str) -> Matcher:
    return _HasAttribute(key)


def status_code_is(code: StatusCode) -> Matcher:
    return _StatusCodeIs(code)


def and_(*matchers: Matcher) -> Matcher:
    """Match if all matchers match. No matchers always match."""
    return _And(matchers)


def or_(*matchers: Matcher) -> Matcher:
    """Match if any matcher matches. No matchers never match."""
    return _Or(matchers)


def not_(matcher: Matcher) -> Matcher:
    return _Not(matcher)
