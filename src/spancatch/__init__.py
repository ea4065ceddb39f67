"""Capture OpenTelemetry spans in tests, and make assertions about them."""

from ._ids import IdGenerator
from ._install import (
    AlreadyInstalledError,
    Catcher,
    SpanAssertionError,
    current_catcher,
    install,
)
from .asserts import AssertionResult, SpanAssertion
from .matchers import MatchableSpan, Matcher
from .sdk import Attribute, Span, Tracer, TracerProvider

__all__ = [
    "AlreadyInstalledError",
    "AssertionResult",
    "Attribute",
    "Catcher",
    "IdGenerator",
    "MatchableSpan",
    "Matcher",
    "Span",
    "SpanAssertion",
    "SpanAssertionError",
    "Tracer",
    "TracerProvider",
    "current_catcher",
    "install",
]
