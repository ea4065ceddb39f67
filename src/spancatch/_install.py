"""Installing the recording provider as the global OpenTelemetry provider."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, contextmanager
from threading import Lock
from typing import Any, Iterator

from attrs import Factory, define, field
from opentelemetry import context as context_api
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.util._once import Once
from opentelemetry.util.types import Attributes

from .asserts import AssertionResult
from .matchers import Matcher
from .sdk import Span, Tracer, TracerProvider

__all__ = [
    "AlreadyInstalledError",
    "Catcher",
    "SpanAssertionError",
    "current_catcher",
    "install",
]

logger = logging.getLogger(__name__)

_CATCHER_KEY = context_api.create_key("spancatch-catcher")

# Held for as long as a provider is installed.
_slot = Lock()


class AlreadyInstalledError(RuntimeError):
    """A second provider was installed while another one was active."""


class SpanAssertionError(AssertionError):
    """Raised for failed span assertions."""


@define
class Catcher:
    """A handle on the installed provider for the duration of one test."""

    provider: TracerProvider = Factory(TracerProvider)
    failures: list[str] = field(factory=list, init=False)

    def spans(self) -> list[Span]:
        """A snapshot of every span started since installation."""
        return self.provider.get_spans()

    def matching(self, matcher: Matcher) -> list[Span]:
        return [s for s in self.provider.get_spans() if matcher.match(s)]

    def tracer(self, name: str = "spancatch") -> Tracer:
        return self.provider.get_tracer(name)

    @property
    def context(self) -> Context:
        """The current context, carrying this catcher."""
        return context_api.set_value(_CATCHER_KEY, self)

    def expect(self, result: AssertionResult) -> bool:
        """Record a failed result without stopping the test.

        Returns whether the result passed.
        """
        if result.failed:
            self.failures.append(result.message)
        return not result.failed

    def require(self, result: AssertionResult) -> None:
        """Stop the test right away if the result failed."""
        if result.failed:
            raise SpanAssertionError(result.message)

    def drain_failures(self) -> list[str]:
        """Remove and return the failures collected by `expect`."""
        failures = self.failures[:]
        self.failures.clear()
        return failures


@define(eq=False)
class _ForwardingTracer(trace.Tracer):
    """Starts spans with whichever provider is current at start time."""

    _forwarder: _ForwardingProvider = field(repr=False)
    name: str
    version: str | None = None
    schema_url: str | None = None
    attributes: Attributes = None

    def _tracer(self) -> trace.Tracer:
        return self._forwarder.target().get_tracer(
            self.name, self.version, self.schema_url, self.attributes
        )

    def start_span(self, *args: Any, **kwargs: Any) -> trace.Span:
        return self._tracer().start_span(*args, **kwargs)

    def start_as_current_span(
        self, *args: Any, **kwargs: Any
    ) -> AbstractContextManager[trace.Span]:
        return self._tracer().start_as_current_span(*args, **kwargs)


@define(eq=False)
class _ForwardingProvider(trace.TracerProvider):
    """The provider installed globally, for the whole process.

    Tracers it hands out outlive any one installation, so a tracer fetched at
    import time still records into the catcher of the current test.
    """

    catcher: Catcher | None = None

    def target(self) -> trace.TracerProvider:
        """The current catcher's provider, else the global one."""
        if (catcher := self.catcher) is not None:
            return catcher.provider
        provider = trace.get_tracer_provider()
        if provider is self:
            return trace.NoOpTracerProvider()
        return provider

    def get_tracer(
        self,
        instrumenting_module_name: str,
        instrumenting_library_version: str | None = None,
        schema_url: str | None = None,
        attributes: Attributes = None,
    ) -> trace.Tracer:
        return _ForwardingTracer(
            self,
            instrumenting_module_name,
            instrumenting_library_version,
            schema_url,
            attributes,
        )


_forwarder = _ForwardingProvider()


def current_catcher(context: Context | None = None) -> Catcher | None:
    """The catcher carried by a context, if any."""
    return context_api.get_value(_CATCHER_KEY, context)  # type: ignore


def _swap_global_provider(
    provider: trace.TracerProvider | None,
) -> trace.TracerProvider | None:
    """Replace the global tracer provider, returning the previous one.

    The API only allows setting the global provider once, so the guard is
    reset first.
    """
    previous = trace._TRACER_PROVIDER
    trace._TRACER_PROVIDER_SET_ONCE = Once()
    trace._TRACER_PROVIDER = None
    if provider is not None:
        trace.set_tracer_provider(provider)
    return previous


@contextmanager
def install(catcher: Catcher | None = None) -> Iterator[Catcher]:
    """Record every span started globally for the duration of the block.

    Only one may be installed at a time, across all threads. Installing a
    second one raises `AlreadyInstalledError` immediately. The previous global
    provider is restored when the block exits.

    Failures collected by `Catcher.expect` are raised as a
    `SpanAssertionError` when the block exits cleanly.
    """
    if not _slot.acquire(blocking=False):
        logger.debug("Refusing to install a second tracer provider")
        raise AlreadyInstalledError(
            "Only one spancatch tracer provider can be installed at a time"
        )
    try:
        catcher = catcher if catcher is not None else Catcher()
        previous = _swap_global_provider(_forwarder)
        _forwarder.catcher = catcher
        logger.debug("Installed %r, replacing %r", catcher.provider, previous)
        try:
            yield catcher
        finally:
            _forwarder.catcher = None
            _swap_global_provider(previous)
            logger.debug("Restored %r", previous)
    finally:
        _slot.release()

    if failures := catcher.drain_failures():
        raise SpanAssertionError("\n".join(failures))
