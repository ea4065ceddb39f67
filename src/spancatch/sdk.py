"""A recording OpenTelemetry tracer provider for tests.

Every span started through a `TracerProvider` is stored the moment it starts,
is always sampled, and stays inspectable (and mutable) after it ends.
"""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from time import time_ns
from typing import Iterator, Mapping, Sequence, TypeAlias

from attrs import Factory, define, field
from opentelemetry import context as context_api
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import (
    INVALID_TRACE_ID,
    Link,
    SpanContext,
    SpanKind,
    Status,
    StatusCode,
    TraceFlags,
    format_span_id,
    format_trace_id,
)
from opentelemetry.util.types import Attributes, AttributeValue

from ._ids import IdGenerator

__all__ = ["Span", "Tracer", "TracerProvider", "Attribute"]

Attribute: TypeAlias = tuple[str, AttributeValue]


def _copy_value(value: AttributeValue) -> AttributeValue:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return value


def _copy_attributes(attributes: Attributes) -> list[Attribute]:
    if not attributes:
        return []
    return [(k, _copy_value(v)) for k, v in attributes.items()]


@define(eq=False)
class Span(trace.Span):
    """A span that records everything done to it."""

    _context: SpanContext
    _name: str
    _provider: TracerProvider = field(repr=False)
    _kind: SpanKind = SpanKind.INTERNAL
    _start_time: int = 0
    _attributes: list[Attribute] = Factory(list)
    _links: list[Link] = Factory(list)
    _status_code: StatusCode = StatusCode.UNSET
    _status_description: str = ""
    _events: list[str] = Factory(list)
    _errors: list[BaseException] = Factory(list)
    _end_time: int | None = None
    _lock: Lock = field(factory=Lock, init=False, repr=False)

    def end(self, end_time: int | None = None) -> None:
        """End the span. Ending twice keeps the first end time."""
        with self._lock:
            if self._end_time is None:
                self._end_time = end_time or time_ns()

    def get_span_context(self) -> SpanContext:
        with self._lock:
            return self._context

    def set_attributes(self, attributes: Mapping[str, AttributeValue]) -> None:
        """Append attributes. Existing entries with the same keys are kept."""
        new = _copy_attributes(attributes)
        with self._lock:
            self._attributes.extend(new)

    def set_attribute(self, key: str, value: AttributeValue) -> None:
        value = _copy_value(value)
        with self._lock:
            self._attributes.append((key, value))

    def add_event(
        self, name: str, attributes: Attributes = None, timestamp: int | None = None
    ) -> None:
        with self._lock:
            self._events.append(name)

    def add_link(self, context: SpanContext, attributes: Attributes = None) -> None:
        link = Link(context, attributes)
        with self._lock:
            self._links.append(link)

    def update_name(self, name: str) -> None:
        with self._lock:
            self._name = name

    def is_recording(self) -> bool:
        return True

    def set_status(
        self, status: Status | StatusCode, description: str | None = None
    ) -> None:
        """Replace the current status; the last call wins."""
        if isinstance(status, Status):
            code = status.status_code
            description = status.description if description is None else description
        else:
            code = status
        with self._lock:
            self._status_code = code
            self._status_description = description or ""

    def record_exception(
        self,
        exception: BaseException,
        attributes: Attributes = None,
        timestamp: int | None = None,
        escaped: bool = False,
    ) -> None:
        with self._lock:
            self._errors.append(exception)

    @property
    def context(self) -> SpanContext:
        return self.get_span_context()

    @property
    def span_id(self) -> str:
        """The span id, as 16 hex characters."""
        return format_span_id(self.get_span_context().span_id)

    @property
    def trace_id(self) -> str:
        """The trace id, as 32 hex characters."""
        return format_trace_id(self.get_span_context().trace_id)

    @property
    def name(self) -> str:
        with self._lock:
            return self._name

    @property
    def kind(self) -> SpanKind:
        with self._lock:
            return self._kind

    @property
    def attributes(self) -> list[Attribute]:
        """A copy of the attributes, in the order they were set."""
        with self._lock:
            return list(self._attributes)

    @property
    def links(self) -> list[Link]:
        with self._lock:
            return list(self._links)

    @property
    def status_code(self) -> StatusCode:
        with self._lock:
            return self._status_code

    @property
    def status_description(self) -> str:
        with self._lock:
            return self._status_description

    @property
    def events(self) -> list[str]:
        with self._lock:
            return list(self._events)

    @property
    def errors(self) -> list[BaseException]:
        with self._lock:
            return list(self._errors)

    @property
    def start_time(self) -> int:
        with self._lock:
            return self._start_time

    @property
    def end_time(self) -> int | None:
        with self._lock:
            return self._end_time

    @property
    def is_ended(self) -> bool:
        with self._lock:
            return self._end_time is not None


@define(eq=False)
class Tracer(trace.Tracer):
    """Starts spans and stores them in its provider."""

    _provider: TracerProvider = field(repr=False)
    name: str
    version: str | None = None
    schema_url: str | None = None
    attributes: Attributes = None

    def start(
        self,
        name: str,
        context: Context | None = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes = None,
        links: Sequence[Link] | None = None,
        start_time: int | None = None,
        *,
        new_root: bool = False,
    ) -> tuple[Context, Span]:
        """Start a span, returning it and a context holding it.

        Without a context the current one is used. With `new_root`, any span
        in the context is ignored and a new trace is started.
        """
        if context is None:
            context = context_api.get_current()

        if new_root:
            parent = trace.INVALID_SPAN_CONTEXT
            context = trace.set_span_in_context(trace.INVALID_SPAN, context)
        else:
            parent = trace.get_current_span(context).get_span_context()

        ids = self._provider.id_generator
        trace_id = parent.trace_id
        if trace_id == INVALID_TRACE_ID:
            trace_id = ids.generate_trace_id()

        span_context = SpanContext(
            trace_id=trace_id,
            span_id=ids.generate_span_id(),
            is_remote=False,
            # Everything is sampled, so nothing goes missing from the store.
            trace_flags=TraceFlags(parent.trace_flags | TraceFlags.SAMPLED),
            trace_state=parent.trace_state,
        )
        span = Span(
            span_context,
            name,
            self._provider,
            kind=kind,
            start_time=start_time or time_ns(),
            attributes=_copy_attributes(attributes),
            links=list(links or ()),
        )
        self._provider._store_span(span)

        return trace.set_span_in_context(span, context), span

    def start_span(
        self,
        name: str,
        context: Context | None = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes = None,
        links: Sequence[Link] | None = None,
        start_time: int | None = None,
        record_exception: bool = True,
        set_status_on_exception: bool = True,
        *,
        new_root: bool = False,
    ) -> Span:
        _, span = self.start(
            name, context, kind, attributes, links, start_time, new_root=new_root
        )
        return span

    @contextmanager
    def start_as_current_span(
        self,
        name: str,
        context: Context | None = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes = None,
        links: Sequence[Link] | None = None,
        start_time: int | None = None,
        record_exception: bool = True,
        set_status_on_exception: bool = True,
        end_on_exit: bool = True,
        *,
        new_root: bool = False,
    ) -> Iterator[Span]:
        """Start a span and make it current for the duration of the block."""
        span = self.start_span(
            name, context, kind, attributes, links, start_time, new_root=new_root
        )
        with trace.use_span(
            span,
            end_on_exit=end_on_exit,
            record_exception=record_exception,
            set_status_on_exception=set_status_on_exception,
        ) as current:
            yield current


@define(eq=False)
class TracerProvider(trace.TracerProvider):
    """Hands out tracers and keeps every span they start."""

    id_generator: IdGenerator = Factory(IdGenerator)
    _spans: list[Span] = field(factory=list, init=False, repr=False)
    _lock: Lock = field(factory=Lock, init=False, repr=False)

    def get_tracer(
        self,
        instrumenting_module_name: str,
        instrumenting_library_version: str | None = None,
        schema_url: str | None = None,
        attributes: Attributes = None,
    ) -> Tracer:
        return Tracer(
            self,
            instrumenting_module_name,
            instrumenting_library_version,
            schema_url,
            attributes,
        )

    def get_spans(self) -> list[Span]:
        """Every span started so far, ended or not, in start order.

        The returned list is a copy; the store keeps growing independently.
        """
        with self._lock:
            return list(self._spans)

    def _store_span(self, span: Span) -> None:
        with self._lock:
            self._spans.append(span)
