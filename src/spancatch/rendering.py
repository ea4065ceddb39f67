"""Drawing recorded spans in the terminal."""

from typing import Sequence

from opentelemetry.trace import StatusCode
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .sdk import Span

__all__ = ["print_spans", "render_spans", "spans_table"]

_STATUS_STYLES = {
    StatusCode.UNSET: "dim",
    StatusCode.OK: "sea_green2",
    StatusCode.ERROR: "bold red",
}


def spans_table(spans: Sequence[Span]) -> Table:
    """A table of spans, in the order they were started."""
    table = Table(title=f"{len(spans)} recorded span(s)")
    table.add_column("span", style="dim", no_wrap=True)
    table.add_column("trace", style="dim", no_wrap=True)
    table.add_column("name", style="bold white")
    table.add_column("kind")
    table.add_column("status")
    table.add_column("ended")
    table.add_column("attributes")

    for span in spans:
        code = span.status_code
        status = Text(code.name, style=_STATUS_STYLES[code])
        if description := span.status_description:
            status.append(f" {description}", style="italic")
        table.add_row(
            span.span_id,
            span.trace_id[:16],
            Text(span.name),
            span.kind.name.lower(),
            status,
            "yes" if span.is_ended else "[yellow]no[/]",
            " ".join(
                f"{escape(k)}=[magenta]{escape(repr(v))}[/]"
                for k, v in span.attributes
            ),
        )
    return table


def render_spans(spans: Sequence[Span], width: int = 120) -> str:
    """Render the span table to a plain string."""
    console = Console(width=width, force_terminal=False, color_system=None)
    with console.capture() as capture:
        console.print(spans_table(spans))
    return capture.get()


def print_spans(spans: Sequence[Span]) -> None:
    """Format spans with Rich and print them out in the terminal."""
    Console().print(spans_table(spans))
