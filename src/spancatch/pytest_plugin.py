"""pytest integration: the `span_catcher` fixture."""

from typing import Iterator

import pytest

from ._install import Catcher, install
from .rendering import render_spans

_catcher_key = pytest.StashKey[Catcher]()


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        "spancatch_report_spans",
        "Attach the recorded spans to the report of failed tests.",
        type="bool",
        default=True,
    )


@pytest.fixture
def span_catcher(request: pytest.FixtureRequest) -> Iterator[Catcher]:
    """Record every span started during the test.

    Failed results passed to `Catcher.expect` fail the test once it finishes.
    """
    with install() as catcher:
        request.node.stash[_catcher_key] = catcher
        yield catcher


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item) -> Iterator[None]:
    try:
        res = yield
    except BaseException as exc:
        # Attached to the test's own failure, so teardown doesn't raise them again.
        if (catcher := item.stash.get(_catcher_key, None)) is not None:
            for message in catcher.drain_failures():
                exc.add_note(message)
        raise
    catcher = item.stash.get(_catcher_key, None)
    if catcher is not None and (failures := catcher.drain_failures()):
        pytest.fail("\n".join(failures), pytrace=False)
    return res


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Iterator[pytest.TestReport]:
    report = yield
    catcher = item.stash.get(_catcher_key, None)
    if (
        catcher is not None
        and report.when == "call"
        and report.failed
        and item.config.getini("spancatch_report_spans")
    ):
        report.sections.append(("spancatch", render_spans(catcher.spans())))
    return report
