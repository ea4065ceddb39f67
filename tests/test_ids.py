from spancatch import IdGenerator


def test_ids_fit_their_widths() -> None:
    ids = IdGenerator()
    for _ in range(100):
        assert 0 <= ids.generate_trace_id() < 2**128
        assert 0 <= ids.generate_span_id() < 2**64


def test_ids_are_distinct() -> None:
    """Back-to-back ids differ, even within one clock tick."""
    ids = IdGenerator()
    trace_ids = {ids.generate_trace_id() for _ in range(1000)}
    span_ids = {ids.generate_span_id() for _ in range(1000)}

    assert len(trace_ids) == 1000
    assert len(span_ids) == 1000
    assert 0 not in trace_ids
    assert 0 not in span_ids
