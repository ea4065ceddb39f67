"""Pseudo-random trace and span identifiers.

A fresh PRNG is seeded from the wall clock on every call, so nothing is shared
between threads. Not suitable outside of tests.
"""

from itertools import count
from random import Random
from time import time_ns

__all__ = ["IdGenerator"]

_seed_cnt = count().__next__


def _fresh_random() -> Random:
    return Random(time_ns() ^ (_seed_cnt() << 64))


class IdGenerator:
    """Generates 16-byte trace ids and 8-byte span ids."""

    def generate_trace_id(self) -> int:
        return int.from_bytes(_fresh_random().randbytes(16))

    def generate_span_id(self) -> int:
        return int.from_bytes(_fresh_random().randbytes(8))
