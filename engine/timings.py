"""
Timing instrumentation for propagators.

Instrumentation is off by default. When enabled, every propagator records
nested named spans ("prop_step", "matrix-vector product") with call counts
and elapsed time.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

_TIMINGS_ENABLED = False


def enable_timings() -> None:
    global _TIMINGS_ENABLED
    _TIMINGS_ENABLED = True


def disable_timings() -> None:
    global _TIMINGS_ENABLED
    _TIMINGS_ENABLED = False


def timings_enabled() -> bool:
    return _TIMINGS_ENABLED


@dataclass
class TimingRecord:
    """Call count and accumulated time (ns) for one named span."""
    name: str
    ncalls: int = 0
    time_ns: int = 0
    children: Dict[str, 'TimingRecord'] = field(default_factory=dict)

    @property
    def time(self) -> float:
        """Accumulated time in seconds."""
        return self.time_ns * 1e-9


class TimingData:
    """
    Nested timing record queryable by span name.

    Usage:
        timing_data = TimingData()
        with timing_data.span("prop_step"):
            with timing_data.span("matrix-vector product"):
                ...
        flat = timing_data.flatten()
        flat["matrix-vector product"].ncalls
    """

    def __init__(self):
        self.root = TimingRecord("root")
        self._stack: List[TimingRecord] = [self.root]

    @contextmanager
    def span(self, name: str) -> Iterator[TimingRecord]:
        parent = self._stack[-1]
        record = parent.children.get(name)
        if record is None:
            record = parent.children[name] = TimingRecord(name)
        self._stack.append(record)
        start = time.perf_counter_ns()
        try:
            yield record
        finally:
            record.time_ns += time.perf_counter_ns() - start
            record.ncalls += 1
            self._stack.pop()

    def flatten(self) -> Dict[str, TimingRecord]:
        """Merge all spans with the same name, regardless of nesting."""
        flat: Dict[str, TimingRecord] = {}

        def visit(record: TimingRecord) -> None:
            for child in record.children.values():
                total = flat.setdefault(child.name, TimingRecord(child.name))
                total.ncalls += child.ncalls
                total.time_ns += child.time_ns
                visit(child)

        visit(self.root)
        return flat

    def reset(self) -> None:
        self.root = TimingRecord("root")
        self._stack = [self.root]


@contextmanager
def maybe_span(timing_data: Optional[TimingData], name: str) -> Iterator[None]:
    """Record a span only if `timing_data` is given."""
    if timing_data is None:
        yield
    else:
        with timing_data.span(name):
            yield
