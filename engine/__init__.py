"""Reference propagator, timing instrumentation and benchmark systems."""

from .propagator import DensePropagator, DynamicGenerator, init_prop, propagate
from .timings import (
    TimingData, TimingRecord, enable_timings, disable_timings, timings_enabled
)
from .systems import (
    BenchmarkSystem, generate_system, generate_exact_solution,
    do_not_use_exact_solution
)

__all__ = [
    'DensePropagator', 'DynamicGenerator', 'init_prop', 'propagate',
    'TimingData', 'TimingRecord', 'enable_timings', 'disable_timings',
    'timings_enabled',
    'BenchmarkSystem', 'generate_system', 'generate_exact_solution',
    'do_not_use_exact_solution',
]
