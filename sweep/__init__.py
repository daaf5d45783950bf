"""Parameter sweeps: expansion, sequential execution, orchestration, results."""

from .params import (
    Vary, ParameterSet, params, expand_variations, count_variations
)
from .executor import map_tasks
from .collected import CollectedBenchmarks, MISSING
from .orchestrator import run_benchmarks, no_calibrate

__all__ = [
    'Vary', 'ParameterSet', 'params', 'expand_variations', 'count_variations',
    'map_tasks',
    'CollectedBenchmarks', 'MISSING',
    'run_benchmarks', 'no_calibrate',
]
