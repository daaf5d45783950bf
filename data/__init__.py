"""Benchmark caches and persisted results."""

from .caches import BenchmarkCache, load_cache, save_cache, run_or_load, load_result

__all__ = [
    'BenchmarkCache', 'load_cache', 'save_cache', 'run_or_load', 'load_result',
]
