"""
Benchmark generators for run_benchmarks.

generate_trial_data measures wall time of init_prop and of a full
propagation. generate_timing_data uses the propagator's own timing
instrumentation to count matrix-vector products.
"""

import gc
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

import numpy as np

from engine.propagator import MATVEC, STEP, init_prop
from engine.timings import timings_enabled
from utils.config import get

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class TrialData:
    """Wall times of repeated samples, in nanoseconds."""
    times_ns: np.ndarray

    def __len__(self) -> int:
        return len(self.times_ns)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TrialData):
            return NotImplemented
        return np.array_equal(self.times_ns, other.times_ns)

    @property
    def minimum(self) -> float:
        return float(np.min(self.times_ns))

    @property
    def median(self) -> float:
        return float(np.median(self.times_ns))

    @property
    def maximum(self) -> float:
        return float(np.max(self.times_ns))

    @property
    def mean(self) -> float:
        return float(np.mean(self.times_ns))

    def __repr__(self) -> str:
        return (
            f"TrialData({len(self)} samples, "
            f"median={self.median / 1e6:.3f} ms, min={self.minimum / 1e6:.3f} ms)"
        )


@contextmanager
def _gc_disabled(disable: bool) -> Iterator[None]:
    was_enabled = gc.isenabled()
    if disable:
        gc.collect()
        gc.disable()
    try:
        yield
    finally:
        if disable and was_enabled:
            gc.enable()


def run_trial(
    fn: Callable[[Any], Any],
    setup: Callable[[], Any] = lambda: None,
    samples: Optional[int] = None,
    seconds: Optional[float] = None,
) -> TrialData:
    """
    Time `fn(setup())` repeatedly; only the call to `fn` is measured.

    Sampling stops after `samples` runs or once `seconds` of measured time
    have accumulated, whichever comes first. At least one sample is taken.
    """
    if samples is None:
        samples = int(get('trials', 'samples', 100))
    if seconds is None:
        seconds = float(get('trials', 'seconds', 5.0))
    budget_ns = int(seconds * 1e9)
    times = []
    total = 0
    with _gc_disabled(bool(get('trials', 'disable_gc', True))):
        while len(times) < max(samples, 1):
            arg = setup()
            start = time.perf_counter_ns()
            fn(arg)
            elapsed = time.perf_counter_ns() - start
            times.append(elapsed)
            total += elapsed
            if total >= budget_ns:
                break
    return TrialData(np.array(times, dtype=np.int64))


def _run_to_end(propagator) -> None:
    while not propagator.finished:
        propagator.prop_step()


def generate_trial_data(system, exact_solution, **kwargs) -> Dict[str, TrialData]:
    """
    Measure initialization and full propagation of `system`.

    Instrumentation must be disabled so that it does not add to the
    measured times.

    Returns:
        {'init_prop': TrialData, 'propagate': TrialData}
    """
    if timings_enabled():
        raise RuntimeError("generate_trial_data requires timings to be disabled")
    psi0, H, tlist = system.initial_state, system.generator, system.tlist
    trial_init_prop = run_trial(lambda _: init_prop(psi0, H, tlist, **kwargs))
    trial_propagate = run_trial(
        _run_to_end,
        setup=lambda: init_prop(psi0, H, tlist, **kwargs),
    )
    return {'init_prop': trial_init_prop, 'propagate': trial_propagate}


def generate_timing_data(system, exact_solution, **kwargs) -> Dict[str, Any]:
    """
    Count matrix-vector products in one propagation of `system`.

    Requires timings to be enabled. Runs one warm-up propagation, then
    reads the spans of a second one.

    Returns:
        {'timesteps': int, 'matrix_vector_products': int,
         'percent': share of step time spent in matrix-vector products}
    """
    if not timings_enabled():
        raise RuntimeError("generate_timing_data requires timings to be enabled")
    psi0, H, tlist = system.initial_state, system.generator, system.tlist

    # warm-up
    _run_to_end(init_prop(psi0, H, tlist, **kwargs))

    propagator = init_prop(psi0, H, tlist, **kwargs)
    _run_to_end(propagator)

    n_mul = 0
    percent = 0.0
    try:
        flat = propagator.timing_data.flatten()
        n_mul = flat[MATVEC].ncalls
        percent = 100.0 * flat[MATVEC].time_ns / flat[STEP].time_ns
    except (AttributeError, KeyError, ZeroDivisionError) as e:
        logger.error(f"Timing data not available: {e!r}")

    return {
        'timesteps': len(tlist) - 1,
        'matrix_vector_products': n_mul,
        'percent': percent,
    }
