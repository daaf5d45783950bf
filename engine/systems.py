"""
Benchmark systems and the default system / exact-solution generators.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np

from utils.canonical import stable_seed
from .propagator import Generator, propagate
from .random_objects import random_dynamic_generator, random_state_vector


@dataclass
class BenchmarkSystem:
    """A state, a generator and a time grid to propagate over."""
    initial_state: np.ndarray
    generator: Generator
    tlist: np.ndarray

    @property
    def dim(self) -> int:
        return len(self.initial_state)

    @property
    def timesteps(self) -> int:
        return len(self.tlist) - 1


def generate_system(*, N: int, dt: float = 1.0, nt: int = 1001, **kwargs) -> BenchmarkSystem:
    """
    Construct a random system for benchmarking time propagation.

    The random generator is seeded from the canonical form of all
    parameters, so equal parameters always give an identical system.
    Remaining keyword arguments go to `random_dynamic_generator`
    (spectral_envelope, exact_spectral_envelope, number_of_controls,
    density, hermitian).

    This is the default `generate_system` for `run_benchmarks`.
    """
    seed = stable_seed({'N': N, 'dt': dt, 'nt': nt, **kwargs})
    rng = np.random.default_rng(seed)
    tlist = np.arange(nt, dtype=float) * dt
    generator = random_dynamic_generator(N, tlist, rng=rng, **kwargs)
    initial_state = random_state_vector(N, rng=rng)
    return BenchmarkSystem(initial_state, generator, tlist)


def generate_exact_solution(system: BenchmarkSystem, **kwargs) -> np.ndarray:
    """Propagate `system` with the given propagator options."""
    return propagate(system.initial_state, system.generator, system.tlist, **kwargs)


def do_not_use_exact_solution(*args: Any, **kwargs: Any) -> None:
    """Exact-solution generator for benchmarks that do not need one."""
    return None
