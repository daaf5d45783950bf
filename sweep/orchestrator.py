"""
Benchmark orchestration (sweep/orchestrator.py).

run_benchmarks executes four stages, each completing before the next:
1. generate systems        (memoized in systems_cache)
2. generate exact solutions (memoized in exact_solutions_cache)
3. calibrate               (memoized in calibration_cache)
4. benchmark               (never memoized; always re-measured)

Stage keys:
- system:      system params
- solution:    system params | exact-solution params
- calibration: system params | exact-solution params | benchmark params
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Sequence, Tuple

import numpy as np

from data.caches import BenchmarkCache
from engine.systems import generate_exact_solution as default_generate_exact_solution
from engine.systems import generate_system as default_generate_system
from utils.canonical import CacheKey, make_cache_key
from utils.errors import ConfigurationError
from .collected import CollectedBenchmarks
from .executor import map_tasks
from .params import ParameterSet, expand_variations, merge_params, params, varied_keys

logger = logging.getLogger(__name__)

# Padded so the progress meters line up
TITLE_SYSTEMS = "generate systems: "
TITLE_SOLUTIONS = "exact solutions:  "
TITLE_CALIBRATE = "calibrate:        "
TITLE_BENCHMARK = "benchmark:        "


def no_calibrate(system: Any, exact_solution: Any, **kwargs) -> ParameterSet:
    """Default `calibrate` for run_benchmarks: return the kwargs unchanged."""
    return params(**kwargs)


def _missing_keys(
    cache: MutableMapping,
    keys: Sequence[CacheKey],
) -> List[int]:
    """Indices of the first occurrence of each key not yet in `cache`."""
    seen = set()
    missing = []
    for i, key in enumerate(keys):
        if key in seen:
            continue
        seen.add(key)
        if key not in cache:
            missing.append(i)
    return missing


def _fill_cache(
    cache: MutableMapping,
    keys: Sequence[CacheKey],
    fn: Callable[..., Any],
    title: str,
    as_args: Optional[List[Tuple]],
    as_kwargs: Optional[List[Dict[str, Any]]],
    rng: np.random.Generator,
    show_progress: Optional[bool],
) -> List[Any]:
    """
    Compute the artifacts missing from `cache` and return all of them.

    Every task i has cache key keys[i]. Only tasks whose key is absent are
    run; the returned list is read back from the cache in task order.
    """
    missing = _missing_keys(cache, keys)
    logger.info(
        f"{title.strip()} {len(keys)} tasks, {len(set(keys)) - len(missing)} cached, "
        f"{len(missing)} to compute"
    )
    results = map_tasks(
        fn,
        title=title,
        as_args=None if as_args is None else [as_args[i] for i in missing],
        as_kwargs=None if as_kwargs is None else [as_kwargs[i] for i in missing],
        rng=rng,
        show_progress=show_progress,
    )
    for i, artifact in zip(missing, results):
        cache[keys[i]] = artifact
    return [cache[key] for key in keys]


def run_benchmarks(
    *,
    system_parameters: Optional[Mapping[str, Any]] = None,
    generate_system: Callable[..., Any] = default_generate_system,
    systems_cache: Optional[MutableMapping] = None,
    exact_solution_parameters: Optional[Mapping[str, Any]] = None,
    generate_exact_solution: Callable[..., Any] = default_generate_exact_solution,
    exact_solutions_cache: Optional[MutableMapping] = None,
    benchmark_parameters: Optional[Mapping[str, Any]] = None,
    generate_benchmark: Optional[Callable[..., Mapping[str, Any]]] = None,
    calibrate: Callable[..., Mapping[str, Any]] = no_calibrate,
    calibration_cache: Optional[MutableMapping] = None,
    calibrated_keys_to_store: Sequence[str] = (),
    rng: Optional[np.random.Generator] = None,
    show_progress: Optional[bool] = None,
) -> CollectedBenchmarks:
    """
    Run a series of benchmarks and collect the results in a table.

    Stages:
    1. system = generate_system(**kwargs) for every expansion of
       `system_parameters`. `generate_system` must be deterministic.
    2. exact_solution = generate_exact_solution(system,
       **exact_solution_parameters) for every system.
       `exact_solution_parameters` must not contain `Vary`.
    3. benchmark_kwargs = calibrate(system, exact_solution, **kwargs) for
       every system and every expansion of `benchmark_parameters`.
    4. generate_benchmark(system, exact_solution, **benchmark_kwargs),
       which must return a mapping of result columns.

    Each row of the result holds the varied system and benchmark
    parameters, the calibrated entries listed in `calibrated_keys_to_store`,
    and everything returned by `generate_benchmark`. Fixed parameters are
    left out since they are constant across the table.

    Caches must be unique to the generator function that fills them, but
    may be shared between calls with different parameters. They can be
    persisted with `save_cache` / `load_cache`.

    Args:
        system_parameters: ParameterSet for generate_system (required)
        generate_system: Function kwargs -> system
        systems_cache: Memoization for stage 1 (default: fresh cache)
        exact_solution_parameters: ParameterSet for generate_exact_solution
        generate_exact_solution: Function (system, **kwargs) -> solution
        exact_solutions_cache: Memoization for stage 2
        benchmark_parameters: ParameterSet for calibrate (required)
        generate_benchmark: Function (system, solution, **kwargs) -> mapping
        calibrate: Function (system, solution, **kwargs) -> kwargs mapping
        calibration_cache: Memoization for stage 3
        calibrated_keys_to_store: Calibrated kwargs to keep in the rows
        rng: Generator for the task visitation order
        show_progress: Override the 'progress.enabled' config setting

    Returns:
        CollectedBenchmarks with one row per system x benchmark combination

    Raises:
        ConfigurationError: Missing arguments, unsupported parameter values,
            or exact_solution_parameters expanding to more than one set
    """
    if generate_benchmark is None:
        raise ConfigurationError("generate_benchmark must be given explicitly")
    if system_parameters is None:
        raise ConfigurationError("system_parameters must be given")
    if benchmark_parameters is None:
        raise ConfigurationError("benchmark_parameters must be given")
    if exact_solution_parameters is None:
        exact_solution_parameters = params()
    if systems_cache is None:
        systems_cache = BenchmarkCache()
    if exact_solutions_cache is None:
        exact_solutions_cache = BenchmarkCache()
    if calibration_cache is None:
        calibration_cache = BenchmarkCache()
    if rng is None:
        rng = np.random.default_rng()

    # Validate everything before any task is dispatched
    system_parameters_expansion = expand_variations(system_parameters)
    exact_solution_expansion = expand_variations(exact_solution_parameters)
    if len(exact_solution_expansion) != 1:
        raise ConfigurationError(
            f"exact_solution_parameters must not be varied "
            f"(expands to {len(exact_solution_expansion)} combinations)"
        )
    exact_kwargs = exact_solution_expansion[0]
    benchmark_parameters_expansion = expand_variations(benchmark_parameters)

    # Stage 1: systems
    system_keys = [make_cache_key(p) for p in system_parameters_expansion]
    systems = _fill_cache(
        systems_cache,
        system_keys,
        generate_system,
        TITLE_SYSTEMS,
        as_args=None,
        as_kwargs=system_parameters_expansion,
        rng=rng,
        show_progress=show_progress,
    )

    # Stage 2: exact solutions
    solution_keys = [
        make_cache_key(merge_params(p, exact_kwargs)) for p in system_parameters_expansion
    ]
    exact_solutions = _fill_cache(
        exact_solutions_cache,
        solution_keys,
        generate_exact_solution,
        TITLE_SOLUTIONS,
        as_args=[(system,) for system in systems],
        as_kwargs=[exact_kwargs for _ in systems],
        rng=rng,
        show_progress=show_progress,
    )

    # Stage 3: calibration, system-major over the full cross product
    benchmark_tasks_args = []
    benchmark_tasks_kwargs = []
    calibration_params = []
    for i, system in enumerate(systems):
        for benchmark_kwargs in benchmark_parameters_expansion:
            benchmark_tasks_args.append((system, exact_solutions[i]))
            benchmark_tasks_kwargs.append(benchmark_kwargs)
            calibration_params.append(merge_params(
                system_parameters_expansion[i], exact_kwargs, benchmark_kwargs
            ))
    calibration_keys = [make_cache_key(p) for p in calibration_params]
    calibrated_tasks_kwargs = _fill_cache(
        calibration_cache,
        calibration_keys,
        calibrate,
        TITLE_CALIBRATE,
        as_args=benchmark_tasks_args,
        as_kwargs=benchmark_tasks_kwargs,
        rng=rng,
        show_progress=show_progress,
    )

    # Stage 4: benchmarks
    logger.info(f"{TITLE_BENCHMARK.strip()} {len(benchmark_tasks_args)} tasks")
    benchmark_results = map_tasks(
        generate_benchmark,
        title=TITLE_BENCHMARK,
        as_args=benchmark_tasks_args,
        as_kwargs=[dict(kwargs) for kwargs in calibrated_tasks_kwargs],
        rng=rng,
        show_progress=show_progress,
    )

    # Row assembly
    varied = set(varied_keys(system_parameters, benchmark_parameters))
    stored = set(calibrated_keys_to_store)
    rows = []
    for full_params, calibrated, result in zip(
        calibration_params, calibrated_tasks_kwargs, benchmark_results
    ):
        if not isinstance(result, Mapping):
            raise TypeError(
                f"generate_benchmark must return a mapping, got {type(result).__name__}"
            )
        row = {k: v for k, v in full_params.items() if k in varied}
        row.update((k, v) for k, v in calibrated.items() if k in stored)
        row.update(result)
        rows.append(row)

    return CollectedBenchmarks(rows)
