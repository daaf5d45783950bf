"""
Sweep definitions in YAML (sweep/sweep_config.py).

A sweep file names the generator for each pipeline stage and its
parameters. Functions are given as "module:attr" import paths; parameter
values are scalars, {vary: [...]} or {ref: "module:attr"}.

Example:
    name: taylor_precision
    seed: 0
    system:
      parameters:
        N: {vary: [10, 20]}
        nt: 101
        dt: 0.1
    exact_solution:
      parameters: {method: exact}
    calibration:
      function: analysis.calibration:calibrate_taylor
      store: [taylor_coeffs_limit]
    benchmark:
      function: analysis.benchmarks:generate_trial_data
      parameters:
        method: taylor
        precision: {vary: [1.0e-4, 1.0e-8]}
"""

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import jsonschema
import numpy as np
import yaml

from data.caches import BenchmarkCache, load_cache, run_or_load, save_cache
from engine.timings import disable_timings, enable_timings
from utils.config import get
from utils.errors import ConfigurationError
from .collected import CollectedBenchmarks
from .orchestrator import run_benchmarks
from .params import ParameterSet, Vary, count_variations

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "utils" / "config" / "schema_sweep.json"

# run_benchmarks keyword for each stage's function and cache
STAGES = {
    'system': ('generate_system', 'systems_cache', 'system_parameters'),
    'exact_solution': (
        'generate_exact_solution', 'exact_solutions_cache', 'exact_solution_parameters'
    ),
    'calibration': ('calibrate', 'calibration_cache', None),
    'benchmark': ('generate_benchmark', None, 'benchmark_parameters'),
}


def load_schema() -> Dict[str, Any]:
    with open(SCHEMA_PATH) as f:
        return json.load(f)


def validate_sweep_config(config: Any) -> None:
    """
    Validate a loaded sweep definition against the sweep schema.

    Raises:
        ConfigurationError: With the failing path and message
    """
    try:
        jsonschema.validate(config, load_schema())
    except jsonschema.ValidationError as e:
        location = '/'.join(str(p) for p in e.absolute_path) or '<root>'
        raise ConfigurationError(f"Invalid sweep config at {location}: {e.message}") from e


def load_sweep_config(config_path) -> Dict[str, Any]:
    """Load and validate sweep YAML config."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Sweep config not found: {config_path}")
    with open(config_path) as f:
        config = yaml.safe_load(f)
    validate_sweep_config(config)
    logger.debug(f"Loaded sweep '{config['name']}' from {config_path}")
    return config


def resolve_reference(reference: str) -> Any:
    """
    Import the object named by "module:attr".

    Raises:
        ConfigurationError: If the module or attribute cannot be found
    """
    module_name, sep, attr_path = reference.partition(':')
    if not sep or not module_name or not attr_path:
        raise ConfigurationError(f"Reference must have the form 'module:attr', got '{reference}'")
    try:
        obj = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import module '{module_name}': {e}") from e
    for attr in attr_path.split('.'):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise ConfigurationError(f"'{module_name}' has no attribute '{attr_path}'") from e
    return obj


def _parameter_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        if 'vary' in value:
            return Vary([_parameter_value(v) for v in value['vary']])
        return resolve_reference(value['ref'])
    return value


def parameters_from_config(parameters: Optional[Mapping[str, Any]]) -> ParameterSet:
    """Convert a YAML parameter mapping into a ParameterSet."""
    return ParameterSet(
        (key, _parameter_value(value)) for key, value in (parameters or {}).items()
    )


def count_benchmarks(config: Mapping[str, Any]) -> Dict[str, int]:
    """Number of tasks per stage (before caching) for a sweep definition."""
    n_systems = count_variations(parameters_from_config(config['system'].get('parameters')))
    n_benchmarks = count_variations(parameters_from_config(config['benchmark'].get('parameters')))
    return {
        'systems': n_systems,
        'benchmarks': n_systems * n_benchmarks,
    }


def cache_paths(config: Mapping[str, Any], cache_dir) -> Dict[str, Path]:
    """Paths of the stage caches named in `config`, keyed by run_benchmarks argument."""
    cache_dir = Path(cache_dir)
    paths = {}
    for section, (_, cache_arg, _) in STAGES.items():
        filename = (config.get(section) or {}).get('cache')
        if cache_arg and filename:
            paths[cache_arg] = cache_dir / filename
    return paths


def run_arguments(config: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Keyword arguments for run_benchmarks from a validated sweep definition.

    Caches are not included; see `cache_paths`.
    """
    kwargs: Dict[str, Any] = {}
    for section, (function_arg, _, parameters_arg) in STAGES.items():
        stage = config.get(section) or {}
        if 'function' in stage:
            kwargs[function_arg] = resolve_reference(stage['function'])
        if parameters_arg:
            kwargs[parameters_arg] = parameters_from_config(stage.get('parameters'))
    store = (config.get('calibration') or {}).get('store')
    if store:
        kwargs['calibrated_keys_to_store'] = tuple(store)
    if 'seed' in config:
        kwargs['rng'] = np.random.default_rng(config['seed'])
    return kwargs


def run_sweep(
    config: Mapping[str, Any],
    cache_dir=None,
    output=None,
    force: bool = False,
    runner: Callable[..., CollectedBenchmarks] = run_benchmarks,
) -> CollectedBenchmarks:
    """
    Run a sweep definition with persistent stage caches.

    The collected table is stored at `output` (default
    <cache_dir>/<name>.joblib) and loaded from there on later runs unless
    `force` is set. Stage caches are loaded before and saved after the
    run, also when the run fails part-way.

    Args:
        config: Validated sweep definition
        cache_dir: Directory for caches (default 'cache.directory' setting)
        output: Path of the stored result table
        force: Re-run even if a stored result exists
        runner: Benchmark runner (run_benchmarks)

    Returns:
        CollectedBenchmarks
    """
    if cache_dir is None:
        cache_dir = get('cache', 'directory', 'cache')
    cache_dir = Path(cache_dir)
    if output is None:
        output = cache_dir / f"{config['name']}.joblib"

    kwargs = run_arguments(config)
    paths = cache_paths(config, cache_dir)
    caches: Dict[str, BenchmarkCache] = {arg: load_cache(path) for arg, path in paths.items()}

    def producer() -> CollectedBenchmarks:
        if config.get('timings', False):
            enable_timings()
        try:
            return runner(**kwargs, **caches)
        finally:
            disable_timings()
            for arg, path in paths.items():
                save_cache(path, caches[arg])

    logger.info(f"Running sweep '{config['name']}' (caches in {cache_dir})")
    return run_or_load(output, producer, force=force)
