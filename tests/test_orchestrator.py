"""
Tests for sweep/orchestrator.py

Covers:
- Row contents and order for a system x benchmark sweep
- Memoization across calls with shared caches
- Configuration errors raised before any work is done
- Collaborator errors propagate
- Calibrated keys stored in rows
"""

import math

import numpy as np
import pytest

from data.caches import BenchmarkCache, load_cache, save_cache
from engine.systems import do_not_use_exact_solution
from sweep.orchestrator import no_calibrate, run_benchmarks
from sweep.params import Vary, params
from utils.errors import ConfigurationError, ParameterTypeError


class Recorder:
    """Collaborator functions that record their calls."""

    def __init__(self):
        self.systems = []
        self.solutions = []
        self.calibrations = []
        self.benchmarks = []

    def generate_system(self, **kwargs):
        self.systems.append(kwargs)
        return {'N': kwargs['N'], 'k': kwargs.get('k')}

    def generate_exact_solution(self, system, **kwargs):
        self.solutions.append((system, kwargs))
        return system['N'] * 10

    def calibrate(self, system, exact_solution, **kwargs):
        self.calibrations.append(kwargs)
        return params(**kwargs)

    def generate_benchmark(self, system, exact_solution, **kwargs):
        self.benchmarks.append(kwargs)
        return {'score': system['N'] * kwargs['p']}


def run(recorder, **overrides):
    kwargs = dict(
        system_parameters=params(N=Vary(1, 2), k=5),
        generate_system=recorder.generate_system,
        generate_exact_solution=recorder.generate_exact_solution,
        benchmark_parameters=params(p=Vary(0.1, 0.2)),
        calibrate=recorder.calibrate,
        generate_benchmark=recorder.generate_benchmark,
        rng=np.random.default_rng(0),
        show_progress=False,
    )
    kwargs.update(overrides)
    return run_benchmarks(**kwargs)


class TestRunBenchmarks:
    """End-to-end behaviour of run_benchmarks."""

    def test_rows_in_product_order(self):
        """System-major product order; fixed parameters are not columns."""
        table = run(Recorder())

        assert len(table) == 4
        assert table.headers == ['N', 'p', 'score']
        assert [(row['N'], row['p']) for row in table] == [
            (1, 0.1), (1, 0.2), (2, 0.1), (2, 0.2)
        ]
        assert table.column('score') == pytest.approx([0.1, 0.2, 0.2, 0.4])

    def test_stage_call_counts(self):
        recorder = Recorder()
        run(recorder)

        assert len(recorder.systems) == 2
        assert len(recorder.solutions) == 2
        assert len(recorder.calibrations) == 4
        assert len(recorder.benchmarks) == 4

    def test_generate_system_gets_fixed_and_varied(self):
        recorder = Recorder()
        run(recorder)
        assert sorted((s['N'], s['k']) for s in recorder.systems) == [(1, 5), (2, 5)]

    def test_exact_solution_parameters_passed(self):
        recorder = Recorder()
        run(recorder, exact_solution_parameters=params(method='exact'))
        assert all(kwargs == {'method': 'exact'} for _, kwargs in recorder.solutions)

    def test_second_run_recomputes_nothing(self):
        """Shared caches turn a repeated run into pure lookups (except benchmarks)."""
        caches = dict(
            systems_cache=BenchmarkCache(),
            exact_solutions_cache=BenchmarkCache(),
            calibration_cache=BenchmarkCache(),
        )
        first_recorder = Recorder()
        first = run(first_recorder, **caches)

        second_recorder = Recorder()
        second = run(second_recorder, **caches)

        assert second_recorder.systems == []
        assert second_recorder.solutions == []
        assert second_recorder.calibrations == []
        assert len(second_recorder.benchmarks) == 4
        assert first == second

    def test_caches_survive_persistence(self, tmp_path):
        path = tmp_path / "systems.joblib"
        systems_cache = BenchmarkCache()
        run(Recorder(), systems_cache=systems_cache)
        save_cache(path, systems_cache)

        recorder = Recorder()
        run(recorder, systems_cache=load_cache(path))
        assert recorder.systems == []

    def test_partial_cache_hits(self):
        """Only parameter combinations not yet cached are computed."""
        systems_cache = BenchmarkCache()
        run(Recorder(), systems_cache=systems_cache)

        recorder = Recorder()
        run(recorder, systems_cache=systems_cache, system_parameters=params(N=Vary(2, 3), k=5))
        assert [s['N'] for s in recorder.systems] == [3]

    def test_cache_keys_include_fixed_parameters(self):
        systems_cache = BenchmarkCache()
        run(Recorder(), systems_cache=systems_cache)
        assert {'N': 1, 'k': 5} in systems_cache

    def test_varies_over_closures(self):
        """Closures sharing a qualified name are still distinct parameters."""
        def make(k):
            return lambda x: x * k

        table = run_benchmarks(
            system_parameters=params(fn=Vary(make(1), make(10))),
            generate_system=lambda fn: fn(1),
            generate_exact_solution=do_not_use_exact_solution,
            benchmark_parameters=params(),
            generate_benchmark=lambda system, exact_solution: {'value': system},
            show_progress=False,
        )
        assert table.column('value') == [1, 10]

    def test_importable_functions_share_cache_entries(self):
        systems_cache = BenchmarkCache()
        run(Recorder(), systems_cache=systems_cache, system_parameters=params(N=Vary(1, 2), fn=math.sqrt))
        assert {'N': 1, 'fn': math.sqrt} in systems_cache

    def test_fixed_system_single_system(self):
        """Without varied system parameters one system serves all benchmarks."""
        recorder = Recorder()
        run(recorder, system_parameters=params(N=1, k=5))
        assert len(recorder.systems) == 1
        assert len(recorder.calibrations) == 2

    def test_default_calibration_passes_through(self):
        recorder = Recorder()
        table = run(recorder, calibrate=no_calibrate)
        assert recorder.benchmarks[0].keys() == {'p'}
        assert len(table) == 4

    def test_no_calibrate(self):
        assert no_calibrate(None, None, a=1, b=2) == {'a': 1, 'b': 2}

    def test_calibrated_keys_stored(self):
        def calibrate(system, exact_solution, *, p):
            return {'cutoff': p / 100, 'unused': 1}

        def generate_benchmark(system, exact_solution, *, cutoff, unused):
            return {'score': cutoff}

        table = run(
            Recorder(),
            calibrate=calibrate,
            generate_benchmark=generate_benchmark,
            calibrated_keys_to_store=['cutoff'],
        )
        assert table.headers == ['N', 'p', 'cutoff', 'score']
        assert table[0]['cutoff'] == pytest.approx(0.001)

    def test_result_must_be_mapping(self):
        with pytest.raises(TypeError, match="mapping"):
            run(Recorder(), generate_benchmark=lambda system, solution, **kw: 1.0)


class TestRunBenchmarksErrors:
    """Configuration and collaborator errors."""

    def test_generate_benchmark_required(self):
        with pytest.raises(ConfigurationError, match="generate_benchmark"):
            run(Recorder(), generate_benchmark=None)

    def test_system_parameters_required(self):
        with pytest.raises(ConfigurationError, match="system_parameters"):
            run(Recorder(), system_parameters=None)

    def test_benchmark_parameters_required(self):
        with pytest.raises(ConfigurationError, match="benchmark_parameters"):
            run(Recorder(), benchmark_parameters=None)

    def test_varied_exact_parameters_rejected_before_work(self):
        recorder = Recorder()
        with pytest.raises(ConfigurationError, match="exact_solution_parameters"):
            run(recorder, exact_solution_parameters=params(method=Vary('a', 'b')))
        assert recorder.systems == []

    def test_bad_benchmark_value_rejected_before_work(self):
        recorder = Recorder()
        with pytest.raises(ParameterTypeError):
            run(recorder, benchmark_parameters=params(p=Vary(0.1, 0.2), opts=[1]))
        assert recorder.systems == []

    def test_collaborator_error_propagates(self):
        def generate_benchmark(system, exact_solution, **kwargs):
            if system['N'] == 2:
                raise RuntimeError("benchmark failed")
            return {'score': 1}

        with pytest.raises(RuntimeError, match="benchmark failed"):
            run(Recorder(), generate_benchmark=generate_benchmark)

    def test_completed_stages_stay_cached_after_error(self):
        """A failure in a late stage keeps earlier artifacts in the caches."""
        systems_cache = BenchmarkCache()

        def calibrate(system, exact_solution, **kwargs):
            raise RuntimeError("calibration failed")

        with pytest.raises(RuntimeError):
            run(Recorder(), calibrate=calibrate, systems_cache=systems_cache)
        assert len(systems_cache) == 2
