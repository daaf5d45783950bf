"""Calibration and benchmark generators for run_benchmarks."""

from .calibration import calibrate_cutoff, calibrate_taylor
from .benchmarks import TrialData, generate_trial_data, generate_timing_data

__all__ = [
    'calibrate_cutoff',
    'calibrate_taylor',
    'TrialData',
    'generate_trial_data',
    'generate_timing_data',
]
