"""
Calibration of propagator cutoffs (analysis/calibration.py).

Translates a user-facing `precision` into the loosest numerical cutoff for
which propagation still matches the exact solution to that precision.
"""

import logging
import math
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from engine.propagator import propagate
from utils.config import get
from utils.errors import CalibrationError

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATES = tuple(10.0 ** -k for k in range(2, 16))


def search_start_index(precision: float, candidates: Sequence[float], start_offset: int = 2) -> int:
    """
    Index of the first candidate to try for `precision`.

    Candidates are ordered loose to tight; the search starts `start_offset`
    decades looser than the requested precision. The result is clamped to
    the candidate range.
    """
    if not candidates:
        raise CalibrationError("No calibration candidates given")
    target = round(-math.log10(precision)) - start_offset
    index = 0
    for i, candidate in enumerate(candidates):
        if -math.log10(candidate) <= target + 1e-9:
            index = i
    return max(0, min(index, len(candidates) - 1))


def calibrate_cutoff(
    system: Any,
    exact_solution: np.ndarray,
    *,
    precision: float,
    cutoff_key: str,
    candidates: Optional[Sequence[float]] = None,
    propagate_fn: Callable[..., np.ndarray] = propagate,
    **kwargs,
) -> Dict[str, Any]:
    """
    Find the loosest cutoff that reaches `precision`.

    Candidates are tried from loose to tight. For each, the system is
    propagated with {**kwargs, cutoff_key: candidate, 'check': False} and
    the first candidate with ||psi - psi_exact|| <= precision is returned.

    Args:
        system: BenchmarkSystem (initial_state, generator, tlist)
        exact_solution: Reference final state
        precision: Required error norm
        cutoff_key: Propagator option to tune
        candidates: Cutoffs ordered loose to tight (default from config)
        propagate_fn: Propagation function
        **kwargs: Remaining propagator options (e.g. method)

    Returns:
        kwargs with `cutoff_key` set; kwargs unchanged if `precision` is
        below machine precision

    Raises:
        CalibrationError: If no candidate reaches `precision`
    """
    if candidates is None:
        candidates = get('calibration', 'candidates', None) or DEFAULT_CANDIDATES
    candidates = [float(c) for c in candidates]
    machine_precision = float(get('calibration', 'machine_precision', 1e-14))
    if precision < machine_precision:
        logger.debug(f"Calibration: precision {precision} -> propagator defaults")
        return dict(kwargs)

    start = search_start_index(
        precision, candidates, int(get('calibration', 'start_offset', 2))
    )
    for cutoff in candidates[start:]:
        tuned_kwargs = {**kwargs, cutoff_key: cutoff, 'check': False}
        psi = propagate_fn(system.initial_state, system.generator, system.tlist, **tuned_kwargs)
        error = np.linalg.norm(psi - exact_solution)
        if error <= precision:
            logger.debug(f"Calibration: precision {precision} with {cutoff_key}={cutoff}")
            return {**kwargs, cutoff_key: cutoff}

    raise CalibrationError(
        f"Could not reach precision {precision} with any {cutoff_key} in "
        f"{candidates[start:]}"
    )


def calibrate_taylor(system: Any, exact_solution: np.ndarray, *, precision: float, **kwargs) -> Dict[str, Any]:
    """Calibrate `taylor_coeffs_limit` for the given precision."""
    return calibrate_cutoff(
        system, exact_solution, precision=precision, cutoff_key='taylor_coeffs_limit', **kwargs
    )
